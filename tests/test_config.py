"""
Configuration loading tests.
"""

import json

import pytest

from coursepulse.config import DEFAULT_CONFIG, load_config
from coursepulse.core.exceptions import ConfigurationError


class TestLoadConfig:

    def test_defaults(self):
        config = load_config(environ={})
        assert config == DEFAULT_CONFIG
        assert config is not DEFAULT_CONFIG

    def test_file_merges_nested_sections(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"remote": {"base_url": "https://db.example.com"}, "page_size": 50}))
        config = load_config(str(path), environ={})
        assert config["remote"]["base_url"] == "https://db.example.com"
        assert config["remote"]["timeout"] == 5.0
        assert config["page_size"] == 50

    def test_environment_overrides_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"page_size": 50}))
        config = load_config(str(path), environ={
            "COURSEPULSE_PAGE_SIZE": "10",
            "COURSEPULSE_REMOTE_TIMEOUT": "2.5",
            "COURSEPULSE_LOG_LEVEL": "",
        })
        assert config["page_size"] == 10
        assert config["remote"]["timeout"] == 2.5
        assert config["log_level"] == "INFO"

    def test_explicit_overrides_win(self):
        config = load_config(environ={"COURSEPULSE_PAGE_SIZE": "10"}, overrides={"page_size": 5})
        assert config["page_size"] == 5

    @pytest.mark.parametrize("overrides", [
        {"page_size": 0},
        {"remote": {"timeout": -1}},
        {"remote": {"max_workers": True}},
        {"log_level": "CHATTY"},
    ])
    def test_invalid_values(self, overrides):
        with pytest.raises(ConfigurationError):
            load_config(environ={}, overrides=overrides)

    def test_unparseable_environment_value(self):
        with pytest.raises(ConfigurationError) as exc:
            load_config(environ={"COURSEPULSE_PAGE_SIZE": "many"})
        assert exc.value.error_code == "ConfigEnv"

    def test_missing_or_malformed_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config(str(tmp_path / "absent.json"), environ={})
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")
        with pytest.raises(ConfigurationError):
            load_config(str(path), environ={})
