"""
Configuration loading for the CoursePulse platform.

Configuration is a plain dict: built-in defaults, then an optional JSON file,
then environment variables.
"""

import copy
import json
import logging
import os
from typing import Any, Dict, Mapping, Optional

from .core.exceptions import ConfigurationError

DEFAULT_CONFIG: Dict[str, Any] = {
    "remote": {
        "base_url": None,
        "api_key": None,
        "timeout": 5.0,
        "max_workers": 4,
    },
    "page_size": 20,
    "professor_id": None,
    "log_level": "INFO",
    "seed_on_failure": True,
}

# Environment variable -> (config path, parser)
ENV_OVERRIDES = {
    "COURSEPULSE_REMOTE_URL": (("remote", "base_url"), str),
    "COURSEPULSE_REMOTE_API_KEY": (("remote", "api_key"), str),
    "COURSEPULSE_REMOTE_TIMEOUT": (("remote", "timeout"), float),
    "COURSEPULSE_PAGE_SIZE": (("page_size",), int),
    "COURSEPULSE_LOG_LEVEL": (("log_level",), str),
}


def _merge(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(path: Optional[str] = None, overrides: Optional[Mapping[str, Any]] = None,
                environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Build the effective configuration and validate it."""
    config = copy.deepcopy(DEFAULT_CONFIG)

    if path:
        try:
            with open(path, 'r') as f:
                file_config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}", error_code="ConfigFile")
        if not isinstance(file_config, dict):
            raise ConfigurationError(f"Config file {path} must contain a JSON object", error_code="ConfigFile")
        _merge(config, file_config)

    environ = os.environ if environ is None else environ
    for variable, (config_path, parser) in ENV_OVERRIDES.items():
        raw = environ.get(variable)
        if raw is None or raw == "":
            continue
        try:
            value = parser(raw)
        except ValueError:
            raise ConfigurationError(f"Invalid value for {variable}: {raw!r}", error_code="ConfigEnv")
        target = config
        for key in config_path[:-1]:
            target = target.setdefault(key, {})
        target[config_path[-1]] = value

    if overrides:
        _merge(config, overrides)

    validate_config(config)
    return config


def validate_config(config: Mapping[str, Any]) -> None:
    remote = config.get("remote") or {}
    timeout = remote.get("timeout")
    if not isinstance(timeout, (int, float)) or isinstance(timeout, bool) or timeout <= 0:
        raise ConfigurationError(f"remote.timeout must be a positive number, got {timeout!r}")
    workers = remote.get("max_workers")
    if not isinstance(workers, int) or isinstance(workers, bool) or workers < 1:
        raise ConfigurationError(f"remote.max_workers must be a positive integer, got {workers!r}")
    page_size = config.get("page_size")
    if not isinstance(page_size, int) or isinstance(page_size, bool) or page_size < 1:
        raise ConfigurationError(f"page_size must be a positive integer, got {page_size!r}")
    level = str(config.get("log_level", "")).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigurationError(f"Unknown log_level {config.get('log_level')!r}")
