"""
REST remote client tests with a mocked HTTP session.
"""

from unittest.mock import Mock

import pytest
import requests

from coursepulse.core.enums import EntityType
from coursepulse.core.exceptions import RemoteSyncError
from coursepulse.remote import RestRemoteClient


def make_response(status=200, payload=None, text=""):
    response = Mock(spec=requests.Response)
    response.status_code = status
    response.text = text
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    return response


@pytest.fixture
def session():
    mock = Mock(spec=requests.Session)
    mock.headers = {}
    return mock


@pytest.fixture
def client(session):
    return RestRemoteClient("https://db.example.com/", api_key="secret", timeout=2.0, session=session)


class TestRestRemoteClient:

    def test_auth_headers(self, client, session):
        assert session.headers["apikey"] == "secret"
        assert session.headers["Authorization"] == "Bearer secret"

    def test_fetch(self, client, session):
        session.request.return_value = make_response(payload=[{"id": "c1"}])
        assert client.fetch(EntityType.COURSE) == [{"id": "c1"}]
        session.request.assert_called_once_with(
            "GET", "https://db.example.com/rest/v1/courses", timeout=2.0, params={"select": "*"})

    def test_fetch_rejects_non_list(self, client, session):
        session.request.return_value = make_response(payload={"id": "c1"})
        with pytest.raises(RemoteSyncError) as exc:
            client.fetch(EntityType.COURSE)
        assert exc.value.error_code == "RemoteMalformed"

    def test_fetch_rejects_invalid_json(self, client, session):
        session.request.return_value = make_response(payload=ValueError("bad json"))
        with pytest.raises(RemoteSyncError):
            client.fetch(EntityType.STUDENT)

    def test_http_error_status(self, client, session):
        session.request.return_value = make_response(status=503, text="down")
        with pytest.raises(RemoteSyncError) as exc:
            client.upsert(EntityType.COURSE, [{"id": "c1"}])
        assert exc.value.error_code == "RemoteRejected"
        assert exc.value.details["status"] == 503

    def test_connection_error(self, client, session):
        session.request.side_effect = requests.ConnectionError("refused")
        with pytest.raises(RemoteSyncError) as exc:
            client.delete(EntityType.LECTURE, ["l1"])
        assert exc.value.error_code == "RemoteUnavailable"

    def test_update_filters_by_ids(self, client, session):
        session.request.return_value = make_response(status=204)
        client.update(EntityType.COURSE, ["c1", "c2"], {"status": "archived"})
        args, kwargs = session.request.call_args
        assert args == ("PATCH", "https://db.example.com/rest/v1/courses")
        assert kwargs["params"] == {"id": "in.(c1,c2)"}
        assert kwargs["json"] == {"status": "archived"}

    def test_empty_batches_skip_the_network(self, client, session):
        client.upsert(EntityType.COURSE, [])
        client.update(EntityType.COURSE, [], {"status": "archived"})
        client.delete(EntityType.COURSE, [])
        session.request.assert_not_called()
