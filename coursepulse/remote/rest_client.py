"""
HTTP client for a PostgREST-style remote backend.

Each collection is a table under ``{base_url}/rest/v1/``. Every call uses a
bounded timeout and any failure surfaces as ``RemoteSyncError``.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

import requests

from ..core.enums import EntityType
from ..core.exceptions import RemoteSyncError
from ..core.interfaces import RemoteService

logger = logging.getLogger(__name__)


class RestRemoteClient(RemoteService):
    """Remote source and mirror backed by a REST table API."""

    def __init__(self, base_url: str, api_key: Optional[str] = None, timeout: float = 5.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})
        if api_key:
            self._session.headers.update({
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
            })

    def _url(self, entity_type: EntityType) -> str:
        return f"{self.base_url}/rest/v1/{entity_type.value}"

    @staticmethod
    def _id_filter(ids: Iterable[str]) -> Dict[str, str]:
        return {"id": "in.({})".format(",".join(ids))}

    def _request(self, method: str, entity_type: EntityType, **kwargs: Any) -> requests.Response:
        url = self._url(entity_type)
        try:
            response = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise RemoteSyncError(
                f"{method} {url} failed: {e}",
                error_code="RemoteUnavailable",
                details={"entity_type": entity_type.value},
            ) from e
        if response.status_code >= 400:
            raise RemoteSyncError(
                f"{method} {url} returned {response.status_code}",
                error_code="RemoteRejected",
                details={"entity_type": entity_type.value, "status": response.status_code,
                         "body": response.text[:500]},
            )
        return response

    def fetch(self, entity_type: EntityType) -> List[Dict[str, Any]]:
        response = self._request("GET", entity_type, params={"select": "*"})
        try:
            payload = response.json()
        except ValueError as e:
            raise RemoteSyncError(f"Malformed {entity_type.value} payload", error_code="RemoteMalformed") from e
        if not isinstance(payload, list):
            raise RemoteSyncError(f"Expected a list of {entity_type.value}", error_code="RemoteMalformed")
        logger.debug("Fetched %d %s records", len(payload), entity_type.value)
        return payload

    def upsert(self, entity_type: EntityType, records: List[Dict[str, Any]]) -> None:
        if not records:
            return
        self._request("POST", entity_type, json=records,
                      headers={"Prefer": "resolution=merge-duplicates,return=minimal"})

    def update(self, entity_type: EntityType, ids: Iterable[str], changes: Dict[str, Any]) -> None:
        ids = list(ids)
        if not ids:
            return
        self._request("PATCH", entity_type, params=self._id_filter(ids), json=changes,
                      headers={"Prefer": "return=minimal"})

    def delete(self, entity_type: EntityType, ids: Iterable[str]) -> None:
        ids = list(ids)
        if not ids:
            return
        self._request("DELETE", entity_type, params=self._id_filter(ids))
