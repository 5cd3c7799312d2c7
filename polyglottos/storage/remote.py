"""Remote backend speaking the REST storage API over httpx."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Type, TypeVar
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from ..config import DEFAULT_API_BASE_URL, DEFAULT_SESSION_PATH, DEFAULT_TIMEOUT_MS
from ..records import ProgressRecord, SessionRecord, SettingsRecord, UserRecord, WireModel
from .base import StorageBackend
from .errors import API_ERROR, NETWORK_ERROR, TIMEOUT_ERROR, UNSUPPORTED_OPERATION, StorageError
from .session_file import SessionFileStore

logger = logging.getLogger(__name__)

_RecordT = TypeVar("_RecordT", bound=WireModel)


class RemoteStorageBackend(StorageBackend):
    """Stores records through authenticated HTTP calls, one record per request.

    Every request is bounded by ``timeout_ms``; when it elapses httpx abandons
    the in-flight request and the call fails with ``TIMEOUT_ERROR``.  Session
    state lives in a local JSON file because the API has no session endpoint.
    """

    def __init__(
        self,
        api_base_url: str = DEFAULT_API_BASE_URL,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        api_token: Optional[str] = None,
        session_path: Path = DEFAULT_SESSION_PATH,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._base_url = api_base_url.rstrip("/")
        self._timeout_ms = timeout_ms
        headers = {"Content-Type": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        self._headers = headers
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout_ms / 1000))
        self._owns_client = client is None
        self._sessions = SessionFileStore(session_path)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms

    def _url(self, collection: str, key: str) -> str:
        return f"{self._base_url}/{collection}/{quote(key, safe='')}"

    def _request(self, method: str, url: str, *, json: Any = None) -> httpx.Response:
        try:
            response = self._client.request(
                method,
                url,
                json=json,
                headers=self._headers,
                timeout=self._timeout_ms / 1000,
            )
        except httpx.TimeoutException as exc:
            raise StorageError("Request timed out", TIMEOUT_ERROR, recoverable=True) from exc
        except httpx.HTTPError as exc:
            raise StorageError(f"Network request failed: {exc}", NETWORK_ERROR, recoverable=True) from exc

        if not response.is_success:
            status = response.status_code
            raise StorageError(
                f"API request failed with status {status}",
                API_ERROR,
                recoverable=status >= 500,
                status_code=status,
            )
        logger.debug("%s %s -> %s", method, url, response.status_code)
        return response

    def _get_record(self, collection: str, key: str, model: Type[_RecordT]) -> Optional[_RecordT]:
        try:
            response = self._request("GET", self._url(collection, key))
        except StorageError as exc:
            if exc.code == API_ERROR and exc.status_code == 404:
                return None
            raise
        if not response.content:
            return None
        try:
            payload = response.json()
            if not payload:
                return None
            return model.model_validate(payload)
        except (ValueError, ValidationError) as exc:
            raise StorageError(
                f"API returned an invalid {collection} payload: {exc}", API_ERROR, recoverable=False
            ) from exc

    def _put_record(self, collection: str, key: str, record: WireModel) -> None:
        self._request("PUT", self._url(collection, key), json=record.to_wire())

    # Users

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self._get_record("users", user_id, UserRecord)

    def set_user(self, user: UserRecord) -> None:
        self._put_record("users", user.id, user)

    def delete_user_data(self, user_id: str) -> None:
        self._request("DELETE", self._url("users", user_id))

    # Progress

    def get_progress(self, user_id: str) -> Optional[ProgressRecord]:
        return self._get_record("progress", user_id, ProgressRecord)

    def set_progress(self, progress: ProgressRecord) -> None:
        self._put_record("progress", progress.user_id, progress)

    # Settings

    def get_settings(self, user_id: str) -> Optional[SettingsRecord]:
        return self._get_record("settings", user_id, SettingsRecord)

    def set_settings(self, settings: SettingsRecord) -> None:
        self._put_record("settings", settings.user_id, settings)

    # Session

    def get_session(self) -> SessionRecord:
        return self._sessions.load()

    def set_session(self, session: SessionRecord) -> None:
        self._sessions.save(session)

    def clear_session(self) -> None:
        self._sessions.clear()

    # General

    def is_available(self) -> bool:
        try:
            self._request("HEAD", f"{self._base_url}/health")
            return True
        except Exception as exc:  # noqa: BLE001
            logger.debug("Remote storage unavailable: %s", exc)
            return False

    def clear(self) -> None:
        raise StorageError(
            "Clear operation not supported for cloud storage",
            UNSUPPORTED_OPERATION,
            recoverable=False,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()



__all__ = ["RemoteStorageBackend"]
