from __future__ import annotations

from typing import Any, Dict, Optional

import pytest
from fastapi import Body, FastAPI, Header, HTTPException, Response
from fastapi.testclient import TestClient

from polyglottos.config import get_settings
from polyglottos.records import ProgressRecord, SessionRecord, SettingsRecord, UserRecord
from polyglottos.storage import LocalStorageBackend, RemoteStorageBackend, StorageBackend, StorageError
from polyglottos.storage.factory import get_storage_factory
from polyglottos.telemetry import clear_listeners


class MemoryStorage(StorageBackend):
    """Dictionary-backed storage; methods named in ``failing`` raise ``StorageError``."""

    def __init__(self, name: str = "memory") -> None:
        self.name = name
        self.users: Dict[str, UserRecord] = {}
        self.progress: Dict[str, ProgressRecord] = {}
        self.settings: Dict[str, SettingsRecord] = {}
        self.session: SessionRecord = {}
        self.failing: set[str] = set()
        self.calls: list[str] = []
        self.writes = 0
        self.closed = False

    def _enter(self, method: str) -> None:
        self.calls.append(method)
        if method in self.failing:
            raise StorageError(f"{self.name} {method} failed", "GET_ERROR", recoverable=True)
        if method.startswith("set_") or method in {"delete_user_data", "clear", "clear_session"}:
            self.writes += 1

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        self._enter("get_user")
        return self.users.get(user_id)

    def set_user(self, user: UserRecord) -> None:
        self._enter("set_user")
        self.users[user.id] = user

    def delete_user_data(self, user_id: str) -> None:
        self._enter("delete_user_data")
        self.users.pop(user_id, None)
        self.progress.pop(user_id, None)
        self.settings.pop(user_id, None)

    def get_progress(self, user_id: str) -> Optional[ProgressRecord]:
        self._enter("get_progress")
        return self.progress.get(user_id)

    def set_progress(self, progress: ProgressRecord) -> None:
        self._enter("set_progress")
        self.progress[progress.user_id] = progress

    def get_settings(self, user_id: str) -> Optional[SettingsRecord]:
        self._enter("get_settings")
        return self.settings.get(user_id)

    def set_settings(self, settings: SettingsRecord) -> None:
        self._enter("set_settings")
        self.settings[settings.user_id] = settings

    def get_session(self) -> SessionRecord:
        self._enter("get_session")
        return dict(self.session)

    def set_session(self, session: SessionRecord) -> None:
        self._enter("set_session")
        self.session = dict(session)

    def clear_session(self) -> None:
        self._enter("clear_session")
        self.session = {}

    def is_available(self) -> bool:
        return "is_available" not in self.failing

    def clear(self) -> None:
        self._enter("clear")
        self.users.clear()
        self.progress.clear()
        self.settings.clear()
        self.session = {}

    def close(self) -> None:
        self.closed = True


def build_stub_api() -> FastAPI:
    """In-process stand-in for the remote storage API."""
    app = FastAPI()
    store: Dict[str, Dict[str, Dict[str, Any]]] = {"users": {}, "progress": {}, "settings": {}}
    app.state.store = store
    app.state.auth_headers = []

    def _collection(name: str) -> Dict[str, Dict[str, Any]]:
        if name not in store:
            raise HTTPException(status_code=404, detail="Unknown collection")
        return store[name]

    @app.head("/health")
    def health() -> Response:
        return Response(status_code=200)

    @app.get("/{collection}/{key}")
    def get_record(collection: str, key: str, authorization: Optional[str] = Header(None)) -> Dict[str, Any]:
        app.state.auth_headers.append(authorization)
        record = _collection(collection).get(key)
        if record is None:
            raise HTTPException(status_code=404, detail="Not found")
        return record

    @app.put("/{collection}/{key}")
    def put_record(
        collection: str,
        key: str,
        payload: Dict[str, Any] = Body(...),
        authorization: Optional[str] = Header(None),
    ) -> Dict[str, Any]:
        app.state.auth_headers.append(authorization)
        _collection(collection)[key] = payload
        return {"ok": True}

    @app.delete("/users/{key}")
    def delete_user(key: str) -> Dict[str, Any]:
        store["users"].pop(key, None)
        store["progress"].pop(key, None)
        store["settings"].pop(key, None)
        return {"ok": True}

    return app


@pytest.fixture(autouse=True)
def _reset_globals():
    clear_listeners()
    get_settings.cache_clear()
    get_storage_factory.cache_clear()
    yield
    clear_listeners()
    get_settings.cache_clear()
    get_storage_factory.cache_clear()


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def local_storage(tmp_path) -> LocalStorageBackend:
    backend = LocalStorageBackend(f"sqlite:///{tmp_path / 'local.db'}")
    yield backend
    backend.close()


@pytest.fixture
def stub_api() -> FastAPI:
    return build_stub_api()


@pytest.fixture
def remote_storage(stub_api, tmp_path) -> RemoteStorageBackend:
    client = TestClient(stub_api)
    backend = RemoteStorageBackend(
        "http://testserver",
        api_token="secret-token",
        session_path=tmp_path / "session.json",
        client=client,
    )
    yield backend
    client.close()
