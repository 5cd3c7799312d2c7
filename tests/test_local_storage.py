from __future__ import annotations

from sqlalchemy import update

import pytest

from polyglottos.db.models import SCHEMA_VERSION_KEY, StorageMetadataModel
from polyglottos.db.session import build_engine, build_session_factory, session_scope
from polyglottos.records import ProgressRecord, SettingsRecord, UserRecord
from polyglottos.storage import LocalStorageBackend, StorageError


def test_missing_keys_return_none(local_storage) -> None:
    assert local_storage.get_user("nobody") is None
    assert local_storage.get_progress("nobody") is None
    assert local_storage.get_settings("nobody") is None
    assert local_storage.get_session() == {}


def test_user_round_trip(local_storage) -> None:
    user = UserRecord.model_validate(
        {"id": "u1", "username": "ana", "email": "ana@example.com", "createdAt": "2024-01-02T03:04:05Z"}
    )
    local_storage.set_user(user)
    assert local_storage.get_user("u1") == user


def test_progress_is_unique_per_user(local_storage) -> None:
    local_storage.set_progress(ProgressRecord(id="p-old", user_id="u1", questions_answered=5))
    local_storage.set_progress(ProgressRecord(id="p-new", user_id="u1", questions_answered=7))

    stored = local_storage.get_progress("u1")
    assert stored is not None
    assert stored.id == "p-new"
    assert stored.questions_answered == 7


def test_update_progress_creates_then_merges(local_storage) -> None:
    local_storage.update_progress("u1", {"questions_answered": 3})
    created = local_storage.get_progress("u1")
    assert created is not None
    assert created.questions_answered == 3
    assert created.quizzes_taken == 0
    assert created.id.startswith("progress_u1_")

    local_storage.update_progress("u1", {"quizzesTaken": 2})
    updated = local_storage.get_progress("u1")
    assert updated.id == created.id
    assert updated.questions_answered == 3
    assert updated.quizzes_taken == 2
    assert updated.last_updated >= created.last_updated


def test_settings_round_trip_keeps_extensions(local_storage) -> None:
    local_storage.set_settings(
        SettingsRecord.model_validate({"userId": "u1", "theme": "dark", "isPrivate": True, "fontScale": 2})
    )
    local_storage.update_settings("u1", {"language": "el"})

    stored = local_storage.get_settings("u1")
    assert stored.theme == "dark"
    assert stored.language == "el"
    assert stored.is_private is True
    assert stored.extensions == {"fontScale": 2}


def test_session_set_and_clear(local_storage) -> None:
    local_storage.set_session({"userId": "u1", "loginTime": "2024-01-01T00:00:00+00:00"})
    assert local_storage.get_session()["userId"] == "u1"
    local_storage.clear_session()
    assert local_storage.get_session() == {}


def test_delete_user_data_removes_related_rows(local_storage) -> None:
    local_storage.set_user(UserRecord(id="u1", username="ana", email="ana@example.com"))
    local_storage.set_progress(ProgressRecord(id="p1", user_id="u1"))
    local_storage.set_settings(SettingsRecord(user_id="u1", theme="dark"))
    local_storage.set_user(UserRecord(id="u2", username="bo", email="bo@example.com"))

    local_storage.delete_user_data("u1")

    assert local_storage.get_user("u1") is None
    assert local_storage.get_progress("u1") is None
    assert local_storage.get_settings("u1") is None
    assert local_storage.get_user("u2") is not None


def test_clear_wipes_everything(local_storage) -> None:
    local_storage.set_user(UserRecord(id="u1", username="ana", email="ana@example.com"))
    local_storage.set_session({"userId": "u1"})
    local_storage.clear()
    assert local_storage.get_user("u1") is None
    assert local_storage.get_session() == {}


def test_data_survives_reopen(tmp_path) -> None:
    url = f"sqlite:///{tmp_path / 'persist.db'}"
    first = LocalStorageBackend(url)
    first.set_user(UserRecord(id="u1", username="ana", email="ana@example.com"))
    first.close()

    second = LocalStorageBackend(url)
    try:
        assert second.get_user("u1").username == "ana"
    finally:
        second.close()


def test_newer_schema_version_fails_to_open(tmp_path) -> None:
    url = f"sqlite:///{tmp_path / 'future.db'}"
    seeded = LocalStorageBackend(url)
    assert seeded.is_available() is True
    seeded.close()

    engine = build_engine(url)
    factory = build_session_factory(engine)
    with session_scope(factory) as session:
        session.execute(
            update(StorageMetadataModel)
            .where(StorageMetadataModel.key == SCHEMA_VERSION_KEY)
            .values(value="99")
        )
    engine.dispose()

    backend = LocalStorageBackend(url)
    with pytest.raises(StorageError) as excinfo:
        backend.get_user("u1")
    assert excinfo.value.code == "DB_OPEN_ERROR"
    assert excinfo.value.recoverable is False
    assert backend.is_available() is False


def test_unopenable_database_is_unavailable(tmp_path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file in the way", encoding="utf-8")
    backend = LocalStorageBackend(f"sqlite:///{blocker / 'nested' / 'local.db'}")

    assert backend.is_available() is False
    with pytest.raises(StorageError) as excinfo:
        backend.set_user(UserRecord(id="u1", username="ana", email="ana@example.com"))
    assert excinfo.value.code == "DB_OPEN_ERROR"
