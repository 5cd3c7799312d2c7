"""Embedded SQLite backend built on the SQLAlchemy repository."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import Engine, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..config import DEFAULT_LOCAL_DATABASE_URL
from ..db.base import Base
from ..db.models import LOCAL_SCHEMA_VERSION, SCHEMA_VERSION_KEY, StorageMetadataModel
from ..db.session import build_engine, build_session_factory, session_scope
from ..records import ProgressRecord, SessionRecord, SettingsRecord, UserRecord
from ..repositories.records import records
from .base import StorageBackend
from .errors import CLEAR_ERROR, DB_OPEN_ERROR, DELETE_ERROR, GET_ERROR, SET_ERROR, StorageError

logger = logging.getLogger(__name__)


class LocalStorageBackend(StorageBackend):
    """Persists records to an on-device database, one short transaction per call."""

    def __init__(self, database_url: str = DEFAULT_LOCAL_DATABASE_URL, *, echo: bool = False) -> None:
        self._database_url = database_url
        self._echo = echo
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker[Session]] = None
        self._lock = threading.RLock()

    def _open(self) -> sessionmaker[Session]:
        with self._lock:
            if self._session_factory is not None:
                return self._session_factory
            engine: Optional[Engine] = None
            try:
                engine = build_engine(self._database_url, echo=self._echo)
                Base.metadata.create_all(engine)
                factory = build_session_factory(engine)
                with session_scope(factory) as session:
                    self._check_schema_version(session)
            except StorageError:
                if engine is not None:
                    engine.dispose()
                raise
            except Exception as exc:  # noqa: BLE001
                if engine is not None:
                    engine.dispose()
                raise StorageError(
                    f"Failed to open local database: {exc}", DB_OPEN_ERROR, recoverable=False
                ) from exc
            self._engine = engine
            self._session_factory = factory
            return factory

    @staticmethod
    def _check_schema_version(session: Session) -> None:
        stmt = select(StorageMetadataModel).where(StorageMetadataModel.key == SCHEMA_VERSION_KEY)
        row = session.execute(stmt).scalar_one_or_none()
        if row is None:
            session.add(StorageMetadataModel(key=SCHEMA_VERSION_KEY, value=str(LOCAL_SCHEMA_VERSION)))
            return
        try:
            stored = int(row.value)
        except ValueError:
            stored = LOCAL_SCHEMA_VERSION + 1
        if stored > LOCAL_SCHEMA_VERSION:
            raise StorageError(
                f"Local database schema version {row.value} is newer than supported version "
                f"{LOCAL_SCHEMA_VERSION}",
                DB_OPEN_ERROR,
                recoverable=False,
            )
        if stored < LOCAL_SCHEMA_VERSION:
            row.value = str(LOCAL_SCHEMA_VERSION)

    @contextmanager
    def _transaction(self, code: str, message: str, *, commit: bool = True) -> Generator[Session, None, None]:
        factory = self._open()
        try:
            with session_scope(factory, commit=commit) as session:
                yield session
        except (SQLAlchemyError, ValueError, TypeError) as exc:
            logger.debug("Local storage %s failed: %s", code, exc)
            raise StorageError(f"{message}: {exc}", code, recoverable=True) from exc

    # Users

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self._transaction(GET_ERROR, f"Failed to get {user_id} from users", commit=False) as session:
            return records.get_user(session, user_id)

    def set_user(self, user: UserRecord) -> None:
        with self._transaction(SET_ERROR, "Failed to set data in users") as session:
            records.upsert_user(session, user)

    def delete_user_data(self, user_id: str) -> None:
        with self._transaction(DELETE_ERROR, f"Failed to delete {user_id} from users") as session:
            records.delete_user_data(session, user_id)

    # Progress

    def get_progress(self, user_id: str) -> Optional[ProgressRecord]:
        with self._transaction(GET_ERROR, f"Failed to get progress for user {user_id}", commit=False) as session:
            return records.get_progress(session, user_id)

    def set_progress(self, progress: ProgressRecord) -> None:
        with self._transaction(SET_ERROR, "Failed to set data in progress") as session:
            records.upsert_progress(session, progress)

    # Settings

    def get_settings(self, user_id: str) -> Optional[SettingsRecord]:
        with self._transaction(GET_ERROR, f"Failed to get {user_id} from settings", commit=False) as session:
            return records.get_settings(session, user_id)

    def set_settings(self, settings: SettingsRecord) -> None:
        with self._transaction(SET_ERROR, "Failed to set data in settings") as session:
            records.upsert_settings(session, settings)

    # Session

    def get_session(self) -> SessionRecord:
        with self._transaction(GET_ERROR, "Failed to get current from session", commit=False) as session:
            return records.get_session_state(session)

    def set_session(self, session_data: SessionRecord) -> None:
        with self._transaction(SET_ERROR, "Failed to set data in session") as session:
            records.set_session_state(session, session_data)

    def clear_session(self) -> None:
        with self._transaction(DELETE_ERROR, "Failed to delete current from session") as session:
            records.clear_session_state(session)

    # General

    def is_available(self) -> bool:
        try:
            factory = self._open()
            with session_scope(factory, commit=False) as session:
                session.execute(text("SELECT 1"))
            return True
        except Exception as exc:  # noqa: BLE001
            logger.debug("Local storage unavailable: %s", exc)
            return False

    def clear(self) -> None:
        with self._transaction(CLEAR_ERROR, "Failed to clear local storage") as session:
            records.clear_all(session)

    def close(self) -> None:
        with self._lock:
            if self._engine is not None:
                self._engine.dispose()
            self._engine = None
            self._session_factory = None


__all__ = ["LocalStorageBackend"]
