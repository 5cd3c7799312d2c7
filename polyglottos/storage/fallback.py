"""Storage wrapper that retries failed calls on a secondary backend."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from ..records import ProgressRecord, SessionRecord, SettingsRecord, UserRecord
from ..telemetry import STORAGE_FALLBACK_ENGAGED, emit_event
from .base import StorageBackend

logger = logging.getLogger(__name__)


class FallbackStorage(StorageBackend):
    """Route every call to ``primary``; on failure retry once on ``secondary``.

    The secondary's own error propagates unchanged.  Without a secondary the
    primary's error propagates.
    """

    def __init__(self, primary: StorageBackend, secondary: Optional[StorageBackend] = None) -> None:
        self._primary = primary
        self._secondary = secondary

    @property
    def primary(self) -> StorageBackend:
        return self._primary

    @property
    def secondary(self) -> Optional[StorageBackend]:
        return self._secondary

    def _call(self, method: str, *args: Any, **kwargs: Any) -> Any:
        try:
            return getattr(self._primary, method)(*args, **kwargs)
        except Exception as exc:  # noqa: BLE001
            if self._secondary is None:
                raise
            logger.warning(
                "Primary storage failed during %s; falling back to %s: %s",
                method,
                type(self._secondary).__name__,
                exc,
            )
            emit_event(
                STORAGE_FALLBACK_ENGAGED,
                method=method,
                primary=type(self._primary).__name__,
                secondary=type(self._secondary).__name__,
                error_code=getattr(exc, "code", None),
                error=str(exc),
            )
            return getattr(self._secondary, method)(*args, **kwargs)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self._call("get_user", user_id)

    def set_user(self, user: UserRecord) -> None:
        self._call("set_user", user)

    def delete_user_data(self, user_id: str) -> None:
        self._call("delete_user_data", user_id)

    def get_progress(self, user_id: str) -> Optional[ProgressRecord]:
        return self._call("get_progress", user_id)

    def set_progress(self, progress: ProgressRecord) -> None:
        self._call("set_progress", progress)

    def update_progress(self, user_id: str, updates: Mapping[str, Any]) -> None:
        self._call("update_progress", user_id, updates)

    def get_settings(self, user_id: str) -> Optional[SettingsRecord]:
        return self._call("get_settings", user_id)

    def set_settings(self, settings: SettingsRecord) -> None:
        self._call("set_settings", settings)

    def update_settings(self, user_id: str, updates: Mapping[str, Any]) -> None:
        self._call("update_settings", user_id, updates)

    def get_session(self) -> SessionRecord:
        return self._call("get_session")

    def set_session(self, session: SessionRecord) -> None:
        self._call("set_session", session)

    def clear_session(self) -> None:
        self._call("clear_session")

    def is_available(self) -> bool:
        try:
            return self._primary.is_available()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Primary availability probe raised: %s", exc)
            if self._secondary is None:
                return False
            try:
                return self._secondary.is_available()
            except Exception:  # noqa: BLE001
                return False

    def clear(self) -> None:
        self._call("clear")

    def close(self) -> None:
        self._primary.close()
        if self._secondary is not None:
            self._secondary.close()


__all__ = ["FallbackStorage"]
