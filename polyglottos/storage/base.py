"""Capability interface shared by every persistence backend."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from ..records import ProgressRecord, SessionRecord, SettingsRecord, UserRecord, new_progress_id


class StorageBackend(ABC):
    """Contract implemented by the local, remote and fallback storages.

    ``get_*`` return ``None`` when the key is unknown; every other failure is
    raised as :class:`~polyglottos.storage.errors.StorageError`.
    """

    # Users

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[UserRecord]:
        ...

    @abstractmethod
    def set_user(self, user: UserRecord) -> None:
        ...

    @abstractmethod
    def delete_user_data(self, user_id: str) -> None:
        ...

    # Progress

    @abstractmethod
    def get_progress(self, user_id: str) -> Optional[ProgressRecord]:
        ...

    @abstractmethod
    def set_progress(self, progress: ProgressRecord) -> None:
        ...

    def update_progress(self, user_id: str, updates: Mapping[str, Any]) -> None:
        """Merge ``updates`` into the stored progress, creating a zeroed record if absent."""
        existing = self.get_progress(user_id)
        if existing is not None:
            payload = existing.to_wire()
        else:
            payload = {
                "id": new_progress_id(user_id),
                "userId": user_id,
                "questionsAnswered": 0,
                "correctAnswers": 0,
                "quizzesTaken": 0,
            }
        payload.update(ProgressRecord.wire_keys(updates))
        payload["userId"] = user_id
        payload["lastUpdated"] = datetime.now(timezone.utc)
        self.set_progress(ProgressRecord.model_validate(payload))

    # Settings

    @abstractmethod
    def get_settings(self, user_id: str) -> Optional[SettingsRecord]:
        ...

    @abstractmethod
    def set_settings(self, settings: SettingsRecord) -> None:
        ...

    def update_settings(self, user_id: str, updates: Mapping[str, Any]) -> None:
        existing = self.get_settings(user_id)
        payload = existing.to_wire() if existing is not None else {"userId": user_id}
        payload.update(SettingsRecord.wire_keys(updates))
        payload["userId"] = user_id
        self.set_settings(SettingsRecord.model_validate(payload))

    # Session

    @abstractmethod
    def get_session(self) -> SessionRecord:
        ...

    @abstractmethod
    def set_session(self, session: SessionRecord) -> None:
        ...

    @abstractmethod
    def clear_session(self) -> None:
        ...

    # General

    @abstractmethod
    def is_available(self) -> bool:
        """Liveness probe; returns ``False`` instead of raising."""

    @abstractmethod
    def clear(self) -> None:
        """Wipe all data or raise ``UNSUPPORTED_OPERATION``."""

    def close(self) -> None:
        """Release connections held by the backend."""


__all__ = ["StorageBackend"]
