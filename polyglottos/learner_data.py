"""Everyday learner operations expressed against the storage interface."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .records import ProgressRecord, SettingsRecord, UserRecord, new_progress_id
from .storage.base import StorageBackend
from .storage.errors import StorageError

logger = logging.getLogger(__name__)

DEFAULT_PREFERENCES: Dict[str, Any] = {
    "language": "en",
    "theme": "light",
    "notification_frequency": "daily",
    "is_private": False,
}


@dataclass(frozen=True)
class DashboardSnapshot:
    user: Optional[UserRecord]
    progress: Optional[ProgressRecord]
    settings: Optional[SettingsRecord]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class LearnerDataManager:
    def __init__(self, storage: StorageBackend) -> None:
        self.storage = storage

    def initialize_user(self, user_id: str, username: str, email: str) -> UserRecord:
        """Create the user with zeroed progress and default preferences."""
        now = _now()
        user = UserRecord(id=user_id, username=username, email=email, created_at=now)
        self.storage.set_user(user)
        self.storage.set_progress(
            ProgressRecord(id=new_progress_id(user_id), user_id=user_id, last_updated=now)
        )
        self.storage.set_settings(SettingsRecord(user_id=user_id, **DEFAULT_PREFERENCES))
        logger.info("Initialized learner %s (%s)", username, user_id)
        return user

    def record_quiz_result(self, user_id: str, correct_answers: int, total_questions: int) -> None:
        current = self.storage.get_progress(user_id)
        if current is not None:
            updates = {
                "questions_answered": current.questions_answered + total_questions,
                "correct_answers": current.correct_answers + correct_answers,
                "quizzes_taken": current.quizzes_taken + 1,
            }
        else:
            updates = {
                "questions_answered": total_questions,
                "correct_answers": correct_answers,
                "quizzes_taken": 1,
            }
        self.storage.update_progress(user_id, updates)

    def dashboard(self, user_id: str) -> DashboardSnapshot:
        try:
            return DashboardSnapshot(
                user=self.storage.get_user(user_id),
                progress=self.storage.get_progress(user_id),
                settings=self.storage.get_settings(user_id),
            )
        except StorageError as exc:
            logger.error("Failed to load dashboard data for %s: %s", user_id, exc)
            return DashboardSnapshot(user=None, progress=None, settings=None)

    def update_preferences(self, user_id: str, preferences: Dict[str, Any]) -> None:
        self.storage.update_settings(user_id, preferences)

    def login(self, user_id: str) -> None:
        self.storage.set_session({"userId": user_id, "loginTime": _now().isoformat()})
        logger.info("Learner %s logged in", user_id)

    def logout(self) -> None:
        self.storage.clear_session()

    def current_user_id(self) -> Optional[str]:
        try:
            user_id = self.storage.get_session().get("userId")
        except StorageError as exc:
            logger.error("Failed to read session: %s", exc)
            return None
        return user_id if isinstance(user_id, str) and user_id else None

    def is_logged_in(self) -> bool:
        return self.current_user_id() is not None

    def storage_healthy(self) -> bool:
        available = self.storage.is_available()
        if not available:
            logger.warning("Primary storage is not available; calls will use the fallback storage")
        return available


__all__ = ["DEFAULT_PREFERENCES", "DashboardSnapshot", "LearnerDataManager"]
