"""Database-backed repository for user, progress, settings and session rows."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ..db.models import (
    CURRENT_SESSION_KEY,
    RECORD_TABLES,
    ProgressModel,
    SessionStateModel,
    SettingsModel,
    UserModel,
)
from ..records import ProgressRecord, SessionRecord, SettingsRecord, UserRecord


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back out.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RecordRepository:
    """Persistence helper mapping wire records onto ORM rows."""

    # Users

    def get_user(self, session: Session, user_id: str) -> Optional[UserRecord]:
        model = session.get(UserModel, user_id)
        if model is None:
            return None
        return UserRecord(
            id=model.id,
            username=model.username,
            email=model.email,
            created_at=_as_utc(model.created_at),
        )

    def upsert_user(self, session: Session, user: UserRecord) -> None:
        model = session.get(UserModel, user.id)
        if model is None:
            model = UserModel(id=user.id)
            session.add(model)
        model.username = user.username
        model.email = user.email
        model.created_at = user.created_at
        session.flush()

    def delete_user_data(self, session: Session, user_id: str) -> None:
        session.execute(delete(ProgressModel).where(ProgressModel.user_id == user_id))
        session.execute(delete(SettingsModel).where(SettingsModel.user_id == user_id))
        session.execute(delete(UserModel).where(UserModel.id == user_id))

    # Progress

    def get_progress(self, session: Session, user_id: str) -> Optional[ProgressRecord]:
        stmt = select(ProgressModel).where(ProgressModel.user_id == user_id)
        model = session.execute(stmt).scalar_one_or_none()
        if model is None:
            return None
        return ProgressRecord(
            id=model.id,
            user_id=model.user_id,
            questions_answered=model.questions_answered,
            correct_answers=model.correct_answers,
            quizzes_taken=model.quizzes_taken,
            goals=model.goals,
            cumulative_stats=model.cumulative_stats,
            last_updated=_as_utc(model.last_updated),
        )

    def upsert_progress(self, session: Session, progress: ProgressRecord) -> None:
        """Store ``progress`` as the single row for its user, replacing any previous id."""
        stmt = select(ProgressModel).where(ProgressModel.user_id == progress.user_id)
        model = session.execute(stmt).scalar_one_or_none()
        if model is not None and model.id != progress.id:
            session.delete(model)
            session.flush()
            model = None
        if model is None:
            model = ProgressModel(id=progress.id, user_id=progress.user_id)
            session.add(model)
        model.questions_answered = progress.questions_answered
        model.correct_answers = progress.correct_answers
        model.quizzes_taken = progress.quizzes_taken
        model.goals = progress.goals
        model.cumulative_stats = progress.cumulative_stats
        model.last_updated = progress.last_updated
        session.flush()

    # Settings

    def get_settings(self, session: Session, user_id: str) -> Optional[SettingsRecord]:
        model = session.get(SettingsModel, user_id)
        if model is None:
            return None
        payload: Dict[str, Any] = dict(model.extra or {})
        payload.update(
            userId=model.user_id,
            language=model.language,
            theme=model.theme,
            notificationFrequency=model.notification_frequency,
            isPrivate=model.is_private,
        )
        return SettingsRecord.model_validate(payload)

    def upsert_settings(self, session: Session, settings: SettingsRecord) -> None:
        model = session.get(SettingsModel, settings.user_id)
        if model is None:
            model = SettingsModel(user_id=settings.user_id)
            session.add(model)
        model.language = settings.language
        model.theme = settings.theme
        model.notification_frequency = settings.notification_frequency
        model.is_private = settings.is_private
        model.extra = settings.extensions
        session.flush()

    # Session

    def get_session_state(self, session: Session) -> SessionRecord:
        model = session.get(SessionStateModel, CURRENT_SESSION_KEY)
        return dict(model.data) if model is not None and model.data else {}

    def set_session_state(self, session: Session, data: SessionRecord) -> None:
        model = session.get(SessionStateModel, CURRENT_SESSION_KEY)
        if model is None:
            model = SessionStateModel(key=CURRENT_SESSION_KEY)
            session.add(model)
        model.data = dict(data)
        session.flush()

    def clear_session_state(self, session: Session) -> None:
        session.execute(delete(SessionStateModel).where(SessionStateModel.key == CURRENT_SESSION_KEY))

    def clear_all(self, session: Session) -> None:
        for table in RECORD_TABLES:
            session.execute(delete(table))


records = RecordRepository()

__all__ = ["RecordRepository", "records"]
