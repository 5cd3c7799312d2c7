"""ORM models backing the local embedded store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from .base import Base

JSONType = JSON

LOCAL_SCHEMA_VERSION = 1
SCHEMA_VERSION_KEY = "schema_version"
CURRENT_SESSION_KEY = "current"


class UserModel(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    username: Mapped[str] = mapped_column(String(256), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class ProgressModel(Base):
    __tablename__ = "progress"
    __table_args__ = (Index("ix_progress_user_id", "user_id", unique=True),)

    id: Mapped[str] = mapped_column(String(160), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    questions_answered: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    correct_answers: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    quizzes_taken: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    goals: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cumulative_stats: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )


class SettingsModel(Base):
    __tablename__ = "settings"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    language: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    theme: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    notification_frequency: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    is_private: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    extra: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)


class SessionStateModel(Base):
    __tablename__ = "session_state"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)


class StorageMetadataModel(Base):
    __tablename__ = "storage_metadata"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(String(256), nullable=False)


RECORD_TABLES = (UserModel, ProgressModel, SettingsModel, SessionStateModel)

__all__ = [
    "CURRENT_SESSION_KEY",
    "LOCAL_SCHEMA_VERSION",
    "ProgressModel",
    "RECORD_TABLES",
    "SCHEMA_VERSION_KEY",
    "SessionStateModel",
    "SettingsModel",
    "StorageMetadataModel",
    "UserModel",
]
