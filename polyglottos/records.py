"""Record models shared by the storage backends and the import pipeline.

Attributes are snake_case in Python; the wire form used by JSON exports, the
remote API and canonical CSV fields is camelCase.  Both spellings are accepted
when validating input.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Mapping, Optional, Type, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

RecordType = Literal["users", "progress", "settings"]
ConflictType = Literal["user", "progress", "settings"]
MergeStrategy = Literal["skip", "overwrite", "merge", "ask"]
ConflictResolution = Literal["keep_existing", "use_incoming", "merge"]
IssueType = Literal["validation", "merge", "storage"]
ImportPhase = Literal["validating", "processing", "complete"]

RECORD_TYPES: tuple[RecordType, ...] = ("users", "progress", "settings")
CONFLICT_RESOLUTIONS: frozenset[str] = frozenset({"keep_existing", "use_incoming", "merge"})
PROGRESS_COUNTERS: tuple[str, ...] = ("questionsAnswered", "correctAnswers", "quizzesTaken")

SessionRecord = Dict[str, Any]

_RecordT = TypeVar("_RecordT", bound="WireModel")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def new_progress_id(user_id: str) -> str:
    return f"progress_{user_id}_{uuid4().hex[:12]}"


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def wire_keys(cls, updates: Mapping[str, Any]) -> Dict[str, Any]:
        """Translate attribute names in ``updates`` to their wire aliases."""
        translated: Dict[str, Any] = {}
        for key, value in updates.items():
            field = cls.model_fields.get(key)
            translated[(field.alias or key) if field else key] = value
        return translated


def _ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class UserRecord(WireModel):
    id: str
    username: str
    email: str
    created_at: Optional[datetime] = None

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _ensure_utc(value)


class ProgressRecord(WireModel):
    id: str
    user_id: str
    questions_answered: int = 0
    correct_answers: int = 0
    quizzes_taken: int = 0
    goals: Optional[str] = None
    cumulative_stats: Optional[str] = None
    last_updated: datetime = Field(default_factory=_now)

    @field_validator("last_updated")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        return _ensure_utc(value)  # type: ignore[return-value]


class SettingsRecord(WireModel):
    """Typed core settings; unknown keys are kept in ``model_extra``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    user_id: str
    language: Optional[str] = None
    theme: Optional[str] = None
    notification_frequency: Optional[str] = None
    is_private: Optional[bool] = None

    @property
    def extensions(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


class ImportMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    version: Optional[str] = None
    export_date: Optional[str] = Field(None, alias="exportDate")
    format: Optional[Literal["json", "csv"]] = None


def _dump_records(value: Any) -> Any:
    if isinstance(value, list):
        return [item.to_wire() if isinstance(item, WireModel) else item for item in value]
    return value


class ImportBatch(BaseModel):
    """External records awaiting validation, kept in their raw wire form.

    Entries are not checked here; non-object entries are reported by the
    validator so that every problem in a batch is listed at once.
    """

    metadata: Optional[ImportMetadata] = None
    users: Optional[List[Any]] = None
    progress: Optional[List[Any]] = None
    settings: Optional[List[Any]] = None

    @field_validator("users", "progress", "settings", mode="before")
    @classmethod
    def dump_record_models(cls, value: Any) -> Any:
        return _dump_records(value)

    def records(self, record_type: RecordType) -> List[Any]:
        return list(getattr(self, record_type) or [])

    def is_empty(self) -> bool:
        return not any(self.records(record_type) for record_type in RECORD_TYPES)


class ImportIssue(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: IssueType
    field: Optional[str] = None
    message: str
    recoverable: bool


class ConflictRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: ConflictType
    id: str
    existing: Dict[str, Any]
    incoming: Dict[str, Any]
    resolution: Optional[ConflictResolution] = None


class RecordCounts(BaseModel):
    model_config = ConfigDict(frozen=True)

    users: int = 0
    progress: int = 0
    settings: int = 0


class ImportOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    imported: RecordCounts = Field(default_factory=RecordCounts)
    skipped: RecordCounts = Field(default_factory=RecordCounts)
    errors: List[ImportIssue] = Field(default_factory=list)
    conflicts: List[ConflictRecord] = Field(default_factory=list)

    @classmethod
    def failed(cls, *issues: ImportIssue) -> "ImportOutcome":
        return cls(success=False, errors=list(issues))


class ImportProgress(BaseModel):
    model_config = ConfigDict(frozen=True)

    phase: ImportPhase
    current: int
    total: int
    message: str


def parse_record(model: Type[_RecordT], payload: Mapping[str, Any]) -> _RecordT:
    return model.model_validate(dict(payload))


__all__ = [
    "CONFLICT_RESOLUTIONS",
    "PROGRESS_COUNTERS",
    "RECORD_TYPES",
    "ConflictRecord",
    "ConflictResolution",
    "ConflictType",
    "ImportBatch",
    "ImportIssue",
    "ImportMetadata",
    "ImportOutcome",
    "ImportPhase",
    "ImportProgress",
    "IssueType",
    "MergeStrategy",
    "ProgressRecord",
    "RecordCounts",
    "RecordType",
    "SessionRecord",
    "SettingsRecord",
    "UserRecord",
    "WireModel",
    "new_progress_id",
    "parse_record",
]
