"""CSV reading, header auto-mapping and per-field coercion for import batches.

Responsibilities:
  * BOM removal and header whitespace stripping
  * Mapping header synonyms onto canonical wire field names per record type
  * Coercing booleans and progress counters, dropping empty values
  * Excluding rows that lack the record type's required fields
"""

from __future__ import annotations

import csv
import io
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..records import PROGRESS_COUNTERS, ImportBatch, ImportIssue, RecordType

logger = logging.getLogger(__name__)

_SHARED_SYNONYMS: Dict[str, Tuple[str, ...]] = {
    "username": ("username", "user_name", "user name", "name"),
    "email": ("email", "e-mail", "mail", "email address"),
    "createdAt": ("created_at", "createdat", "created", "created_date"),
    "questionsAnswered": ("questions_answered", "questionsanswered", "questions answered", "total_questions"),
    "correctAnswers": ("correct_answers", "correctanswers", "correct answers", "correct"),
    "quizzesTaken": ("quizzes_taken", "quizzestaken", "quizzes taken", "total_quizzes"),
    "goals": ("goals", "user_goals", "learning_goals"),
    "cumulativeStats": ("cumulative_stats", "cumulativestats", "stats", "statistics"),
    "lastUpdated": ("last_updated", "lastupdated", "updated_at", "modified", "last_modified"),
    "language": ("language", "lang", "locale"),
    "theme": ("theme", "ui_theme", "appearance"),
    "notificationFrequency": ("notification_frequency", "notificationfrequency", "notifications", "notify"),
    "isPrivate": ("is_private", "isprivate", "private", "visibility"),
}

_USER_ID_SYNONYMS = ("user_id", "userid", "user id", "uid")

FIELD_SYNONYMS: Dict[RecordType, Dict[str, Tuple[str, ...]]] = {
    "users": {"id": ("id",) + _USER_ID_SYNONYMS, **_SHARED_SYNONYMS},
    "progress": {
        "id": ("id", "progress_id", "progressid", "progress id"),
        "userId": _USER_ID_SYNONYMS,
        **_SHARED_SYNONYMS,
    },
    "settings": {"userId": _USER_ID_SYNONYMS, **_SHARED_SYNONYMS},
}

REQUIRED_FIELDS: Dict[RecordType, Tuple[str, ...]] = {
    "users": ("id", "username", "email"),
    "progress": ("id", "userId"),
    "settings": ("userId",),
}

_TRUE_VALUES = frozenset({"true", "1", "yes"})
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


@dataclass
class CsvIngestResult:
    batch: Optional[ImportBatch]
    issues: List[ImportIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.batch is not None and not self.issues


def _decode(raw: str | bytes) -> str:
    if isinstance(raw, bytes):
        if raw.startswith(b"\xef\xbb\xbf"):
            raw = raw[3:]
        return raw.decode("utf-8", errors="replace")
    if raw.startswith("\ufeff"):
        return raw[1:]
    return raw


def build_header_mapping(headers: List[str], record_type: RecordType) -> Dict[str, str]:
    """Map each raw header to its canonical field, or to itself (trimmed) when unknown."""
    lookup: Dict[str, str] = {}
    for canonical, synonyms in FIELD_SYNONYMS[record_type].items():
        for synonym in synonyms:
            lookup.setdefault(synonym, canonical)
    mapping: Dict[str, str] = {}
    for header in headers:
        trimmed = header.strip()
        mapping[header] = lookup.get(trimmed.lower(), trimmed)
    return mapping


def coerce_value(field_name: str, value: Optional[str]) -> Any:
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    if field_name == "isPrivate":
        return text.lower() in _TRUE_VALUES
    if field_name in PROGRESS_COUNTERS:
        match = _LEADING_INT.match(text)
        return int(match.group(1)) if match else 0
    return text


class CsvIngestor:
    """Turns CSV text for a single record type into an :class:`ImportBatch`."""

    def __init__(self, record_type: RecordType) -> None:
        if record_type not in REQUIRED_FIELDS:
            raise ValueError(f"Unsupported record type: {record_type}")
        self.record_type = record_type

    def ingest(self, raw: str | bytes) -> CsvIngestResult:
        text = _decode(raw)
        if not text.strip():
            return CsvIngestResult(batch=None, issues=[_issue("Invalid CSV: no data found", recoverable=False)])

        reader = csv.DictReader(io.StringIO(text, newline=""))
        try:
            headers = reader.fieldnames
            if not headers:
                return CsvIngestResult(batch=None, issues=[_issue("Invalid CSV: no data found", recoverable=False)])
            mapping = build_header_mapping(list(headers), self.record_type)
            records, issues = self._read_rows(reader, mapping)
        except csv.Error as exc:
            return CsvIngestResult(batch=None, issues=[_issue(f"CSV parsing error: {exc}", recoverable=False)])

        batch = ImportBatch.model_validate({self.record_type: records})
        logger.debug(
            "Parsed %d %s rows from CSV with %d issue(s)", len(records), self.record_type, len(issues)
        )
        return CsvIngestResult(batch=batch, issues=issues)

    def _read_rows(
        self, reader: csv.DictReader, mapping: Mapping[str, str]
    ) -> Tuple[List[Dict[str, Any]], List[ImportIssue]]:
        required = REQUIRED_FIELDS[self.record_type]
        records: List[Dict[str, Any]] = []
        issues: List[ImportIssue] = []
        for row in reader:
            cells = {key: value for key, value in row.items() if key is not None}
            if all(value is None or not value.strip() for value in cells.values()):
                continue
            record: Dict[str, Any] = {}
            for header, value in cells.items():
                canonical = mapping[header]
                coerced = coerce_value(canonical, value)
                if coerced is not None:
                    record[canonical] = coerced
            missing = [name for name in required if not record.get(name)]
            if missing:
                issues.append(
                    _issue(
                        f"Row {reader.line_num}: missing required fields for {self.record_type} "
                        f"({', '.join(missing)})",
                        recoverable=True,
                    )
                )
                continue
            records.append(record)
        return records, issues


def parse_csv(raw: str | bytes, record_type: RecordType) -> CsvIngestResult:
    return CsvIngestor(record_type).ingest(raw)


def _issue(message: str, *, recoverable: bool) -> ImportIssue:
    return ImportIssue(type="validation", message=message, recoverable=recoverable)


__all__ = [
    "FIELD_SYNONYMS",
    "REQUIRED_FIELDS",
    "CsvIngestResult",
    "CsvIngestor",
    "build_header_mapping",
    "coerce_value",
    "parse_csv",
]
