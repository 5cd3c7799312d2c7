"""Structural and semantic checks on import batches before anything is written."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from pydantic import ValidationError

from ..records import PROGRESS_COUNTERS, ImportBatch, ImportIssue, ProgressRecord, SettingsRecord, UserRecord

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")


@dataclass
class ValidationReport:
    valid: bool
    batch: Optional[ImportBatch] = None
    issues: List[ImportIssue] = field(default_factory=list)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def has_blocking_issue(issues: List[ImportIssue]) -> bool:
    return any(not issue.recoverable for issue in issues)


class BatchValidator:
    """Produces the list of issues found in a batch; the batch itself is never modified."""

    def validate(self, batch: ImportBatch) -> List[ImportIssue]:
        issues: List[ImportIssue] = []
        if batch.is_empty():
            issues.append(
                _issue(
                    None,
                    "Import data must contain at least one of: users, progress, or settings",
                    recoverable=False,
                )
            )
            return issues

        for index, user in enumerate(batch.records("users")):
            self._validate_user(user, index, issues)
        for index, progress in enumerate(batch.records("progress")):
            self._validate_progress(progress, index, issues)
        for index, settings in enumerate(batch.records("settings")):
            self._validate_settings(settings, index, issues)
        return issues

    def _validate_user(self, user: Any, index: int, issues: List[ImportIssue]) -> None:
        prefix = f"users[{index}]"
        if not isinstance(user, Mapping):
            issues.append(_issue(prefix, "User record must be an object", recoverable=False))
            return
        user = UserRecord.wire_keys(user)
        if not _non_empty_string(user.get("id")):
            issues.append(_issue(f"{prefix}.id", "User ID is required", recoverable=False))
        if not _non_empty_string(user.get("username")):
            issues.append(_issue(f"{prefix}.username", "Username is required", recoverable=False))
        email = user.get("email")
        if not _non_empty_string(email):
            issues.append(_issue(f"{prefix}.email", "Email is required", recoverable=False))
        elif not EMAIL_PATTERN.fullmatch(email):
            issues.append(_issue(f"{prefix}.email", "Invalid email format", recoverable=True))

    def _validate_progress(self, progress: Any, index: int, issues: List[ImportIssue]) -> None:
        prefix = f"progress[{index}]"
        if not isinstance(progress, Mapping):
            issues.append(_issue(prefix, "Progress record must be an object", recoverable=False))
            return
        progress = ProgressRecord.wire_keys(progress)
        if not _non_empty_string(progress.get("id")):
            issues.append(_issue(f"{prefix}.id", "Progress ID is required", recoverable=False))
        if not _non_empty_string(progress.get("userId")):
            issues.append(_issue(f"{prefix}.userId", "User ID is required for progress", recoverable=False))

        for counter in PROGRESS_COUNTERS:
            value = progress.get(counter)
            if not _is_number(value) or value < 0:
                issues.append(
                    _issue(
                        f"{prefix}.{counter}",
                        f"{_label(counter)} must be a non-negative number",
                        recoverable=True,
                    )
                )

        answered = progress.get("questionsAnswered", 0)
        correct = progress.get("correctAnswers", 0)
        if _is_number(answered) and _is_number(correct) and correct > answered:
            issues.append(
                _issue(prefix, "Correct answers cannot exceed questions answered", recoverable=True)
            )

    def _validate_settings(self, settings: Any, index: int, issues: List[ImportIssue]) -> None:
        prefix = f"settings[{index}]"
        if not isinstance(settings, Mapping):
            issues.append(_issue(prefix, "Settings record must be an object", recoverable=False))
            return
        settings = SettingsRecord.wire_keys(settings)
        if not _non_empty_string(settings.get("userId")):
            issues.append(_issue(f"{prefix}.userId", "User ID is required for settings", recoverable=False))


def load_batch(text: str | bytes) -> ImportBatch:
    """Parse a JSON export document into an :class:`ImportBatch`.

    Raises ``ValueError`` when the text is not JSON or does not have the
    export document's shape.
    """
    payload = json.loads(text)
    if not isinstance(payload, dict):
        raise ValueError("Invalid import data format: expected a JSON object")
    try:
        return ImportBatch.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(f"Invalid import data format: {exc.errors()[0]['msg']}") from exc


def validate_json(text: str | bytes) -> ValidationReport:
    try:
        batch = load_batch(text)
    except ValueError as exc:
        logger.debug("Rejected import document: %s", exc)
        return ValidationReport(
            valid=False,
            issues=[_issue(None, f"Invalid JSON: {exc}", recoverable=False)],
        )
    issues = BatchValidator().validate(batch)
    return ValidationReport(valid=not issues, batch=batch, issues=issues)


def _label(counter: str) -> str:
    return {
        "questionsAnswered": "Questions answered",
        "correctAnswers": "Correct answers",
        "quizzesTaken": "Quizzes taken",
    }[counter]


def _issue(field_name: Optional[str], message: str, *, recoverable: bool) -> ImportIssue:
    return ImportIssue(type="validation", field=field_name, message=message, recoverable=recoverable)


__all__ = [
    "EMAIL_PATTERN",
    "BatchValidator",
    "ValidationReport",
    "has_blocking_issue",
    "load_batch",
    "validate_json",
]
