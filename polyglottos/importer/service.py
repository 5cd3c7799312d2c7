"""Import orchestration: validation, conflict resolution and per-record writes."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Type, Union

from pydantic import ValidationError

from ..records import (
    CONFLICT_RESOLUTIONS,
    PROGRESS_COUNTERS,
    RECORD_TYPES,
    ConflictRecord,
    ConflictResolution,
    ConflictType,
    ImportBatch,
    ImportIssue,
    ImportOutcome,
    ImportPhase,
    ImportProgress,
    MergeStrategy,
    ProgressRecord,
    RecordCounts,
    RecordType,
    SettingsRecord,
    UserRecord,
    WireModel,
)
from ..storage.base import StorageBackend
from ..telemetry import IMPORT_COMPLETED, MIGRATION_COMPLETED, emit_event
from .csv_ingest import parse_csv
from .validation import BatchValidator, has_blocking_issue, load_batch

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ImportProgress], None]
ConflictCallback = Callable[[ConflictRecord], ConflictResolution]


@dataclass
class ImportOptions:
    merge_strategy: Optional[MergeStrategy] = None
    validate_only: bool = False
    on_progress: Optional[ProgressCallback] = None
    on_conflict: Optional[ConflictCallback] = None


@dataclass(frozen=True)
class _RecordKind:
    conflict_type: ConflictType
    model: Type[WireModel]
    key_attr: str
    getter: str
    setter: str
    label: str


_KINDS: Dict[RecordType, _RecordKind] = {
    "users": _RecordKind("user", UserRecord, "id", "get_user", "set_user", "user"),
    "progress": _RecordKind("progress", ProgressRecord, "user_id", "get_progress", "set_progress", "progress"),
    "settings": _RecordKind("settings", SettingsRecord, "user_id", "get_settings", "set_settings", "settings"),
}


class _UnresolvedConflict(Exception):
    pass


class ImportService:
    """Imports external records into ``storage``; holds no state between calls."""

    def __init__(self, storage: StorageBackend) -> None:
        self.storage = storage
        self._validator = BatchValidator()

    # Entry points

    def import_json(self, text: str | bytes, options: Optional[ImportOptions] = None) -> ImportOutcome:
        try:
            batch = load_batch(text)
        except ValueError as exc:
            return ImportOutcome.failed(
                ImportIssue(type="validation", message=f"Invalid JSON: {exc}", recoverable=False)
            )
        return self.import_data(batch, options)

    def import_csv(
        self,
        text: str | bytes,
        record_type: RecordType,
        options: Optional[ImportOptions] = None,
    ) -> ImportOutcome:
        result = parse_csv(text, record_type)
        if result.batch is None or result.issues:
            return ImportOutcome.failed(*result.issues)
        return self.import_data(result.batch, options)

    def import_data(
        self,
        batch: Union[ImportBatch, Mapping[str, Any]],
        options: Optional[ImportOptions] = None,
    ) -> ImportOutcome:
        options = options or ImportOptions()
        if not isinstance(batch, ImportBatch):
            try:
                batch = ImportBatch.model_validate(batch)
            except ValidationError as exc:
                return ImportOutcome.failed(
                    ImportIssue(
                        type="validation",
                        message=f"Invalid import data format: {exc.errors()[0]['msg']}",
                        recoverable=False,
                    )
                )

        self._report(options, "validating", 0, 1, "Validating import data...")
        issues = self._validator.validate(batch)
        if has_blocking_issue(issues):
            logger.info("Import rejected with %d validation issue(s)", len(issues))
            return ImportOutcome(success=False, errors=issues)
        if options.validate_only:
            return ImportOutcome(success=True, errors=issues)

        strategy: MergeStrategy = options.merge_strategy or "ask"
        imported: Counter[str] = Counter()
        skipped: Counter[str] = Counter()
        errors: List[ImportIssue] = list(issues)
        conflicts: List[ConflictRecord] = []

        for record_type in RECORD_TYPES:
            records = batch.records(record_type)
            if not records:
                continue
            self._report(options, "processing", 0, len(records), f"Importing {record_type}...")
            for index, raw in enumerate(records):
                if self._import_record(record_type, index, raw, strategy, options, errors, conflicts):
                    imported[record_type] += 1
                else:
                    skipped[record_type] += 1

        self._report(options, "complete", 1, 1, "Import complete")
        outcome = ImportOutcome(
            success=True,
            imported=RecordCounts(**imported),
            skipped=RecordCounts(**skipped),
            errors=errors,
            conflicts=conflicts,
        )
        emit_event(
            IMPORT_COMPLETED,
            strategy=strategy,
            imported=outcome.imported,
            skipped=outcome.skipped,
            issues=len(errors),
            conflicts=len(conflicts),
        )
        return outcome

    def migrate_to_cloud(self, target: StorageBackend, options: Optional[ImportOptions] = None) -> ImportOutcome:
        """Copy the current session user's records from this service's storage into ``target``."""
        options = options or ImportOptions()
        self._report(options, "validating", 0, 1, "Preparing migration...")
        try:
            batch = self._export_session_user()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Migration aborted while reading source storage: %s", exc)
            return ImportOutcome.failed(
                ImportIssue(type="storage", message=f"Migration failed: {exc}", recoverable=False)
            )

        if batch.is_empty():
            logger.info("Nothing to migrate: no session user data found")
            outcome = ImportOutcome(success=True)
        else:
            migration_options = replace(options, merge_strategy=options.merge_strategy or "merge")
            outcome = ImportService(target).import_data(batch, migration_options)

        emit_event(
            MIGRATION_COMPLETED,
            success=outcome.success,
            imported=outcome.imported,
            skipped=outcome.skipped,
            target=type(target).__name__,
        )
        return outcome

    # Internals

    def _export_session_user(self) -> ImportBatch:
        session = self.storage.get_session()
        user_id = session.get("userId")
        if not isinstance(user_id, str) or not user_id:
            return ImportBatch()
        user = self.storage.get_user(user_id)
        progress = self.storage.get_progress(user_id)
        settings = self.storage.get_settings(user_id)
        return ImportBatch(
            users=[user] if user is not None else [],
            progress=[progress] if progress is not None else [],
            settings=[settings] if settings is not None else [],
        )

    def _import_record(
        self,
        record_type: RecordType,
        index: int,
        raw: Mapping[str, Any],
        strategy: MergeStrategy,
        options: ImportOptions,
        errors: List[ImportIssue],
        conflicts: List[ConflictRecord],
    ) -> bool:
        """Import a single record; returns ``True`` when something was written."""
        kind = _KINDS[record_type]
        try:
            incoming = kind.model.model_validate(dict(raw))
        except ValidationError as exc:
            errors.append(
                ImportIssue(
                    type="validation",
                    field=f"{record_type}[{index}]",
                    message=f"Invalid {kind.label} record: {exc.errors()[0]['msg']}",
                    recoverable=True,
                )
            )
            return False

        key = getattr(incoming, kind.key_attr)
        try:
            existing = getattr(self.storage, kind.getter)(key)
            if existing is None:
                getattr(self.storage, kind.setter)(incoming)
                return True

            conflict = ConflictRecord(
                type=kind.conflict_type,
                id=key,
                existing=existing.to_wire(),
                incoming=incoming.to_wire(),
            )
            try:
                resolution = self._resolve(conflict, strategy, options)
            except _UnresolvedConflict as exc:
                conflicts.append(conflict)
                errors.append(
                    ImportIssue(
                        type="merge",
                        field=f"{kind.label}.{key}",
                        message=str(exc),
                        recoverable=True,
                    )
                )
                return False
            conflicts.append(conflict.model_copy(update={"resolution": resolution}))

            if resolution == "keep_existing":
                return False
            if resolution == "merge":
                try:
                    merged = _merge(kind, existing, incoming)
                except ValidationError as exc:
                    errors.append(
                        ImportIssue(
                            type="merge",
                            field=f"{kind.label}.{key}",
                            message=f"Could not merge {kind.label}: {exc.errors()[0]['msg']}",
                            recoverable=True,
                        )
                    )
                    return False
                getattr(self.storage, kind.setter)(merged)
            else:
                getattr(self.storage, kind.setter)(incoming)
            return True
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to import %s %s: %s", kind.label, key, exc)
            errors.append(
                ImportIssue(
                    type="storage",
                    field=f"{kind.label}.{key}",
                    message=f"Failed to import {kind.label}: {exc}",
                    recoverable=True,
                )
            )
            return False

    def _resolve(
        self, conflict: ConflictRecord, strategy: MergeStrategy, options: ImportOptions
    ) -> ConflictResolution:
        if strategy == "skip":
            return "keep_existing"
        if strategy == "overwrite":
            return "use_incoming"
        if strategy == "merge":
            return "merge"
        if options.on_conflict is None:
            logger.debug(
                "No conflict callback supplied for %s %s; keeping existing record",
                conflict.type,
                conflict.id,
            )
            return "keep_existing"
        try:
            answer = options.on_conflict(conflict)
        except Exception as exc:  # noqa: BLE001
            raise _UnresolvedConflict(f"Conflict callback failed for {conflict.type} {conflict.id}: {exc}") from exc
        if not isinstance(answer, str) or answer not in CONFLICT_RESOLUTIONS:
            raise _UnresolvedConflict(
                f"Conflict callback returned unsupported resolution {answer!r} for {conflict.type} {conflict.id}"
            )
        return answer

    @staticmethod
    def _report(options: ImportOptions, phase: ImportPhase, current: int, total: int, message: str) -> None:
        if options.on_progress is not None:
            options.on_progress(ImportProgress(phase=phase, current=current, total=total, message=message))


def _merge(kind: _RecordKind, existing: WireModel, incoming: WireModel) -> WireModel:
    if kind.model is ProgressRecord:
        payload = existing.to_wire()
        incoming_wire = incoming.to_wire()
        for counter in PROGRESS_COUNTERS:
            payload[counter] = payload.get(counter, 0) + incoming_wire.get(counter, 0)
        payload["lastUpdated"] = datetime.now(timezone.utc)
        return ProgressRecord.model_validate(payload)
    return kind.model.model_validate({**existing.to_wire(), **incoming.to_wire()})


__all__ = ["ConflictCallback", "ImportOptions", "ImportService", "ProgressCallback"]
