"""Command line entry point for importing export files and migrating between backends.

Examples::

    python -m scripts.import_data import export.json --strategy merge
    python -m scripts.import_data import users.csv --record-type users --validate-only
    python -m scripts.import_data migrate --target-type cloud
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from polyglottos.config import get_settings
from polyglottos.importer import ImportOptions, ImportService
from polyglottos.logging_config import configure_logging
from polyglottos.records import RECORD_TYPES, ImportOutcome, ImportProgress
from polyglottos.storage import StorageError, StorageFactory

LOGGER = logging.getLogger("polyglottos.cli")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import learner data or migrate it between storage backends.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser("import", help="Import a JSON or CSV export into the configured storage.")
    import_parser.add_argument("file", type=Path, help="Path to the export file.")
    import_parser.add_argument(
        "--format",
        choices=("json", "csv"),
        default=None,
        help="Input format (default: inferred from the file extension).",
    )
    import_parser.add_argument(
        "--record-type",
        choices=RECORD_TYPES,
        default=None,
        help="Record type held by a CSV file.",
    )
    import_parser.add_argument(
        "--strategy",
        choices=("skip", "overwrite", "merge", "ask"),
        default=None,
        help="Conflict strategy for records that already exist (default: ask, which keeps existing records).",
    )
    import_parser.add_argument("--validate-only", action="store_true", help="Validate without writing anything.")

    migrate_parser = subparsers.add_parser("migrate", help="Copy the session user's data to another backend.")
    migrate_parser.add_argument("--target-type", choices=("cloud", "local"), default="cloud")
    migrate_parser.add_argument("--api-base-url", default=None, help="Override API_BASE_URL for the target.")
    migrate_parser.add_argument("--database-url", default=None, help="Override the local database URL for the target.")
    migrate_parser.add_argument("--strategy", choices=("skip", "overwrite", "merge", "ask"), default=None)
    return parser.parse_args(argv)


def _log_progress(progress: ImportProgress) -> None:
    LOGGER.info("[%s] %s (%d/%d)", progress.phase, progress.message, progress.current, progress.total)


def run_import(args: argparse.Namespace, factory: StorageFactory) -> ImportOutcome:
    fmt = args.format or ("csv" if args.file.suffix.lower() == ".csv" else "json")
    if fmt == "csv" and args.record_type is None:
        raise SystemExit("--record-type is required for CSV imports")
    content = args.file.read_bytes()
    service = ImportService(factory.get_instance())
    options = ImportOptions(
        merge_strategy=args.strategy,
        validate_only=args.validate_only,
        on_progress=_log_progress,
    )
    if fmt == "csv":
        return service.import_csv(content, args.record_type, options)
    return service.import_json(content, options)


def run_migrate(args: argparse.Namespace, factory: StorageFactory) -> ImportOutcome:
    updates = {}
    if args.api_base_url:
        updates["api_base_url"] = args.api_base_url
    if args.database_url:
        updates["database_url"] = args.database_url
    target_config = factory.config.model_copy(update=updates)
    target = factory.create_backend(args.target_type, target_config)
    try:
        service = ImportService(factory.get_instance())
        options = ImportOptions(merge_strategy=args.strategy, on_progress=_log_progress)
        return service.migrate_to_cloud(target, options)
    finally:
        target.close()


def main(argv: Optional[list[str]] = None, factory: Optional[StorageFactory] = None) -> int:
    configure_logging()
    args = parse_args(argv)
    factory = factory or StorageFactory(get_settings().storage_config())
    try:
        if args.command == "import":
            outcome = run_import(args, factory)
        else:
            outcome = run_migrate(args, factory)
    except (OSError, StorageError) as exc:
        LOGGER.error("%s failed: %s", args.command, exc)
        return 1
    finally:
        factory.reset_instance()

    print(json.dumps(outcome.model_dump(mode="json"), indent=2))
    return 0 if outcome.success else 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
