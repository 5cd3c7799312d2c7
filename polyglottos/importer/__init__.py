"""Import pipeline: CSV ingestion, batch validation and merge orchestration."""

from .csv_ingest import CsvIngestor, CsvIngestResult, parse_csv
from .service import ImportOptions, ImportService
from .validation import BatchValidator, ValidationReport, validate_json

__all__ = [
    "BatchValidator",
    "CsvIngestResult",
    "CsvIngestor",
    "ImportOptions",
    "ImportService",
    "ValidationReport",
    "parse_csv",
    "validate_json",
]
