"""Repositories translating records to ORM rows."""

from .records import RecordRepository, records

__all__ = ["RecordRepository", "records"]
