"""JSON file that keeps session state on the device for the remote backend."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path

from ..config import DEFAULT_SESSION_PATH
from ..records import SessionRecord
from .errors import SESSION_ERROR, StorageError

logger = logging.getLogger(__name__)


class SessionFileStore:
    def __init__(self, path: Path = DEFAULT_SESSION_PATH) -> None:
        self._path = Path(path)
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> SessionRecord:
        with self._lock:
            if not self._path.exists():
                return {}
            try:
                with self._path.open("r", encoding="utf-8") as handle:
                    payload = json.load(handle)
            except (OSError, ValueError) as exc:
                logger.error("Error reading session from %s: %s", self._path, exc)
                return {}
        return payload if isinstance(payload, dict) else {}

    def save(self, session: SessionRecord) -> None:
        with self._lock:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with self._path.open("w", encoding="utf-8") as handle:
                    json.dump(dict(session), handle, indent=2)
            except (OSError, TypeError, ValueError) as exc:
                raise StorageError(
                    f"Failed to save session data: {exc}", SESSION_ERROR, recoverable=True
                ) from exc

    def clear(self) -> None:
        with self._lock:
            try:
                self._path.unlink(missing_ok=True)
            except OSError as exc:
                raise StorageError(
                    f"Failed to clear session data: {exc}", SESSION_ERROR, recoverable=True
                ) from exc


__all__ = ["SessionFileStore"]
