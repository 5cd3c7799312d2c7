"""Typed failures raised by storage backends."""

from __future__ import annotations

from typing import Optional

GET_ERROR = "GET_ERROR"
SET_ERROR = "SET_ERROR"
DELETE_ERROR = "DELETE_ERROR"
DB_OPEN_ERROR = "DB_OPEN_ERROR"
CLEAR_ERROR = "CLEAR_ERROR"
API_ERROR = "API_ERROR"
TIMEOUT_ERROR = "TIMEOUT_ERROR"
NETWORK_ERROR = "NETWORK_ERROR"
SESSION_ERROR = "SESSION_ERROR"
UNSUPPORTED_OPERATION = "UNSUPPORTED_OPERATION"
CONFIG_ERROR = "CONFIG_ERROR"


class StorageError(RuntimeError):
    """Backend failure with a stable ``code`` and a retry hint."""

    def __init__(
        self,
        message: str,
        code: str,
        *,
        recoverable: bool = False,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.recoverable = recoverable
        self.status_code = status_code

    def __repr__(self) -> str:
        return f"StorageError(code={self.code!r}, recoverable={self.recoverable}, message={str(self)!r})"


class StorageConfigError(StorageError):
    def __init__(self, message: str) -> None:
        super().__init__(message, CONFIG_ERROR, recoverable=False)


__all__ = [
    "API_ERROR",
    "CLEAR_ERROR",
    "CONFIG_ERROR",
    "DB_OPEN_ERROR",
    "DELETE_ERROR",
    "GET_ERROR",
    "NETWORK_ERROR",
    "SESSION_ERROR",
    "SET_ERROR",
    "TIMEOUT_ERROR",
    "UNSUPPORTED_OPERATION",
    "StorageConfigError",
    "StorageError",
]
