"""Storage backends sharing one capability interface."""

from .base import StorageBackend
from .errors import StorageConfigError, StorageError
from .factory import StorageFactory, get_storage, get_storage_factory
from .fallback import FallbackStorage
from .local import LocalStorageBackend
from .remote import RemoteStorageBackend
from .session_file import SessionFileStore

__all__ = [
    "FallbackStorage",
    "LocalStorageBackend",
    "RemoteStorageBackend",
    "SessionFileStore",
    "StorageBackend",
    "StorageConfigError",
    "StorageError",
    "StorageFactory",
    "get_storage",
    "get_storage_factory",
]
