"""Builds configured storage backends and caches the composed instance."""

from __future__ import annotations

import logging
import threading
from functools import lru_cache
from typing import Optional

from ..config import StorageConfig, get_settings
from .base import StorageBackend
from .errors import StorageConfigError
from .fallback import FallbackStorage
from .local import LocalStorageBackend
from .remote import RemoteStorageBackend

logger = logging.getLogger(__name__)


class StorageFactory:
    """Caller-owned handle producing a primary backend wrapped with its fallback."""

    def __init__(self, config: Optional[StorageConfig] = None) -> None:
        self._config = config or StorageConfig()
        self._instance: Optional[StorageBackend] = None
        self._lock = threading.Lock()

    @property
    def config(self) -> StorageConfig:
        return self._config

    def create_backend(self, kind: str, config: Optional[StorageConfig] = None) -> StorageBackend:
        config = config or self._config
        if kind == "local":
            return LocalStorageBackend(config.database_url)
        if kind == "cloud":
            return RemoteStorageBackend(
                config.api_base_url,
                timeout_ms=config.timeout,
                api_token=config.api_token,
                session_path=config.session_path,
            )
        raise StorageConfigError(f"Unsupported storage type: {kind}")

    def create_storage(self, config: Optional[StorageConfig] = None) -> StorageBackend:
        config = config or self._config
        primary = self.create_backend(config.type, config)
        secondary: Optional[StorageBackend] = None
        if config.fallback_type and config.fallback_type != config.type:
            secondary = self.create_backend(config.fallback_type, config)
        logger.info(
            "Created %s storage with %s fallback",
            config.type,
            config.fallback_type if secondary is not None else "no",
        )
        return FallbackStorage(primary, secondary)

    def get_instance(self) -> StorageBackend:
        with self._lock:
            if self._instance is None:
                self._instance = self.create_storage(self._config)
            return self._instance

    def reset_instance(self) -> None:
        with self._lock:
            instance, self._instance = self._instance, None
        if instance is not None:
            instance.close()


@lru_cache
def get_storage_factory() -> StorageFactory:
    return StorageFactory(get_settings().storage_config())


def get_storage() -> StorageBackend:
    return get_storage_factory().get_instance()


__all__ = ["StorageFactory", "get_storage", "get_storage_factory"]
