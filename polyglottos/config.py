import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings

StorageType = Literal["local", "cloud"]

DATA_DIR = Path("data")
DEFAULT_API_BASE_URL = "http://localhost:8787"
DEFAULT_TIMEOUT_MS = 5000
DEFAULT_LOCAL_DATABASE_URL = f"sqlite:///{DATA_DIR / 'polyglottos_local.db'}"
DEFAULT_SESSION_PATH = DATA_DIR / "session.json"


class StorageConfig(BaseModel):
    """Declarative description of a primary backend and its optional fallback."""

    type: StorageType = "local"
    fallback_type: Optional[StorageType] = None
    api_base_url: str = DEFAULT_API_BASE_URL
    timeout: int = Field(DEFAULT_TIMEOUT_MS, gt=0, description="Request timeout in milliseconds.")
    api_token: Optional[str] = None
    database_url: str = DEFAULT_LOCAL_DATABASE_URL
    session_path: Path = DEFAULT_SESSION_PATH


class Settings(BaseSettings):
    storage_type: StorageType = Field("local", alias="STORAGE_TYPE")
    storage_fallback_type: Optional[StorageType] = Field(None, alias="STORAGE_FALLBACK_TYPE")
    api_base_url: str = Field(DEFAULT_API_BASE_URL, alias="API_BASE_URL")
    api_token: Optional[str] = Field(None, alias="POLYGLOTTOS_API_TOKEN")
    storage_timeout_ms: int = Field(DEFAULT_TIMEOUT_MS, gt=0, alias="STORAGE_TIMEOUT")
    local_database_url: str = Field(DEFAULT_LOCAL_DATABASE_URL, alias="POLYGLOTTOS_LOCAL_DATABASE_URL")
    session_path: Path = Field(DEFAULT_SESSION_PATH, alias="POLYGLOTTOS_SESSION_PATH")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True

    def storage_config(self) -> StorageConfig:
        """Cloud deployments fall back to local storage and vice versa unless overridden."""
        fallback = self.storage_fallback_type
        if fallback is None:
            fallback = "local" if self.storage_type == "cloud" else "cloud"
        return StorageConfig(
            type=self.storage_type,
            fallback_type=fallback,
            api_base_url=self.api_base_url,
            timeout=self.storage_timeout_ms,
            api_token=self.api_token,
            database_url=self.local_database_url,
            session_path=self.session_path,
        )


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid storage configuration: {exc}") from exc
