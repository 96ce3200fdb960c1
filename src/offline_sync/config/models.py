from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ApiSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: str
    timeout_seconds: float = 30.0


class FileRotationSettings(BaseModel):
    """
    Date-based rotation settings (daily).

    This maps cleanly to Python's standard library TimedRotatingFileHandler behavior.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    backup_count: int = 7


class FileLoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = ""
    rotation: FileRotationSettings = FileRotationSettings()


class LoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    level: str = "INFO"
    file: FileLoggingSettings = FileLoggingSettings()


class CacheSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    # Entries older than stale_after are served but refetched
    stale_after_seconds: float = Field(default=300.0, ge=0)
    # Entries older than gc_after are dropped when the cache is hydrated
    gc_after_seconds: float = Field(default=86400.0, gt=0)


class RetrySettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: int = Field(default=3, ge=1)
    base_delay_seconds: float = Field(default=1.0, ge=0)
    max_delay_seconds: float = Field(default=30.0, ge=0)


class JobSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    poll_interval_seconds: float = Field(default=2.0, gt=0)
    max_background_polls: int = Field(default=30, ge=1)


class NetworkSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    debounce_seconds: float = Field(default=1.0, ge=0)


class StorageSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    data_dir: str = "data/store"


class AppConfig(BaseModel):
    """Effective runtime configuration after applying all precedence rules."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    api: ApiSettings
    logging: LoggingSettings = LoggingSettings()
    cache: CacheSettings = CacheSettings()
    retry: RetrySettings = RetrySettings()
    jobs: JobSettings = JobSettings()
    network: NetworkSettings = NetworkSettings()
    storage: StorageSettings = StorageSettings()


@dataclass(frozen=True, slots=True)
class ConfigLoadRequest:
    """
    Optional inputs for a configuration loader.

    Implementations may use these to control where configuration is read from.
    """

    yaml_path: str = "data/config/config.yaml"
    env_prefix: str = "SYNC__"
    dotenv_path: Optional[str] = "data/.env"
