from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PublicConfig(BaseSettings):
    """
    Queue defaults and ambient knobs.

    Loaded from (in order):
      - process env
      - optional `.env` file
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- queue defaults ---
    default_capacity: int = Field(default=1, alias="TASKQ_DEFAULT_CAPACITY")
    # 0 disables the per-task timeout
    default_timeout_ms: int = Field(default=0, alias="TASKQ_DEFAULT_TIMEOUT_MS")
    # When set, clear() fails abandoned futures with TaskCleared instead of leaving them pending.
    clear_rejects: bool = Field(default=False, alias="TASKQ_CLEAR_REJECTS")

    # --- metrics ---
    metrics_enabled: bool = Field(default=True, alias="TASKQ_METRICS_ENABLED")

    # --- logging ---
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    # Unset keeps logs on stderr only.
    log_dir: Path | None = Field(default=None, alias="TASKQ_LOG_DIR")
    log_max_bytes: int = Field(default=5 * 1024 * 1024, alias="LOG_MAX_BYTES")
    log_backup_count: int = Field(default=3, alias="LOG_BACKUP_COUNT")
