"""Merge engine configuration loaded from environment variables."""

from __future__ import annotations

import logging
from enum import Enum

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class Settings(BaseSettings):
    """Engine settings loaded from environment variables with MERGE_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="MERGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    debug: bool = False

    # Database
    database_url: SecretStr | None = None

    # Synthesis
    max_key_columns: int = Field(default=100, ge=1)
    rank_column: str = "_merge_rn"
    audit_table_suffix: str = "_MergeAudit"

    # Metadata
    metadata_property: str = "lastUpdate"

    # Logging
    structured_logging: bool = False
    log_level: LogLevel = LogLevel.INFO

    @field_validator("database_url", mode="before")
    @classmethod
    def mask_url_in_repr(cls, v: str | None) -> SecretStr | None:
        if v is None:
            return None
        if isinstance(v, SecretStr):
            return v
        return SecretStr(v)

    @field_validator("rank_column", "audit_table_suffix", "metadata_property")
    @classmethod
    def reject_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    def is_database_configured(self) -> bool:
        return self.database_url is not None


def load_settings(**overrides: object) -> Settings:
    """Load settings from environment, with optional overrides for testing."""
    settings = Settings(**overrides)  # type: ignore[arg-type]

    if settings.debug:
        logger.info("Loaded merge engine settings (max_key_columns=%d)", settings.max_key_columns)

    return settings
