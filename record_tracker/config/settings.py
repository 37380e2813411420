"""Configuration settings for the record tracker."""

from enum import Enum
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RecordKind(str, Enum):
    """Which tracker the store holds."""

    JOB = "job"
    TICKET = "ticket"


class StoreBackend(str, Enum):
    """Where records are kept."""

    MEMORY = "memory"
    SQLITE = "sqlite"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings have defaults and can be overridden via environment
    variables or a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    record_kind: RecordKind = Field(
        default=RecordKind.JOB,
        description="Record kind: 'job' for applications, 'ticket' for helpdesk",
    )
    store_backend: StoreBackend = Field(
        default=StoreBackend.SQLITE,
        description="Storage backend: 'memory' or 'sqlite'",
    )

    # Paths
    db_path: Path = Field(
        default=Path("./data/records.db"),
        description="Path to the SQLite database",
    )
    export_path: Path = Field(
        default=Path("./data/records.csv"),
        description="Default CSV file for export/import",
    )

    # CSV
    csv_strict: bool = Field(
        default=True,
        description="Reject malformed CSV (True) or skip bad lines (False)",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR",
    )

    @field_validator("record_kind", "store_backend", mode="before")
    @classmethod
    def normalize_choice(cls, v: object) -> object:
        """Accept enum values in any case and with surrounding spaces."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a known level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if str(v).upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return str(v).upper()


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the application settings singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the settings singleton (useful for testing)."""
    global _settings
    _settings = None
