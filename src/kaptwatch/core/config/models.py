"""
Pydantic configuration models for KaptWatch.

These models provide type-safe configuration with validation for:
- The K-apt listing source (request shape, paging, politeness)
- Storage
- Logging
- Scheduled synchronization
"""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Source Configuration
# =============================================================================


DEFAULT_REGION_CODES: dict[str, str] = {
    "11": "서울",
    "28": "인천",
    "41": "경기",
    "42": "강원",
    "43": "충북",
    "44": "충남",
}

DEFAULT_CATEGORY_CODES: dict[str, str] = {
    "02": "사업자",
    "03": "용역",
    "04": "경비",
}


class SourceConfig(BaseModel):
    """The K-apt notice listing and how it is paged."""

    base_url: str = Field(
        default="https://www.k-apt.go.kr",
        description="Origin of the listing site",
    )
    list_path: str = Field(
        default="/bid/bidList.do",
        description="Path of the notice list page",
    )
    region_codes: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_REGION_CODES),
        description="Region code -> label, all sent in one request",
    )
    category_codes: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_CATEGORY_CODES),
        description="Category code -> label (up to three)",
    )
    page_size: int = Field(
        default=10,
        ge=1,
        description="Rows the source renders per full page",
    )
    max_pages: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Hard cap on pages fetched per run",
    )
    page_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Fixed delay between successive page fetches",
    )
    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Request timeout in seconds",
    )
    lookback_months: int = Field(
        default=1,
        ge=1,
        le=12,
        description="Calendar months covered by the date window",
    )
    timezone: str = Field(
        default="Asia/Seoul",
        description="Timezone used for the date window",
    )
    user_agent: str | None = Field(
        default=None,
        description="Custom User-Agent (default: desktop Chrome)",
    )

    @field_validator("category_codes")
    @classmethod
    def at_most_three_categories(cls, v: dict[str, str]) -> dict[str, str]:
        """The listing form only has three category slots."""
        if len(v) > 3:
            raise ValueError("at most three category codes are supported")
        return v

    @property
    def list_url(self) -> str:
        return self.base_url.rstrip("/") + self.list_path


# =============================================================================
# Storage Configuration
# =============================================================================


class StorageConfig(BaseModel):
    """Key/value store settings."""

    url: str = Field(
        default="sqlite:///data/kaptwatch.db",
        description="SQLAlchemy database URL",
    )
    echo: bool = Field(
        default=False,
        description="Echo SQL statements (debugging)",
    )
    backups_to_keep: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Previous values kept per key",
    )
    sync_log_limit: int = Field(
        default=1000,
        ge=1,
        description="Maximum sync log entries retained",
    )


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    file: Path | None = Field(
        default=Path("logs/kaptwatch.log"),
        description="Log file path",
    )
    json_format: bool = Field(
        default=True,
        description="Use JSON format for file logs",
    )
    rich_console: bool = Field(
        default=True,
        description="Use Rich for console output",
    )


# =============================================================================
# Schedule Configuration
# =============================================================================


_TIME_OF_DAY = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


class ScheduleConfig(BaseModel):
    """Fixed daily synchronization times."""

    enabled: bool = Field(
        default=True,
        description="Whether scheduled syncs run",
    )
    times: list[str] = Field(
        default_factory=lambda: ["09:00", "17:00"],
        description="Times of day (HH:MM) to run a sync",
    )
    timezone: str = Field(
        default="Asia/Seoul",
        description="Timezone for schedule",
    )

    @field_validator("times")
    @classmethod
    def valid_times(cls, v: list[str]) -> list[str]:
        for value in v:
            if not _TIME_OF_DAY.match(value):
                raise ValueError(f"invalid time of day: {value!r} (expected HH:MM)")
        return v

    def parsed_times(self) -> list[tuple[int, int]]:
        """(hour, minute) pairs in configured order."""
        result = []
        for value in self.times:
            hour, minute = value.split(":")
            result.append((int(hour), int(minute)))
        return result


# =============================================================================
# Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """Root application configuration.

    This is the main configuration object loaded from app.yaml.
    """

    # Paths
    config_dir: Path = Field(
        default=Path("configs"),
        description="Configuration directory",
    )
    data_dir: Path = Field(
        default=Path("data"),
        description="Data storage directory",
    )

    # Components
    source: SourceConfig = Field(default_factory=SourceConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        for dir_path in [self.config_dir, self.data_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)

        if self.logging.file:
            self.logging.file.parent.mkdir(parents=True, exist_ok=True)
