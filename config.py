"""
Configuration settings for the scenario trainer.

Uses Pydantic Settings for environment variable management with .env file support.
Every field can be overridden with a TRAINER_-prefixed environment variable,
e.g. TRAINER_QUESTION_MAX_ATTEMPTS=5.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TRAINER_",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Training
    # ========================================
    training_id: str = Field(
        default="training",
        description="Training id used when a catalog does not declare one",
    )

    # ─── Scenario Behaviour ─────────────────────────────────────────────────────
    question_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts allowed before a question closes as failed",
    )
    text_read_min_seconds: float = Field(
        default=5.0,
        ge=0.0,
        description="Display time (seconds) after which a text counts as read",
    )
    text_read_scroll_percent: float = Field(
        default=70.0,
        ge=0.0,
        le=100.0,
        description="Scroll depth (percent) after which a text counts as read",
    )

    # ========================================
    # Analytics Export
    # ========================================
    export_dir: Path = Field(
        default=Path("outputs/analytics"),
        description="Directory the JSON file sink writes session documents to",
    )
    export_indent: int | None = Field(
        default=2,
        description="JSON indent for exported documents (None for compact output)",
    )
    auto_export_on_completion: bool = Field(
        default=True,
        description="Export and deliver the session document on completion or abandon",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional log file path (rotated by loguru)",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
