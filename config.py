"""
Configuration settings for word-recall.

Uses Pydantic Settings for environment variable management with .env file support.
Every variable is prefixed with RECALL_ (e.g. RECALL_DB_PATH).
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

Ordering = Literal["ordered", "shuffled"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="RECALL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Storage
    # ========================================
    db_path: Path = Field(
        default=Path.home() / ".recall" / "words.db",
        description="SQLite database holding words, folders and review history",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Minimum level written to stderr",
    )

    # ========================================
    # Session Composition
    # ========================================
    session_max_size: int = Field(
        default=10,
        ge=1,
        description="Maximum words in a normal-mode session",
    )
    session_new_ratio: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Share of a normal session drawn from new words",
    )
    session_review_ratio: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Share of a normal session drawn from needs-review words",
    )
    session_fallback_review_ratio: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Needs-review share when no new words remain",
    )

    # Ordering strategies ("ordered" keeps due-date priority, "shuffled" randomizes)
    session_bucket_ordering: Ordering = Field(
        default="shuffled",
        description="Order of a status bucket before its first N words are taken",
    )
    session_ordering_normal: Ordering = Field(default="shuffled")
    session_ordering_unseen: Ordering = Field(default="shuffled")
    session_ordering_learned: Ordering = Field(default="shuffled")

    random_seed: int | None = Field(
        default=None,
        description="Seed for reproducible sessions (unset = random)",
    )

    @model_validator(mode="after")
    def _check_ratios(self) -> Settings:
        if self.session_new_ratio + self.session_review_ratio > 1.0:
            raise ValueError("session_new_ratio + session_review_ratio must not exceed 1.0")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
