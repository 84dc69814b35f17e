"""
Runtime configuration for Living Triples.

Values come from (highest priority first):
- explicit keyword arguments to ``Settings(...)``
- ``LIVINGTRIPLES_*`` environment variables
- a ``.env`` file in the working directory
- the defaults below
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Pipeline settings with validation."""

    # Normalizer
    min_document_bytes: int = Field(
        default=50, description="Documents this size or smaller are skipped"
    )
    max_document_bytes: int = Field(
        default=10_000_000, description="Documents this size or larger are skipped"
    )

    # Evolution
    survival_threshold: float = Field(default=0.3, description="Survive iff fitness >= threshold")
    generations: int = Field(default=1, description="Evolutionary passes per run")

    # Batch
    max_workers: int = Field(default=4, description="Per-document worker threads")
    batch_deadline_seconds: Optional[float] = Field(
        default=None, description="Whole-batch deadline; None means no deadline"
    )

    # Rules
    rules_path: Optional[Path] = Field(
        default=None, description="JSON rule catalogue; built-in catalogue when unset"
    )

    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_prefix="LIVINGTRIPLES_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("survival_threshold")
    @classmethod
    def validate_threshold(cls, v):
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"survival_threshold must be within [0, 1], got {v}")
        return v

    @field_validator("generations", "max_workers")
    @classmethod
    def validate_positive(cls, v, info):
        if v < 1:
            raise ValueError(f"{info.field_name} must be at least 1, got {v}")
        return v

    @field_validator("min_document_bytes")
    @classmethod
    def validate_min_bytes(cls, v):
        if v < 0:
            raise ValueError("min_document_bytes cannot be negative")
        return v

    @field_validator("batch_deadline_seconds")
    @classmethod
    def validate_deadline(cls, v):
        if v is not None and v <= 0:
            raise ValueError("batch_deadline_seconds must be positive when set")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {v}. Must be one of {', '.join(LOG_LEVELS)}")
        return level

    @model_validator(mode="after")
    def validate_size_window(self):
        if self.max_document_bytes <= self.min_document_bytes + 1:
            raise ValueError("max_document_bytes must leave room above min_document_bytes")
        return self


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
