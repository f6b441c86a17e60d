"""Settings and configuration management."""

import logging
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .analysis import GateThresholds, Severity

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Rewrite capability
    openrouter_api_key: Optional[str] = Field(None, description="OpenRouter")
    openrouter_base_url: str = Field(
        "https://openrouter.ai/api/v1", description="OpenRouter API base URL"
    )
    openrouter_timeout: float = Field(
        30.0, ge=5.0, le=120.0, description="OpenRouter API request timeout in seconds"
    )
    openrouter_min_request_interval: float = Field(
        3.2,
        ge=0.0,
        le=10.0,
        description="Minimum seconds between OpenRouter requests (free tier: 20 req/min)",
    )
    openrouter_max_backoff_multiplier: float = Field(
        8.0,
        ge=2.0,
        le=32.0,
        description="Maximum backoff multiplier for consecutive failures",
    )

    # Destination
    buttondown_api_key: Optional[str] = Field(None, description="Buttondown")
    buttondown_timeout: float = Field(
        15.0, ge=5.0, le=60.0, description="Buttondown API request timeout in seconds"
    )

    # Application Settings
    debug: bool = Field(False, description="Debug mode")
    log_level: str = Field("INFO", description="Log level")

    # Restoration
    attempt_policy_file: Optional[str] = Field(
        None, description="YAML file overriding the attempt policy table"
    )
    repair_threshold: Severity = Field(
        Severity.MEDIUM, description="Minimum issue severity that triggers repair"
    )
    chunk_concurrency: int = Field(
        3, ge=1, le=10, description="Concurrent rewrite calls within one attempt"
    )
    batch_workers: int = Field(
        2, ge=1, le=32, description="Drafts processed concurrently in a batch"
    )

    # Publish gate
    gate_min_length: int = Field(8000, ge=0, description="Minimum article length")
    gate_max_length: int = Field(50000, ge=1, description="Maximum article length")
    gate_min_quality_score: int = Field(
        70, ge=0, le=100, description="Minimum quality score for publication"
    )
    gate_excellent_quality_score: int = Field(
        85, ge=0, le=100, description="Score labelled as excellent quality"
    )
    gate_max_phrase_repetitions: int = Field(
        3, ge=1, description="Maximum repetitions of one filler phrase"
    )
    gate_max_orphaned_fragments: int = Field(
        8, ge=0, description="Maximum orphaned fragments before a warning"
    )
    gate_max_markdown_markers: int = Field(
        2, ge=0, description="Maximum markdown markers before a hard error"
    )

    # Ledger and review
    ledger_path: str = Field(
        ".cache/publication_ledger.db", description="SQLite publication ledger"
    )
    identity_includes_date: bool = Field(
        False, description="Derive draft identity from title plus publication date"
    )
    review_dir: Optional[str] = Field(
        "out/review", description="Directory receiving gate-rejected drafts"
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @model_validator(mode="after")
    def check_length_bounds(self) -> "Settings":
        if self.gate_min_length >= self.gate_max_length:
            raise ValueError("gate_min_length must be lower than gate_max_length")
        return self

    def gate_thresholds(self) -> GateThresholds:
        """Build the publish gate limits from the flat settings."""
        return GateThresholds(
            min_length=self.gate_min_length,
            max_length=self.gate_max_length,
            min_quality_score=self.gate_min_quality_score,
            excellent_quality_score=self.gate_excellent_quality_score,
            max_phrase_repetitions=self.gate_max_phrase_repetitions,
            max_orphaned_fragments=self.gate_max_orphaned_fragments,
            max_markdown_markers=self.gate_max_markdown_markers,
        )
