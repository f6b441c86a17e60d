"""Data models for restoration attempts and their outcomes."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PromptStrictness(str, Enum):
    """How tightly the rewrite prompt constrains the model."""

    STRICT = "strict"
    MEDIUM = "medium"
    SOFT = "soft"


class RestorationAttemptConfig(BaseModel):
    """One row of the attempt policy table."""

    model_config = ConfigDict(frozen=True)

    model_tier: str = Field(..., min_length=1, description="Model tier to rewrite with")
    chunk_max_chars: int = Field(..., ge=1, description="Maximum chunk size in chars")
    min_accept_ratio: float = Field(
        ..., gt=0.0, le=1.0, description="Minimum output/input length ratio"
    )
    prompt_strictness: PromptStrictness = Field(PromptStrictness.STRICT)
    timeout_ms: int = Field(30000, ge=1, description="Per-chunk call timeout")
    description: str = Field("", description="Label used in logs and reports")

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


class RestorationOutcome(BaseModel):
    """Result of one attempt; failed outcomes are diagnostics only."""

    model_config = ConfigDict(frozen=True)

    attempt_index: int = Field(..., ge=0)
    success: bool
    result_text: Optional[str] = None
    ratio: float = 0.0
    error: Optional[str] = None
    chunk_count: int = 0
    elapsed_seconds: float = 0.0


class RestorationResult(BaseModel):
    """What the escalation loop hands forward for one text."""

    model_config = ConfigDict(frozen=True)

    final_text: str
    outcomes: List[RestorationOutcome] = Field(default_factory=list)
    used_fallback: bool = False
    skipped: bool = Field(False, description="Repair was not needed")
    cancelled: bool = Field(False, description="Stopped between attempts by caller")

    @property
    def accepted_attempt(self) -> Optional[int]:
        for outcome in self.outcomes:
            if outcome.success:
                return outcome.attempt_index
        return None

    @classmethod
    def unchanged(cls, text: str) -> "RestorationResult":
        """Result for text that needed no repair."""
        return cls(final_text=text, skipped=True)
