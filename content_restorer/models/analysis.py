"""Data models for issue analysis and publish gating."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    """Overall severity of the artifacts found in a text."""

    LOW = "low"
    MEDIUM = "medium"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.LOW: 1, Severity.MEDIUM: 2, Severity.CRITICAL: 3}


class IssueKind(str, Enum):
    """Kinds produced by the built-in detection rules."""

    REPEATED_PHRASE = "repeated_phrase"
    METADATA = "metadata"
    MARKDOWN = "markdown"
    MERGED_WORD = "merged_word"
    ORPHANED_FRAGMENT = "orphaned_fragment"


class IssueDescriptor(BaseModel):
    """A single finding reported by a detection rule."""

    model_config = ConfigDict(frozen=True)

    kind: str = Field(..., description="Issue kind, see IssueKind for built-ins")
    message: str = Field(..., description="Human readable description")
    count: int = Field(1, ge=0, description="Number of matches")
    phrase: Optional[str] = Field(None, description="Phrase for repetition issues")


class RepeatedPhrase(BaseModel):
    model_config = ConfigDict(frozen=True)

    phrase: str
    count: int


class IssueMetrics(BaseModel):
    """Counters aggregated from the detection rules."""

    model_config = ConfigDict(frozen=True)

    repeated_phrases: List[RepeatedPhrase] = Field(default_factory=list)
    metadata_markers: int = 0
    markdown_markers: int = 0
    merged_word_candidates: int = 0
    orphaned_fragments: int = 0


class IssueReport(BaseModel):
    """Artifacts detected in one version of a text."""

    model_config = ConfigDict(frozen=True)

    has_issues: bool = False
    issues: List[IssueDescriptor] = Field(default_factory=list)
    severity: Severity = Severity.LOW
    metrics: IssueMetrics = Field(default_factory=IssueMetrics)


class Readability(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    POOR = "poor"


class GateThresholds(BaseModel):
    """Tunable limits used by the publish gate."""

    model_config = ConfigDict(frozen=True)

    min_length: int = Field(8000, ge=0, description="Minimum body length in chars")
    max_length: int = Field(50000, ge=1, description="Maximum body length in chars")
    min_quality_score: int = Field(
        70, ge=0, le=100, description="Minimum score required to publish"
    )
    excellent_quality_score: int = Field(
        85, ge=0, le=100, description="Score labelled as excellent quality"
    )
    max_phrase_repetitions: int = Field(
        3, ge=1, description="Repetitions of one filler phrase tolerated as a warning"
    )
    max_orphaned_fragments: int = Field(
        8, ge=0, description="Orphaned fragments tolerated without a warning"
    )
    max_markdown_markers: int = Field(
        2, ge=0, description="Markdown markers tolerated before a hard error"
    )
    dialogue_turn_threshold: int = Field(
        5, ge=0, description="Dialogue turns above which readability gets a bonus"
    )


class VerdictMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    length: int
    has_metadata: bool
    has_markdown: bool
    repeated_phrases_count: int
    orphaned_fragments_count: int
    severity: Severity
    avg_sentence_length: float
    avg_paragraph_length: float
    dialogue_turns: int
    readability: Readability
    flesch_reading_ease: float
    quality_band: str


class QualityVerdict(BaseModel):
    """Publish decision for one candidate text."""

    model_config = ConfigDict(frozen=True)

    can_publish: bool
    score: int = Field(..., ge=0, le=100)
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    metrics: VerdictMetrics
