"""Per-draft outcomes and batch reporting."""

from collections import Counter
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .analysis import QualityVerdict
from .content import DraftStatus
from .restoration import RestorationResult


class DraftOutcome(BaseModel):
    """Classification of one draft after a pipeline run."""

    draft_id: str
    title: str
    identity: str
    status: DraftStatus
    verdict: Optional[QualityVerdict] = None
    restoration: Optional[RestorationResult] = None
    destination_ref: Optional[str] = None
    error: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)

    @property
    def restoration_label(self) -> str:
        """Short description of which attempt produced the body."""
        if self.restoration is None:
            return "not attempted"
        if self.restoration.skipped:
            return "no repair needed"
        if self.restoration.cancelled:
            return "cancelled (original kept)"
        if self.restoration.used_fallback:
            return "fallback (original kept)"
        return f"attempt {self.restoration.accepted_attempt + 1}"


class BatchReport(BaseModel):
    """Summary of a batch run."""

    outcomes: List[DraftOutcome] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def counts(self) -> Dict[str, int]:
        counter = Counter(outcome.status.value for outcome in self.outcomes)
        return {status.value: counter.get(status.value, 0) for status in DraftStatus}

    @property
    def restored_by_attempt(self) -> Dict[int, int]:
        """Number of drafts restored by each attempt (1-based)."""
        counter: Counter = Counter()
        for outcome in self.outcomes:
            if outcome.restoration is None:
                continue
            accepted = outcome.restoration.accepted_attempt
            if accepted is not None:
                counter[accepted + 1] += 1
        return dict(sorted(counter.items()))

    @property
    def fallback_count(self) -> int:
        return sum(
            1
            for outcome in self.outcomes
            if outcome.restoration is not None and outcome.restoration.used_fallback
        )

    @property
    def skipped_count(self) -> int:
        return sum(
            1
            for outcome in self.outcomes
            if outcome.restoration is not None and outcome.restoration.skipped
        )

    def by_status(self, status: DraftStatus) -> List[DraftOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status == status]
