"""Content models for article restoration and publishing."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ArticleDraft(BaseModel):
    """A single article awaiting restoration and a publish decision."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique identifier")
    title: str = Field(..., description="Article title")
    body: str = Field(..., description="Article body text")
    image_ref: Optional[str] = Field(None, description="Featured image reference")
    source_path: Optional[str] = Field(None, description="File the draft was read from")
    published_on: Optional[date] = Field(
        None, description="Publication date used when deriving the identity"
    )

    def with_body(self, body: str) -> "ArticleDraft":
        """Return a copy of the draft carrying a new body under the same id."""
        return self.model_copy(update={"body": body})


class LedgerEntry(BaseModel):
    """A confirmed publication recorded in the ledger."""

    model_config = ConfigDict(frozen=True)

    identity: str = Field(..., description="Stable identity of the published draft")
    title: str = Field("", description="Title at the time of publication")
    published_at: datetime = Field(..., description="Publication time")
    destination_ref: str = Field(..., description="Reference returned by the publisher")


class DraftStatus(str, Enum):
    """Final classification of a draft within a batch run."""

    PUBLISHED = "published"
    DUPLICATE_SKIPPED = "duplicate_skipped"
    GATE_REJECTED = "gate_rejected"
    PUBLISH_FAILED = "publish_failed"


class PublishResult(BaseModel):
    """Result of a publish-if-new call."""

    status: DraftStatus
    identity: str
    destination_ref: Optional[str] = None
