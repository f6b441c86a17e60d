"""Exceptions raised across the restoration pipeline.

Expected failures (a rejected attempt, an exhausted attempt table, a gate
rejection) are reported through result values, not these exceptions.
"""


class RestorerError(Exception):
    """Base class for content restorer errors."""


class RewriteError(RestorerError):
    """The rewrite capability failed or returned an unusable answer."""


class PublishError(RestorerError):
    """The destination publisher failed. Safe to retry."""


class DuplicatePublishError(RestorerError):
    """An identity is already present in the publication ledger."""

    def __init__(self, identity: str):
        super().__init__(f"Identity already published: {identity}")
        self.identity = identity


class LedgerError(RestorerError):
    """The publication ledger storage could not be read or written."""


class DraftLoadError(RestorerError):
    """A draft file could not be read or parsed."""
