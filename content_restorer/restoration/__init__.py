"""Escalating multi-attempt text restoration."""

from .executor import AttemptExecutor
from .interfaces import Publisher, RewriteCapability
from .orchestrator import RestorationOrchestrator
from .policy import DEFAULT_ATTEMPTS, AttemptPolicy, load_attempt_policy

__all__ = [
    "AttemptExecutor",
    "AttemptPolicy",
    "DEFAULT_ATTEMPTS",
    "Publisher",
    "RestorationOrchestrator",
    "RewriteCapability",
    "load_attempt_policy",
]
