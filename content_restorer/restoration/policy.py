"""Ordered attempt policy table for the escalation loop."""

import logging
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple

import yaml
from pydantic import ValidationError

from ..models.restoration import PromptStrictness, RestorationAttemptConfig

logger = logging.getLogger(__name__)

# Strongest and strictest first; each later row trades fidelity for cost.
DEFAULT_ATTEMPTS: Tuple[RestorationAttemptConfig, ...] = (
    RestorationAttemptConfig(
        model_tier="primary",
        chunk_max_chars=3000,
        min_accept_ratio=0.85,
        prompt_strictness=PromptStrictness.STRICT,
        timeout_ms=30000,
        description="Primary model, large chunks",
    ),
    RestorationAttemptConfig(
        model_tier="primary",
        chunk_max_chars=2000,
        min_accept_ratio=0.85,
        prompt_strictness=PromptStrictness.STRICT,
        timeout_ms=30000,
        description="Primary model, smaller chunks",
    ),
    RestorationAttemptConfig(
        model_tier="flagship",
        chunk_max_chars=2000,
        min_accept_ratio=0.80,
        prompt_strictness=PromptStrictness.STRICT,
        timeout_ms=30000,
        description="Flagship model",
    ),
    RestorationAttemptConfig(
        model_tier="fast",
        chunk_max_chars=1500,
        min_accept_ratio=0.75,
        prompt_strictness=PromptStrictness.MEDIUM,
        timeout_ms=25000,
        description="Fast model",
    ),
    RestorationAttemptConfig(
        model_tier="lite",
        chunk_max_chars=1000,
        min_accept_ratio=0.70,
        prompt_strictness=PromptStrictness.SOFT,
        timeout_ms=20000,
        description="Lite model, soft prompt",
    ),
)


class AttemptPolicy:
    """Read-only ordered table of restoration attempt configurations."""

    def __init__(self, attempts: Optional[Sequence[RestorationAttemptConfig]] = None):
        attempts = tuple(attempts) if attempts is not None else DEFAULT_ATTEMPTS
        validate_attempts(attempts)
        self._attempts = attempts

    @classmethod
    def from_yaml(cls, yaml_path: str) -> "AttemptPolicy":
        """Load a policy table from a YAML file.

        The file holds an ``attempts`` list whose items carry the
        RestorationAttemptConfig fields.
        """
        try:
            with open(yaml_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

            rows = data.get("attempts") if isinstance(data, dict) else None
            if not rows:
                raise ValueError("policy file defines no attempts")

            return cls([RestorationAttemptConfig(**row) for row in rows])
        except (OSError, yaml.YAMLError, ValidationError, ValueError, TypeError) as e:
            logger.error(f"Failed to load attempt policy from {yaml_path}: {e}")
            raise

    def __iter__(self) -> Iterator[RestorationAttemptConfig]:
        return iter(self._attempts)

    def __len__(self) -> int:
        return len(self._attempts)

    def __getitem__(self, index: int) -> RestorationAttemptConfig:
        return self._attempts[index]

    def describe(self) -> List[dict]:
        """Plain rows for display."""
        return [attempt.model_dump(mode="json") for attempt in self._attempts]


def validate_attempts(attempts: Sequence[RestorationAttemptConfig]) -> None:
    """Reject empty tables and tables whose accept ratio increases."""
    if not attempts:
        raise ValueError("Attempt policy needs at least one attempt")

    for index in range(1, len(attempts)):
        previous = attempts[index - 1].min_accept_ratio
        current = attempts[index].min_accept_ratio
        if current > previous:
            raise ValueError(
                f"min_accept_ratio must not increase: attempt {index + 1} "
                f"requires {current} after {previous}"
            )


def load_attempt_policy(policy_file: Optional[str] = None) -> AttemptPolicy:
    """Return the policy from ``policy_file`` or the built-in defaults."""
    if not policy_file:
        return AttemptPolicy()

    path = Path(policy_file)
    if not path.exists():
        raise FileNotFoundError(f"Attempt policy file not found: {policy_file}")

    policy = AttemptPolicy.from_yaml(str(path))
    logger.info(f"Loaded {len(policy)} restoration attempts from {policy_file}")
    return policy
