"""Escalation loop over the attempt policy table."""

import asyncio
import logging
from typing import List, Optional

from ..models.restoration import RestorationOutcome, RestorationResult
from .executor import AttemptExecutor
from .policy import AttemptPolicy

logger = logging.getLogger(__name__)


class RestorationOrchestrator:
    """Tries each attempt configuration in order until one is accepted.

    Attempts run strictly one after another: later rows only exist as a
    fallback for earlier failures. When every attempt fails the original text
    is returned unchanged.
    """

    def __init__(self, executor: AttemptExecutor, policy: Optional[AttemptPolicy] = None):
        self.executor = executor
        self.policy = policy or AttemptPolicy()

    async def restore(
        self, text: str, cancel_event: Optional[asyncio.Event] = None
    ) -> RestorationResult:
        """Restore ``text`` through the escalation table.

        Args:
            text: Original article body
            cancel_event: When set, stops the loop before the next attempt

        Returns:
            RestorationResult holding the accepted text or the original
        """
        outcomes: List[RestorationOutcome] = []
        total = len(self.policy)

        for index, config in enumerate(self.policy):
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(
                    f"Restoration cancelled before attempt {index + 1}/{total}, "
                    "keeping original"
                )
                return RestorationResult(
                    final_text=text, outcomes=outcomes, used_fallback=True, cancelled=True
                )

            label = config.description or config.model_tier
            logger.info(f"  Attempt {index + 1}/{total}: {label}...")
            outcome = await self.executor.run_attempt(text, config, attempt_index=index)
            outcomes.append(outcome)

            if outcome.success:
                logger.info(
                    f"    ✅ Restored on attempt {index + 1} "
                    f"({len(text)} → {len(outcome.result_text)} chars, "
                    f"{outcome.ratio:.1%})"
                )
                return RestorationResult(final_text=outcome.result_text, outcomes=outcomes)

            logger.warning(f"    ❌ Attempt {index + 1} failed: {outcome.error}")

        logger.warning(f"⚠️  All {total} attempts failed, preserving original")
        return RestorationResult(final_text=text, outcomes=outcomes, used_fallback=True)
