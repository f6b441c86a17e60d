"""
Restoration pipeline.

Takes a draft through analysis, escalating restoration, the publish gate and
the deduplicating publish step, and classifies the result. Batches run drafts
through a bounded worker pool.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from ..models.analysis import QualityVerdict
from ..models.batch import BatchReport, DraftOutcome
from ..models.content import ArticleDraft, DraftStatus, PublishResult
from ..models.restoration import RestorationResult
from ..models.settings import Settings
from ..quality_checks.issue_analyzer import IssueAnalyzer
from ..quality_checks.publish_gate import PublishGate
from ..restoration.executor import AttemptExecutor
from ..restoration.interfaces import Publisher, RewriteCapability
from ..restoration.orchestrator import RestorationOrchestrator
from ..restoration.policy import AttemptPolicy, load_attempt_policy
from .errors import DuplicatePublishError, PublishError
from .ledger import PublicationLedger, identity_of

logger = logging.getLogger(__name__)


class ReviewQueue:
    """Directory of gate-rejected drafts awaiting a human decision."""

    def __init__(self, review_dir: str):
        self.review_dir = Path(review_dir)

    def add(
        self,
        draft: ArticleDraft,
        body: str,
        verdict: QualityVerdict,
        restoration: Optional[RestorationResult] = None,
    ) -> Path:
        """Write one rejected draft as JSON and return the file path."""
        self.review_dir.mkdir(parents=True, exist_ok=True)
        path = self.review_dir / f"{draft.id}.json"

        restoration_summary = None
        if restoration is not None:
            restoration_summary = {
                "used_fallback": restoration.used_fallback,
                "skipped": restoration.skipped,
                "accepted_attempt": restoration.accepted_attempt,
                "attempt_errors": [
                    outcome.error for outcome in restoration.outcomes if outcome.error
                ],
            }

        entry = {
            "queued_at": datetime.now(timezone.utc).isoformat(),
            "draft": {
                "id": draft.id,
                "title": draft.title,
                "source_path": draft.source_path,
                "image_ref": draft.image_ref,
                "body": body,
            },
            "verdict": verdict.model_dump(mode="json"),
            "restoration": restoration_summary,
        }
        path.write_text(json.dumps(entry, ensure_ascii=False, indent=2), encoding="utf-8")
        logger.info(f"📥 Queued for manual review: {path}")
        return path


@dataclass
class PipelineContext:
    """Collaborators shared by every draft of a run."""

    settings: Settings
    ledger: PublicationLedger
    rewriter: RewriteCapability
    publisher: Publisher
    policy: AttemptPolicy = field(default_factory=AttemptPolicy)
    analyzer: IssueAnalyzer = field(default_factory=IssueAnalyzer)
    gate: Optional[PublishGate] = None
    review_queue: Optional[ReviewQueue] = None

    def __post_init__(self):
        if self.gate is None:
            self.gate = PublishGate(self.settings.gate_thresholds(), self.analyzer)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        rewriter: RewriteCapability,
        publisher: Publisher,
        ledger: Optional[PublicationLedger] = None,
    ) -> "PipelineContext":
        """Build a context with the policy, ledger and review queue settings name."""
        return cls(
            settings=settings,
            ledger=ledger or PublicationLedger(settings.ledger_path),
            rewriter=rewriter,
            publisher=publisher,
            policy=load_attempt_policy(settings.attempt_policy_file),
            review_queue=ReviewQueue(settings.review_dir) if settings.review_dir else None,
        )


class RestorationPipeline:
    """Restores, gates and publishes drafts."""

    def __init__(self, context: PipelineContext):
        self.context = context
        self.orchestrator = RestorationOrchestrator(
            AttemptExecutor(context.rewriter, context.settings.chunk_concurrency),
            context.policy,
        )

    def identity_for(self, draft: ArticleDraft) -> str:
        published_on = (
            draft.published_on if self.context.settings.identity_includes_date else None
        )
        return identity_of(draft.title, published_on)

    async def restore_body(
        self, draft: ArticleDraft, cancel_event: Optional[asyncio.Event] = None
    ) -> RestorationResult:
        """Repair the draft body when its issues reach the repair threshold."""
        report = self.context.analyzer.analyze(draft.body)
        threshold = self.context.settings.repair_threshold

        if not report.has_issues or report.severity.rank < threshold.rank:
            logger.info(
                f"✨ '{draft.title}': severity {report.severity.value}, no repair needed"
            )
            return RestorationResult.unchanged(draft.body)

        logger.info(
            f"🔧 '{draft.title}': severity {report.severity.value}, "
            f"{len(report.issues)} issue(s), restoring..."
        )
        return await self.orchestrator.restore(draft.body, cancel_event=cancel_event)

    async def prepare(
        self, draft: ArticleDraft, cancel_event: Optional[asyncio.Event] = None
    ) -> Tuple[RestorationResult, QualityVerdict]:
        """Restore and gate a draft without publishing it."""
        restoration = await self.restore_body(draft, cancel_event=cancel_event)
        verdict = self.context.gate.evaluate(restoration.final_text)
        return restoration, verdict

    async def publish_if_new(self, draft: ArticleDraft, body: str) -> PublishResult:
        """Publish ``body`` unless the draft identity is already in the ledger.

        The ledger check, the publish call and the ledger append run under the
        identity lock. The ledger is only written after the publisher reports
        success.

        Raises:
            PublishError: If the publisher failed; nothing is recorded
            LedgerError: If the ledger storage failed
        """
        ledger = self.context.ledger
        identity = self.identity_for(draft)

        async with ledger.lock(identity):
            if ledger.has_published(identity):
                logger.info(f"⏭️  Already published, skipping: {draft.title}")
                return PublishResult(status=DraftStatus.DUPLICATE_SKIPPED, identity=identity)

            try:
                destination_ref = await self.context.publisher.publish(
                    draft.title, body, draft.image_ref
                )
            except PublishError:
                raise
            except Exception as e:
                raise PublishError(
                    f"{self.context.publisher.name} failed unexpectedly: {e}"
                ) from e

            try:
                ledger.record(identity, destination_ref, title=draft.title)
            except DuplicatePublishError:
                # Another process recorded the same identity meanwhile
                logger.warning(f"Identity recorded concurrently: {draft.title}")

        return PublishResult(
            status=DraftStatus.PUBLISHED, identity=identity, destination_ref=destination_ref
        )

    async def process_draft(
        self, draft: ArticleDraft, cancel_event: Optional[asyncio.Event] = None
    ) -> DraftOutcome:
        """Run one draft end to end and classify it."""
        identity = self.identity_for(draft)

        # Early check saves rewrite calls; publish_if_new checks again under the lock
        if self.context.ledger.has_published(identity):
            logger.info(f"⏭️  Already published, skipping: {draft.title}")
            return DraftOutcome(
                draft_id=draft.id,
                title=draft.title,
                identity=identity,
                status=DraftStatus.DUPLICATE_SKIPPED,
            )

        restoration, verdict = await self.prepare(draft, cancel_event=cancel_event)
        warnings = list(verdict.warnings)
        if restoration.cancelled:
            warnings.insert(0, "Restoration cancelled, original kept")
        elif restoration.used_fallback:
            attempts = len(restoration.outcomes)
            warnings.insert(
                0, f"Restoration exhausted after {attempts} attempt(s), original kept"
            )

        outcome = dict(
            draft_id=draft.id,
            title=draft.title,
            identity=identity,
            verdict=verdict,
            restoration=restoration,
            warnings=warnings,
        )

        if not verdict.can_publish:
            logger.warning(
                f"🚫 Gate rejected '{draft.title}' (score {verdict.score}): "
                f"{'; '.join(verdict.errors) or 'score below threshold'}"
            )
            if self.context.review_queue is not None:
                self.context.review_queue.add(
                    draft, restoration.final_text, verdict, restoration
                )
            return DraftOutcome(status=DraftStatus.GATE_REJECTED, **outcome)

        try:
            result = await self.publish_if_new(draft, restoration.final_text)
        except PublishError as e:
            logger.error(f"❌ Publishing '{draft.title}' failed: {e}")
            return DraftOutcome(status=DraftStatus.PUBLISH_FAILED, error=str(e), **outcome)

        return DraftOutcome(
            status=result.status, destination_ref=result.destination_ref, **outcome
        )

    async def run_batch(
        self,
        drafts: Sequence[ArticleDraft],
        workers: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BatchReport:
        """Process drafts with at most ``workers`` in flight.

        Outcomes keep the order of ``drafts``. LedgerError propagates.
        """
        if workers is None:
            workers = self.context.settings.batch_workers
        if workers < 1:
            raise ValueError("workers must be at least 1")

        semaphore = asyncio.Semaphore(workers)
        logger.info(f"🚀 Processing {len(drafts)} draft(s) with {workers} worker(s)")

        async def limited(draft: ArticleDraft) -> DraftOutcome:
            async with semaphore:
                return await self.process_draft(draft, cancel_event=cancel_event)

        outcomes: List[DraftOutcome] = list(
            await asyncio.gather(*(limited(draft) for draft in drafts))
        )
        report = BatchReport(outcomes=outcomes)
        logger.info(f"📊 Batch finished: {report.counts}")
        return report
