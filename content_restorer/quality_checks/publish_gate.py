"""Final quality scoring and the publish decision for a candidate article."""

import logging
import re
from typing import List, Optional, Tuple

from textstat import flesch_reading_ease

from ..models.analysis import (
    GateThresholds,
    QualityVerdict,
    Readability,
    Severity,
    VerdictMetrics,
)
from .issue_analyzer import IssueAnalyzer

logger = logging.getLogger(__name__)

SENTENCE_SPLIT = re.compile(r"[.!?]+")
PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
DIALOGUE_OPENERS = ("—", "–", "«", "“", '"')

# Score penalties
SHORT_PENALTY = 40
LONG_PENALTY = 30
METADATA_PENALTY = 30
MARKDOWN_PENALTY = 20
EXCESS_REPETITION_PENALTY = 5
REPETITION_WARNING_PENALTY = 3
CRITICAL_SEVERITY_PENALTY = 30
MEDIUM_SEVERITY_PENALTY = 10
POOR_READABILITY_PENALTY = 10


class PublishGate:
    """Scores a candidate text and decides whether it can be published."""

    def __init__(
        self,
        thresholds: Optional[GateThresholds] = None,
        analyzer: Optional[IssueAnalyzer] = None,
    ):
        self.thresholds = thresholds or GateThresholds()
        self.analyzer = analyzer or IssueAnalyzer()

    def evaluate(self, text: str) -> QualityVerdict:
        """Validate an article before publishing.

        Hard errors block publication regardless of the score. Warnings cost
        points but only block when the score drops under the publish
        threshold.

        Args:
            text: Candidate article body

        Returns:
            QualityVerdict with score, errors, warnings and metrics
        """
        limits = self.thresholds
        errors: List[str] = []
        warnings: List[str] = []
        score = 100

        # 1. Length
        length = len(text)
        if length < limits.min_length:
            errors.append(f"Article too short: {length} chars (min: {limits.min_length})")
            score -= SHORT_PENALTY
        elif length > limits.max_length:
            errors.append(f"Article too long: {length} chars (max: {limits.max_length})")
            score -= LONG_PENALTY

        # 2. Artifacts
        report = self.analyzer.analyze(text)
        metrics = report.metrics

        if metrics.metadata_markers > 0:
            errors.append(f"Metadata/comments found: {metrics.metadata_markers} instances")
            score -= METADATA_PENALTY

        if metrics.markdown_markers > limits.max_markdown_markers:
            errors.append(f"Markdown syntax found: {metrics.markdown_markers} instances")
            score -= MARKDOWN_PENALTY

        # 3. Repeated phrases
        for repeated in metrics.repeated_phrases:
            if repeated.count > limits.max_phrase_repetitions:
                errors.append(
                    f'Phrase "{repeated.phrase}" repeated {repeated.count} times '
                    f"(max: {limits.max_phrase_repetitions})"
                )
                score -= (
                    repeated.count - limits.max_phrase_repetitions
                ) * EXCESS_REPETITION_PENALTY
            else:
                warnings.append(f'Phrase "{repeated.phrase}" repeated {repeated.count} times')
                score -= REPETITION_WARNING_PENALTY

        # 4. Orphaned fragments
        if metrics.orphaned_fragments > limits.max_orphaned_fragments:
            excess = metrics.orphaned_fragments - limits.max_orphaned_fragments
            warnings.append(
                f"Too many orphaned fragments: {metrics.orphaned_fragments} "
                f"(max: {limits.max_orphaned_fragments})"
            )
            score -= excess // 2

        # 5. Overall severity
        if report.severity == Severity.CRITICAL:
            errors.append("Article severity: CRITICAL - requires cleanup")
            score -= CRITICAL_SEVERITY_PENALTY
        elif report.severity == Severity.MEDIUM:
            warnings.append("Article severity: MEDIUM - consider cleanup")
            score -= MEDIUM_SEVERITY_PENALTY

        # 6. Readability
        readability, avg_sentence, avg_paragraph, dialogue_turns = self.assess_readability(
            text
        )
        if readability == Readability.POOR:
            warnings.append("Poor readability detected")
            score -= POOR_READABILITY_PENALTY

        score = max(0, min(100, score))
        can_publish = not errors and score >= limits.min_quality_score

        if can_publish:
            band = "excellent" if score >= limits.excellent_quality_score else "good"
        else:
            band = "rejected"

        verdict = QualityVerdict(
            can_publish=can_publish,
            score=score,
            errors=errors,
            warnings=warnings,
            metrics=VerdictMetrics(
                length=length,
                has_metadata=metrics.metadata_markers > 0,
                has_markdown=metrics.markdown_markers > 0,
                repeated_phrases_count=len(metrics.repeated_phrases),
                orphaned_fragments_count=metrics.orphaned_fragments,
                severity=report.severity,
                avg_sentence_length=avg_sentence,
                avg_paragraph_length=avg_paragraph,
                dialogue_turns=dialogue_turns,
                readability=readability,
                flesch_reading_ease=_flesch(text),
                quality_band=band,
            ),
        )
        self._log_verdict(verdict)
        return verdict

    def assess_readability(self, text: str) -> Tuple[Readability, float, float, int]:
        """Rate readability from sentence length, paragraph length and dialogue.

        Returns:
            (readability, avg_sentence_length, avg_paragraph_length, dialogue_turns)
        """
        sentences = [s.strip() for s in SENTENCE_SPLIT.split(text) if len(s.strip()) > 10]
        paragraphs = [p.strip() for p in PARAGRAPH_SPLIT.split(text) if len(p.strip()) > 50]
        avg_sentence = _average_length(sentences)
        avg_paragraph = _average_length(paragraphs)
        dialogue_turns = sum(
            1 for line in text.splitlines() if line.lstrip().startswith(DIALOGUE_OPENERS)
        )

        points = 0
        # Sentences: 100-200 chars read best
        if 100 <= avg_sentence <= 200:
            points += 3
        elif avg_sentence < 80 or avg_sentence > 250:
            points += 1
        else:
            points += 2

        # Paragraphs: 300-600 chars read best on mobile
        if 300 <= avg_paragraph <= 600:
            points += 3
        elif avg_paragraph < 200 or avg_paragraph > 800:
            points += 1
        else:
            points += 2

        if dialogue_turns > self.thresholds.dialogue_turn_threshold:
            points += 2

        if points >= 7:
            readability = Readability.EXCELLENT
        elif points >= 5:
            readability = Readability.GOOD
        else:
            readability = Readability.POOR

        return readability, avg_sentence, avg_paragraph, dialogue_turns

    @staticmethod
    def _log_verdict(verdict: QualityVerdict) -> None:
        logger.info(
            f"🚪 Gate: score {verdict.score}/100, "
            f"{'✅ publishable' if verdict.can_publish else '❌ blocked'} "
            f"({len(verdict.errors)} errors, {len(verdict.warnings)} warnings)"
        )
        for error in verdict.errors:
            logger.info(f"   ❌ {error}")
        for warning in verdict.warnings:
            logger.debug(f"   ⚠️  {warning}")


def _average_length(parts: List[str]) -> float:
    if not parts:
        return 0.0
    return round(sum(len(part) for part in parts) / len(parts), 2)


def _flesch(text: str) -> float:
    if not text.strip():
        return 0.0
    return round(float(flesch_reading_ease(text)), 2)


def evaluate(text: str, thresholds: Optional[GateThresholds] = None) -> QualityVerdict:
    """Evaluate text with the default analyzer and the given limits."""
    return PublishGate(thresholds).evaluate(text)
