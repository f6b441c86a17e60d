"""Pattern-based detection of formatting artifacts in article text.

Detection is approximate by nature. Each detector is an :class:`IssueRule`
so new checks can be registered without touching the restoration loop or
the publish gate.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Sequence

from ..models.analysis import (
    IssueDescriptor,
    IssueKind,
    IssueMetrics,
    IssueReport,
    RepeatedPhrase,
    Severity,
)

logger = logging.getLogger(__name__)

# Discourse fillers the upstream generators lean on.
FILLER_PHRASES = [
    "to be honest",
    "at the end of the day",
    "in other words",
    "needless to say",
    "as a matter of fact",
    "long story short",
    "believe it or not",
    "here's the thing",
    "truth be told",
    "all things considered",
    "вот в чём дело",
    "одним словом",
    "вот что я хочу сказать",
    "не знаю почему, но",
    "может быть, не совсем точно, но",
]

CRITICAL_MARKDOWN_MARKERS = 3
CRITICAL_PHRASE_REPETITIONS = 5
CRITICAL_ORPHANED_FRAGMENTS = 2

_BUILTIN_KINDS = {kind.value for kind in IssueKind}


class IssueRule(ABC):
    """Interface for a single artifact detector."""

    @property
    @abstractmethod
    def name(self) -> str:
        """A unique name for this rule, e.g. 'metadata'."""

    @abstractmethod
    def check(self, text: str) -> List[IssueDescriptor]:
        """Return the findings of this rule for ``text``."""


class FillerPhraseRule(IssueRule):
    """Counts filler phrases that occur more than once."""

    def __init__(self, phrases: Optional[Iterable[str]] = None):
        self.phrases = list(phrases) if phrases is not None else list(FILLER_PHRASES)
        self._patterns = [
            (phrase, re.compile(re.escape(phrase), re.IGNORECASE))
            for phrase in self.phrases
        ]

    @property
    def name(self) -> str:
        return "filler_phrases"

    def check(self, text: str) -> List[IssueDescriptor]:
        findings = []
        for phrase, pattern in self._patterns:
            count = len(pattern.findall(text))
            if count > 1:
                findings.append(
                    IssueDescriptor(
                        kind=IssueKind.REPEATED_PHRASE.value,
                        message=f'Repeated phrase "{phrase}" found {count} times',
                        count=count,
                        phrase=phrase,
                    )
                )
        return findings


class MetadataLeakRule(IssueRule):
    """Bracketed editorial annotations such as ``[note: check date]``."""

    PATTERN = re.compile(r"\[[^\[\]\n]{1,200}\]")

    @property
    def name(self) -> str:
        return "metadata"

    def check(self, text: str) -> List[IssueDescriptor]:
        count = len(self.PATTERN.findall(text))
        if not count:
            return []
        return [
            IssueDescriptor(
                kind=IssueKind.METADATA.value,
                message=f"Metadata found: {count} instances",
                count=count,
            )
        ]


class MarkdownLeakRule(IssueRule):
    """Bold and heading markers left over from Markdown output."""

    PATTERNS = [
        re.compile(r"\*\*[^*\n]+?\*\*"),
        re.compile(r"^[ \t]*#{1,6}[ \t]|#{2,}[ \t]", re.MULTILINE),
    ]

    @property
    def name(self) -> str:
        return "markdown"

    def check(self, text: str) -> List[IssueDescriptor]:
        count = sum(len(pattern.findall(text)) for pattern in self.PATTERNS)
        if not count:
            return []
        return [
            IssueDescriptor(
                kind=IssueKind.MARKDOWN.value,
                message=f"Markdown syntax found: {count} instances",
                count=count,
            )
        ]


class MergedWordRule(IssueRule):
    """Words glued together by a lost space.

    Catches a sentence end followed directly by lowercase letters
    ("end.then") and two long words joined at a case change
    ("somethingAnything").
    """

    PATTERNS = [
        re.compile(r"[.!?][a-zа-яё]{3,}"),
        re.compile(r"[^\W\d_]{7,}?[a-zа-яё][A-ZА-ЯЁ][a-zа-яё]{7,}"),
    ]

    @property
    def name(self) -> str:
        return "merged_words"

    def check(self, text: str) -> List[IssueDescriptor]:
        count = sum(len(pattern.findall(text)) for pattern in self.PATTERNS)
        if not count:
            return []
        return [
            IssueDescriptor(
                kind=IssueKind.MERGED_WORD.value,
                message=f"Possible merged words: {count} candidates",
                count=count,
            )
        ]


class OrphanedFragmentRule(IssueRule):
    """Paragraphs that open with a sentence fragment cut off upstream."""

    CONJUNCTIONS = (
        "and|but|or|so|yet|well|anyway|though|"
        "и|а|но|да|ну|вот|же|ведь|хотя"
    )
    # Honorifics look like lone short tokens but start real sentences.
    ABBREVIATIONS = {"mr", "ms", "dr", "st", "jr", "sr", "vs"}

    SHORT_TOKEN = re.compile(r"^([^\W\d_]{1,2})\.(?:\s|$)")
    CONJUNCTION = re.compile(rf"^(?:{CONJUNCTIONS})\.", re.IGNORECASE)
    PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n")

    @property
    def name(self) -> str:
        return "orphaned_fragments"

    def check(self, text: str) -> List[IssueDescriptor]:
        count = 0
        for paragraph in self.PARAGRAPH_BREAK.split(text):
            if self._is_orphaned(paragraph.lstrip()):
                count += 1
        if not count:
            return []
        return [
            IssueDescriptor(
                kind=IssueKind.ORPHANED_FRAGMENT.value,
                message=f"Orphaned fragments found: {count} paragraphs",
                count=count,
            )
        ]

    def _is_orphaned(self, paragraph: str) -> bool:
        if not paragraph:
            return False
        match = self.SHORT_TOKEN.match(paragraph)
        if match and match.group(1).lower() not in self.ABBREVIATIONS:
            return True
        return bool(self.CONJUNCTION.match(paragraph))


def default_rules(extra_phrases: Optional[Sequence[str]] = None) -> List[IssueRule]:
    """Build the built-in rule set."""
    phrases = list(FILLER_PHRASES)
    if extra_phrases:
        phrases.extend(p for p in extra_phrases if p not in phrases)
    return [
        FillerPhraseRule(phrases),
        MetadataLeakRule(),
        MarkdownLeakRule(),
        MergedWordRule(),
        OrphanedFragmentRule(),
    ]


class IssueAnalyzer:
    """Runs a rule set over a text and summarises the findings."""

    def __init__(self, rules: Optional[Sequence[IssueRule]] = None):
        self.rules: List[IssueRule] = list(rules) if rules is not None else default_rules()

    def analyze(self, text: str) -> IssueReport:
        """Analyze ``text`` and return an issue report. Never raises."""
        issues: List[IssueDescriptor] = []
        for rule in self.rules:
            try:
                issues.extend(rule.check(text))
            except Exception as e:
                logger.error(f"Issue rule {rule.name} failed: {e}")
                continue

        metrics = self._collect_metrics(issues)
        return IssueReport(
            has_issues=bool(issues),
            issues=issues,
            severity=classify_severity(metrics),
            metrics=metrics,
        )

    @staticmethod
    def _collect_metrics(issues: List[IssueDescriptor]) -> IssueMetrics:
        repeated = []
        totals = {kind: 0 for kind in IssueKind}
        for issue in issues:
            if issue.kind == IssueKind.REPEATED_PHRASE.value and issue.phrase:
                repeated.append(RepeatedPhrase(phrase=issue.phrase, count=issue.count))
            elif issue.kind in _BUILTIN_KINDS:
                totals[IssueKind(issue.kind)] += issue.count

        return IssueMetrics(
            repeated_phrases=repeated,
            metadata_markers=totals[IssueKind.METADATA],
            markdown_markers=totals[IssueKind.MARKDOWN],
            merged_word_candidates=totals[IssueKind.MERGED_WORD],
            orphaned_fragments=totals[IssueKind.ORPHANED_FRAGMENT],
        )


def classify_severity(metrics: IssueMetrics) -> Severity:
    """Map issue counters to an overall severity."""
    if (
        metrics.metadata_markers > 0
        or metrics.markdown_markers > CRITICAL_MARKDOWN_MARKERS
        or any(p.count > CRITICAL_PHRASE_REPETITIONS for p in metrics.repeated_phrases)
        or metrics.orphaned_fragments > CRITICAL_ORPHANED_FRAGMENTS
    ):
        return Severity.CRITICAL
    if metrics.repeated_phrases or metrics.orphaned_fragments > 0:
        return Severity.MEDIUM
    return Severity.LOW


_default_analyzer = IssueAnalyzer()


def analyze(text: str) -> IssueReport:
    """Analyze text with the built-in rule set."""
    return _default_analyzer.analyze(text)
