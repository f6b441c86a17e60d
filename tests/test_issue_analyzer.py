"""Tests for artifact detection."""

from content_restorer.models.analysis import IssueDescriptor, IssueKind, Severity
from content_restorer.quality_checks import IssueAnalyzer, IssueRule, analyze, default_rules
from content_restorer.quality_checks.issue_analyzer import (
    MarkdownLeakRule,
    MergedWordRule,
    OrphanedFragmentRule,
)
from conftest import build_article, build_filler_article


def test_clean_article_has_no_issues():
    report = analyze(build_article())

    assert report.has_issues is False
    assert report.issues == []
    assert report.severity == Severity.LOW


def test_filler_repeated_seven_times_is_critical():
    report = analyze(build_filler_article())

    assert report.severity == Severity.CRITICAL
    assert len(report.metrics.repeated_phrases) == 1
    repeated = report.metrics.repeated_phrases[0]
    assert repeated.phrase == "to be honest"
    assert repeated.count == 7


def test_filler_six_times_is_critical():
    text = build_filler_article(prefixed=6, inline=False)
    assert analyze(text).severity == Severity.CRITICAL


def test_filler_twice_is_medium():
    text = build_filler_article(prefixed=2, inline=False)
    report = analyze(text)

    assert report.severity == Severity.MEDIUM
    assert report.metrics.repeated_phrases[0].count == 2


def test_single_filler_is_not_reported():
    text = build_filler_article(prefixed=1, inline=False)
    assert analyze(text).has_issues is False


def test_metadata_leak_is_critical():
    text = build_article() + "\n\n[note: check the lighthouse date before publishing]"
    report = analyze(text)

    assert report.metrics.metadata_markers == 1
    assert report.severity == Severity.CRITICAL


def test_markdown_markers_counted():
    text = "## Chapter one\n\nThe **quiet** harbour and the **grey** sky."
    report = analyze(text)

    assert report.metrics.markdown_markers == 3
    assert report.severity == Severity.LOW


def test_markdown_above_three_is_critical():
    text = "# One\n\n# Two\n\n**bold** and **more bold**"
    assert analyze(text).severity == Severity.CRITICAL


def test_merged_words_never_raise_severity():
    rule = MergedWordRule()
    text = "The story ended there.then everyone left. It was somethingLighthouses after all."

    findings = rule.check(text)
    report = analyze(text)

    assert findings[0].count == 2
    assert report.metrics.merged_word_candidates == 2
    assert report.severity == Severity.LOW


def test_orphaned_fragments():
    text = "A. fragment left over\n\nBut. another one\n\nMr. Smith arrived on time."
    rule = OrphanedFragmentRule()

    findings = rule.check(text)

    assert findings[0].count == 2
    assert analyze(text).severity == Severity.MEDIUM


def test_orphaned_fragments_above_two_are_critical():
    text = "\n\n".join(["A. one", "B. two", "And. three"])
    assert analyze(text).severity == Severity.CRITICAL


def test_markdown_rule_ignores_single_hash_mid_line():
    assert MarkdownLeakRule().check("Issue #5 was closed.") == []


def test_failing_rule_is_skipped():
    class BrokenRule(IssueRule):
        @property
        def name(self):
            return "broken"

        def check(self, text):
            raise RuntimeError("boom")

    analyzer = IssueAnalyzer([BrokenRule(), *default_rules()])
    report = analyzer.analyze(build_filler_article())

    assert report.severity == Severity.CRITICAL


def test_plugin_rule_kind_is_reported():
    class ShoutingRule(IssueRule):
        @property
        def name(self):
            return "shouting"

        def check(self, text):
            if "HARBOUR" in text:
                return [IssueDescriptor(kind="shouting", message="All caps word")]
            return []

    report = IssueAnalyzer([ShoutingRule()]).analyze("THE HARBOUR")

    assert report.has_issues is True
    assert report.issues[0].kind == "shouting"
    assert report.severity == Severity.LOW


def test_extra_phrases_extend_catalogue():
    analyzer = IssueAnalyzer(default_rules(extra_phrases=["as you can see"]))
    report = analyzer.analyze("As you can see, the pier. As you can see, the boats.")

    assert report.metrics.repeated_phrases[0].phrase == "as you can see"
    assert report.issues[0].kind == IssueKind.REPEATED_PHRASE.value


def test_analysis_is_deterministic():
    text = build_filler_article()
    assert analyze(text) == analyze(text)
