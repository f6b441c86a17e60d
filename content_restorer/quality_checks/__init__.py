from .issue_analyzer import IssueAnalyzer, IssueRule, analyze, default_rules
from .publish_gate import PublishGate, evaluate

__all__ = [
    "IssueAnalyzer",
    "IssueRule",
    "analyze",
    "default_rules",
    "PublishGate",
    "evaluate",
]
