"""Rule-based line scanning and issue aggregation."""

from app.analyzers.aggregator import aggregate, count_files
from app.analyzers.base import AggregatedIssue, IssueExample, RawIssue, Severity
from app.analyzers.classifier import EXCLUDED_DIRS, classify, is_excluded_dir
from app.analyzers.rules import RULE_TABLE, PatternRule, rules_for
from app.analyzers.scanner import build_snippet, scan

__all__ = [
    "AggregatedIssue",
    "IssueExample",
    "RawIssue",
    "Severity",
    "PatternRule",
    "RULE_TABLE",
    "EXCLUDED_DIRS",
    "aggregate",
    "build_snippet",
    "classify",
    "count_files",
    "is_excluded_dir",
    "rules_for",
    "scan",
]
