"""Reduce raw pattern matches into one summary per rule."""

from typing import Iterable

from app.analyzers.base import MAX_EXAMPLES_PER_RULE, AggregatedIssue, IssueExample, RawIssue


def aggregate(
    raw_issues: Iterable[RawIssue],
    max_examples: int = MAX_EXAMPLES_PER_RULE,
) -> list[AggregatedIssue]:
    """Group issues by rule id in first-seen order.

    The first ``max_examples`` occurrences of each rule are kept as examples;
    ruleset, severity and description come from the first occurrence.
    """
    if not 0 <= max_examples <= MAX_EXAMPLES_PER_RULE:
        raise ValueError(f"max_examples must be between 0 and {MAX_EXAMPLES_PER_RULE}")

    counts: dict[str, int] = {}
    firsts: dict[str, RawIssue] = {}
    examples: dict[str, list[IssueExample]] = {}

    for issue in raw_issues:
        if issue.rule not in firsts:
            firsts[issue.rule] = issue
            counts[issue.rule] = 0
            examples[issue.rule] = []
        counts[issue.rule] += 1
        if len(examples[issue.rule]) < max_examples:
            examples[issue.rule].append(
                IssueExample(file=issue.file, line=issue.line, snippet=issue.snippet)
            )

    return [
        AggregatedIssue(
            rule=rule,
            ruleset=first.ruleset,
            severity=first.severity,
            description=first.description,
            count=counts[rule],
            examples=examples[rule],
        )
        for rule, first in firsts.items()
    ]


def count_files(raw_issues: Iterable[RawIssue]) -> int:
    """Number of distinct files with at least one issue."""
    return len({issue.file for issue in raw_issues})
