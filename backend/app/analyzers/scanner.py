"""Line-by-line pattern scanner."""

from typing import Iterable, Mapping

from app.analyzers.base import RawIssue
from app.analyzers.rules import RULE_TABLE, PatternRule, rules_for

CONTEXT_LINES = 2


def _split_lines(content: str) -> list[str]:
    return [line[:-1] if line.endswith("\r") else line for line in content.split("\n")]


def build_snippet(lines: list[str], index: int, context: int = CONTEXT_LINES) -> str:
    """Render lines around ``index`` (0-based) with 1-based numbers, marking the hit."""
    start = max(0, index - context)
    end = min(len(lines) - 1, index + context)
    rendered = []
    for position in range(start, end + 1):
        marker = "> " if position == index else "  "
        rendered.append(f"{marker}{position + 1}: {lines[position]}")
    return "\n".join(rendered)


def scan_lines(file_path: str, lines: list[str], rules: Iterable[PatternRule]) -> list[RawIssue]:
    issues: list[RawIssue] = []
    for rule in rules:
        for index, line in enumerate(lines):
            for match in rule.pattern.finditer(line):
                issues.append(
                    RawIssue(
                        file=file_path,
                        line=index + 1,
                        column=match.start() + 1,
                        rule=rule.rule_id,
                        ruleset=rule.ruleset,
                        severity=rule.severity,
                        description=rule.description,
                        snippet=build_snippet(lines, index),
                    )
                )
    return issues


def scan(
    content: str,
    file_path: str,
    language: str | None,
    rules: Mapping[str, tuple[PatternRule, ...]] = RULE_TABLE,
) -> list[RawIssue]:
    """Apply the language's rules to every line of ``content``.

    Issues are ordered by rule, then line, then position within the line.
    Languages without rules produce no issues.
    """
    applicable = rules_for(language, rules)
    if not applicable:
        return []
    return scan_lines(file_path, _split_lines(content), applicable)
