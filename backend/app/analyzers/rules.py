"""Per-language line pattern rules.

The table is data: adding a rule never requires touching the scanner. It is
built once at import and exposed read-only.
"""

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from app.analyzers.base import Severity


@dataclass(frozen=True)
class PatternRule:
    rule_id: str
    ruleset: str
    severity: Severity
    description: str
    pattern: re.Pattern


def _rule(rule_id: str, ruleset: str, severity: Severity, description: str, pattern: str, flags: int = 0) -> PatternRule:
    return PatternRule(
        rule_id=rule_id,
        ruleset=ruleset,
        severity=severity,
        description=description,
        pattern=re.compile(pattern, flags),
    )


AVOID_CONSOLE_LOG = _rule(
    "AvoidConsoleLog",
    "logging",
    Severity.WARNING,
    "Avoid console.log statements in production code",
    r"console\.log\(",
)

USE_STRICT_EQUALITY = _rule(
    "UseStrictEquality",
    "best-practices",
    Severity.WARNING,
    "Use === instead of ==",
    r"(?<![=!])==(?!=)",
)

EMPTY_CATCH_BLOCK = _rule(
    "EmptyCatchBlock",
    "error-handling",
    Severity.ERROR,
    "Empty catch blocks should be avoided",
    r"catch\s*\([^)]*\)\s*\{\s*\}",
)

SLASH_TODO = _rule(
    "TodoComment",
    "maintenance",
    Severity.INFO,
    "TODO comment found",
    r"//\s*TODO",
    re.IGNORECASE,
)

HASH_TODO = _rule(
    "TodoComment",
    "maintenance",
    Severity.INFO,
    "TODO comment found",
    r"#\s*TODO",
    re.IGNORECASE,
)


RULE_TABLE: Mapping[str, tuple[PatternRule, ...]] = MappingProxyType(
    {
        "javascript": (
            AVOID_CONSOLE_LOG,
            _rule(
                "UseConstOrLet",
                "best-practices",
                Severity.WARNING,
                "Use let or const instead of var",
                r"\bvar\s+",
            ),
            USE_STRICT_EQUALITY,
            SLASH_TODO,
            EMPTY_CATCH_BLOCK,
        ),
        "typescript": (
            _rule(
                "AvoidAny",
                "type-safety",
                Severity.WARNING,
                "Avoid using any type, specify a more precise type",
                r"\bany(?=\s*[;,:)=\]>|])",
            ),
            AVOID_CONSOLE_LOG,
            USE_STRICT_EQUALITY,
            SLASH_TODO,
        ),
        "java": (
            _rule(
                "AvoidSystemOut",
                "logging",
                Severity.WARNING,
                "Avoid System.out.println in production code, use a logger",
                r"System\.out\.println\(",
            ),
            _rule(
                "AvoidCatchingGenericException",
                "error-handling",
                Severity.ERROR,
                "Avoid catching generic Exception, catch specific exceptions",
                r"catch\s*\(\s*Exception\s+[A-Za-z_$][\w$]*\s*\)",
            ),
            EMPTY_CATCH_BLOCK,
            SLASH_TODO,
        ),
        "python": (
            _rule(
                "AvoidPrint",
                "logging",
                Severity.INFO,
                "Consider using a logger instead of print statements",
                r"\bprint\s*\(",
            ),
            _rule(
                "AvoidBareExcept",
                "error-handling",
                Severity.ERROR,
                "Avoid bare except, specify exception types",
                r"\bexcept\s*:",
            ),
            HASH_TODO,
        ),
        "php": (
            _rule(
                "AvoidEcho",
                "logging",
                Severity.INFO,
                "Consider using a logger instead of echo",
                r"\becho\s+",
            ),
            _rule(
                "ValidateInput",
                "security",
                Severity.WARNING,
                "Always validate user input from $_GET, $_POST, or $_REQUEST",
                r"\$_GET|\$_POST|\$_REQUEST",
            ),
        ),
        "go": (
            _rule(
                "AvoidFmtPrint",
                "logging",
                Severity.INFO,
                "Consider using a logger instead of fmt.Print",
                r"fmt\.Print(?:ln|f)?\(",
            ),
        ),
        "ruby": (
            _rule(
                "AvoidPuts",
                "logging",
                Severity.INFO,
                "Consider using a logger instead of puts",
                r"\bputs\s+",
            ),
        ),
        "csharp": (
            _rule(
                "AvoidConsoleWrite",
                "logging",
                Severity.INFO,
                "Consider using a logger instead of Console.Write",
                r"Console\.Write(?:Line)?\(",
            ),
        ),
    }
)


def rules_for(language: str | None, table: Mapping[str, tuple[PatternRule, ...]] = RULE_TABLE) -> tuple[PatternRule, ...]:
    """Rules for a language tag; languages without rules get an empty tuple."""
    if not language:
        return ()
    return table.get(language, ())
