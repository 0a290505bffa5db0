"""Issue records shared by the scanner, aggregator and fix pipeline."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class Severity(str, Enum):
    """Issue severity levels."""

    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"

    @property
    def priority(self) -> int:
        """Sort key, most severe first."""
        return {Severity.ERROR: 1, Severity.WARNING: 2, Severity.INFO: 3}[self]


MAX_EXAMPLES_PER_RULE = 5


@dataclass(frozen=True)
class RawIssue:
    """One pattern match on one line of one file."""

    file: str
    line: int
    column: int
    rule: str
    ruleset: str
    severity: Severity
    description: str
    snippet: str


@dataclass(frozen=True)
class IssueExample:
    """Representative occurrence kept on an aggregated issue."""

    file: str
    line: int
    snippet: str


@dataclass
class AggregatedIssue:
    """All occurrences of one rule across a scanned tree."""

    rule: str
    ruleset: str
    severity: Severity
    description: str
    count: int = 0
    examples: list[IssueExample] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.severity = Severity(self.severity)
        if self.count < 0:
            raise ValueError("count must be >= 0")
        if len(self.examples) > MAX_EXAMPLES_PER_RULE:
            raise ValueError(
                f"At most {MAX_EXAMPLES_PER_RULE} examples are kept per rule, got {len(self.examples)}"
            )
        if len(self.examples) > self.count:
            raise ValueError("examples cannot outnumber count")

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AggregatedIssue":
        return cls(
            rule=data["rule"],
            ruleset=data.get("ruleset", ""),
            severity=Severity(data["severity"]),
            description=data.get("description", ""),
            count=data.get("count", 0),
            examples=[IssueExample(**example) for example in data.get("examples", [])],
        )
