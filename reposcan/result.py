"""Core result data structures for the scanner."""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .severity import Severity, Verdict

SEVERITY_ORDER: Sequence[Severity] = (
    Severity.HIGH,
    Severity.MEDIUM,
    Severity.LOW,
    Severity.INFO,
)

MAX_MATCH_LENGTH = 200


class ScanState(str, Enum):
    """Lifecycle of a single scan."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class Finding:
    """A single match of one rule against one location in one file."""

    rule_id: str
    rule_name: str
    severity: Severity
    category: str
    file: str
    message: str
    explanation: str
    line: Optional[int] = None
    column: Optional[int] = None
    match: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        return data


def truncate_match(text: str) -> str:
    return text[:MAX_MATCH_LENGTH]


@dataclass
class Summary:
    """Aggregate finding counts by severity."""

    high: int = 0
    medium: int = 0
    low: int = 0
    info: int = 0

    @classmethod
    def from_findings(cls, findings: Iterable[Finding]) -> "Summary":
        summary = cls()
        for finding in findings:
            summary.increment(finding.severity)
        return summary

    def increment(self, severity: Severity) -> None:
        attr = severity.value
        setattr(self, attr, getattr(self, attr) + 1)

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)

    def as_rows(self) -> List[Tuple[str, int]]:
        """Return severity/count pairs ordered for reporting."""

        return [(severity.value, getattr(self, severity.value)) for severity in SEVERITY_ORDER]

    @property
    def total(self) -> int:
        return sum(getattr(self, severity.value) for severity in SEVERITY_ORDER)


@dataclass
class ScanResult:
    """Bundle the verdict, findings and bookkeeping of a finished scan."""

    verdict: Verdict
    findings: List[Finding] = field(default_factory=list)
    scanned_files: int = 0
    scan_duration_ms: int = 0
    timestamp: str = ""
    outcome: ScanState = ScanState.COMPLETED

    @property
    def summary(self) -> Summary:
        return Summary.from_findings(self.findings)

    def to_dict(self) -> Dict[str, object]:
        return {
            "verdict": self.verdict.value,
            "outcome": self.outcome.value,
            "summary": self.summary.to_dict(),
            "scanned_files": self.scanned_files,
            "scan_duration_ms": self.scan_duration_ms,
            "timestamp": self.timestamp,
            "findings": [finding.to_dict() for finding in self.findings],
        }

    def exit_code(self) -> int:
        return self.verdict.exit_code

    def top_findings(self, limit: int = 5) -> List[Finding]:
        """Return findings ordered by severity ranking."""

        ordered = sorted(
            self.findings,
            key=lambda finding: (-finding.severity.rank, finding.rule_id),
        )
        return ordered[:limit]


def format_summary_table(result: ScanResult, max_findings: int = 5) -> str:
    """Create a human-readable summary table for console output."""

    summary = result.summary
    lines: List[str] = []
    lines.append("Scan Summary")
    lines.append("=" * 40)
    header = f"{'Severity':<10} | {'Count':>5}"
    lines.append(header)
    lines.append("-" * len(header))
    for severity, count in summary.as_rows():
        lines.append(f"{severity:<10} | {count:>5}")
    lines.append("-" * len(header))
    lines.append(f"Verdict   : {result.verdict.value.upper()}")
    lines.append(f"Outcome   : {result.outcome.value}")
    lines.append(f"Files     : {result.scanned_files}")
    lines.append(f"Findings  : {summary.total}")
    lines.append(f"Duration  : {result.scan_duration_ms} ms")

    findings = result.top_findings(max_findings)
    if findings:
        lines.append("")
        lines.append("Top Findings")
        lines.append("-" * 40)
        for finding in findings:
            location = finding.file
            if finding.line is not None:
                location = f"{location}:{finding.line}"
                if finding.column is not None:
                    location = f"{location}:{finding.column}"
            lines.append(f"[{finding.severity.value.upper()}] {finding.rule_id} {finding.message}")
            lines.append(f"  Location: {location}")
    return "\n".join(lines)
