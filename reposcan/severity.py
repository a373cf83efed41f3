"""Severity and verdict definitions for scanner findings."""

from __future__ import annotations

from enum import Enum
from typing import Iterable


class Severity(str, Enum):
    """Enumerate the supported severity levels for findings."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Return an integer ranking, higher is more severe."""

        ordering = {
            Severity.HIGH: 3,
            Severity.MEDIUM: 2,
            Severity.LOW: 1,
            Severity.INFO: 0,
        }
        return ordering[self]


class Verdict(str, Enum):
    """Overall risk level derived from the most severe finding."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def from_severities(cls, severities: Iterable[Severity]) -> "Verdict":
        worst = max((severity.rank for severity in severities), default=Severity.INFO.rank)
        if worst >= Severity.HIGH.rank:
            return cls.HIGH
        if worst >= Severity.MEDIUM.rank:
            return cls.MEDIUM
        return cls.LOW

    @property
    def exit_code(self) -> int:
        """Return the process exit status used by the CLI for this verdict."""

        ordering = {
            Verdict.HIGH: 2,
            Verdict.MEDIUM: 1,
            Verdict.LOW: 0,
        }
        return ordering[self]
