"""Declarative conditions applied to values extracted by path queries."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, Union

from .utils.jsonpath import MISSING

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Exists:
    op = "exists"


@dataclass(frozen=True)
class Equals:
    value: Any
    op = "equals"


@dataclass(frozen=True)
class Contains:
    value: str
    op = "contains"


@dataclass(frozen=True)
class Matches:
    pattern: str
    op = "matches"


@dataclass(frozen=True)
class Unsupported:
    """Placeholder for an operator the catalog loader did not recognise."""

    op: str


Condition = Union[Exists, Equals, Contains, Matches, Unsupported]


def canonical_text(value: Any) -> Optional[str]:
    """Serialize ``value`` compactly, or return ``None`` for :data:`MISSING`."""

    if value is MISSING:
        return None
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _strict_equals(value: Any, expected: Any) -> bool:
    if isinstance(value, bool) or isinstance(expected, bool):
        return type(value) is type(expected) and value == expected
    if isinstance(value, (int, float)) and isinstance(expected, (int, float)):
        return value == expected
    return type(value) is type(expected) and value == expected


def _contains(value: Any, needle: str) -> bool:
    if isinstance(value, str):
        return needle in value
    if isinstance(value, list):
        return any(isinstance(item, str) and needle in item for item in value)
    text = canonical_text(value)
    return text is not None and needle in text


def _matches(value: Any, pattern: str) -> bool:
    try:
        regex = re.compile(pattern)
    except re.error as exc:
        logger.warning("Invalid condition pattern %r: %s", pattern, exc)
        return False
    text = value if isinstance(value, str) else canonical_text(value)
    return text is not None and regex.search(text) is not None


def check(value: Any, condition: Condition) -> bool:
    """Return whether ``condition`` holds for ``value``."""

    if isinstance(condition, Exists):
        return value is not MISSING and value is not None
    if value is MISSING:
        return False
    if isinstance(condition, Equals):
        return _strict_equals(value, condition.value)
    if isinstance(condition, Contains):
        return _contains(value, condition.value)
    if isinstance(condition, Matches):
        return _matches(value, condition.pattern)
    logger.debug("Unsupported condition %r evaluates to false", condition)
    return False


def parse_condition(data: Any) -> Condition:
    """Build a condition from its mapping form, e.g. ``{"op": "equals", "value": 1}``."""

    if not isinstance(data, dict):
        return Unsupported(op=repr(data))
    op = data.get("op")
    if op == "exists":
        return Exists()
    if op == "equals":
        return Equals(value=data.get("value"))
    if op == "contains" and isinstance(data.get("value"), str):
        return Contains(value=data["value"])
    if op == "matches" and isinstance(data.get("pattern"), str):
        return Matches(pattern=data["pattern"])
    return Unsupported(op=str(op))
