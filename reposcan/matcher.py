"""Decide whether a relative file path falls under a rule's file patterns."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Pattern


def normalize(path: str) -> str:
    return path.replace("\\", "/").lower()


@lru_cache(maxsize=512)
def _wildcard_regex(pattern: str) -> Pattern[str]:
    """Compile an already-normalized wildcard pattern into an anchored regex."""

    body = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.compile(f"^{body}$", re.DOTALL)


def matches_pattern(path: str, pattern: str) -> bool:
    """Match a single pattern against a single path.

    Supported forms, any of which is sufficient:

    * exact path (``.vscode/tasks.json``)
    * path suffix, so a bare file name matches at any depth (``tasks.json``)
    * extension glob (``*.js``, ``*.txt.exe``)
    * directory prefix (``.vscode/``)
    * general wildcard, anchored to the whole path (``.vscode/*.sh``)
    """

    return _matches_normalized(normalize(path), normalize(pattern))


def _matches_normalized(path: str, pattern: str) -> bool:
    if not pattern:
        return False

    if path == pattern or path.endswith(pattern):
        return True

    if pattern.startswith("*.") and "*" not in pattern[1:]:
        if path.endswith(pattern[1:]):
            return True

    if pattern.endswith("/") and path.startswith(pattern):
        return True

    if "*" in pattern:
        return _wildcard_regex(pattern).match(path) is not None

    return False


def matches(path: str, patterns: Iterable[str]) -> bool:
    """Return ``True`` if ``path`` matches any of ``patterns``."""

    path = normalize(path)
    return any(_matches_normalized(path, normalize(pattern)) for pattern in patterns)
