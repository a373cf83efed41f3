"""Minimal dotted path queries over parsed JSON documents.

Paths are dot separated. Each segment is one of:

* a plain key (``scripts``), or an all-digit index when applied to a list
* ``key[index]`` to select an element of the list stored under ``key``
* ``*`` for every value of an object or element of a list. Any segments
  after it are applied to each of those values and the results found are
  collected into a list; when none are found the result is missing.

A path that cannot be followed yields :data:`MISSING` rather than raising.
"""

from __future__ import annotations

import re
from typing import Any, List

INDEXED_SEGMENT = re.compile(r"^(\w+)\[(\d+)\]$")


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def _index(value: Any, index: int) -> Any:
    if isinstance(value, list) and 0 <= index < len(value):
        return value[index]
    return MISSING


def _key(value: Any, key: str) -> Any:
    if isinstance(value, dict):
        return value.get(key, MISSING)
    if isinstance(value, list) and key.isdigit():
        return _index(value, int(key))
    return MISSING


def get(document: Any, path: str) -> Any:
    """Return the value at ``path`` inside ``document`` or :data:`MISSING`."""

    return _walk(document, path.split("."))


def _walk(current: Any, segments: List[str]) -> Any:
    for position, segment in enumerate(segments):
        if current is MISSING or current is None:
            return MISSING

        indexed = INDEXED_SEGMENT.match(segment)
        if indexed:
            current = _index(_key(current, indexed.group(1)), int(indexed.group(2)))
        elif segment == "*":
            if isinstance(current, dict):
                values = list(current.values())
            elif isinstance(current, list):
                values = current
            else:
                return MISSING
            rest = segments[position + 1 :]
            if not rest:
                return values
            found = [item for item in (_walk(value, rest) for value in values) if item is not MISSING]
            return found or MISSING
        else:
            current = _key(current, segment)
    return current


def last_key(path: str) -> str:
    """Return the key name of the final segment, without any index suffix."""

    segment = path.split(".")[-1]
    indexed = INDEXED_SEGMENT.match(segment)
    return indexed.group(1) if indexed else segment
