"""Basic file IO helpers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from .jsonpath import MISSING


def read_yaml_file(path: Path) -> Any:
    """Return the parsed YAML if the file exists, otherwise ``None``."""

    if not path.exists():
        return None
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle)


def read_text_file(path: Path) -> str:
    """Return the file contents as UTF-8 text.

    Undecodable bytes are replaced so binary files can still be matched by
    rules that only care about their presence. ``OSError`` propagates.
    """

    with path.open("r", encoding="utf-8", errors="replace") as handle:
        return handle.read()


def parse_json_document(text: str) -> Any:
    """Parse ``text`` as JSON, returning :data:`MISSING` when it is not valid."""

    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        return MISSING
