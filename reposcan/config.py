"""Scan configuration loaded from an optional YAML file."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, List, Optional, Tuple

import yaml

from .scanner import DEFAULT_EXCLUDE, DEFAULT_MAX_FILE_SIZE, DEFAULT_TIMEOUT_MS, ScanOptions
from .utils import read_yaml_file


class ConfigError(ValueError):
    """Raised when a configuration file cannot be used."""


@dataclass
class ScanConfig:
    """Settings that may come from a config file or the command line.

    ``None`` means "not set here", so a later source can be layered on top
    with :meth:`merged`.
    """

    exclude: Optional[Tuple[str, ...]] = None
    max_file_size: Optional[int] = None
    timeout_ms: Optional[int] = None
    rules: List[Path] = field(default_factory=list)

    def merged(self, other: "ScanConfig") -> "ScanConfig":
        return replace(
            self,
            exclude=other.exclude if other.exclude is not None else self.exclude,
            max_file_size=other.max_file_size if other.max_file_size is not None else self.max_file_size,
            timeout_ms=other.timeout_ms if other.timeout_ms is not None else self.timeout_ms,
            rules=[*self.rules, *other.rules],
        )

    def to_options(self, root_path: Path) -> ScanOptions:
        return ScanOptions(
            root_path=root_path,
            exclude_patterns=self.exclude if self.exclude is not None else DEFAULT_EXCLUDE,
            max_file_size=self.max_file_size if self.max_file_size is not None else DEFAULT_MAX_FILE_SIZE,
            timeout_ms=self.timeout_ms if self.timeout_ms is not None else DEFAULT_TIMEOUT_MS,
        )


def _non_negative_int(data: dict, key: str, path: Path) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(f"{path}: '{key}' must be a non-negative integer")
    return value


def _string_list(data: dict, key: str, path: Path) -> Optional[List[str]]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"{path}: '{key}' must be a list of strings")
    return value


def parse_config(data: Any, path: Path) -> ScanConfig:
    if data is None:
        return ScanConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a mapping at the top level")
    unknown = set(data) - {"exclude", "max_file_size", "timeout_ms", "rules"}
    if unknown:
        raise ConfigError(f"{path}: unknown key(s) {', '.join(sorted(unknown))}")

    exclude = _string_list(data, "exclude", path)
    rules = _string_list(data, "rules", path) or []
    return ScanConfig(
        exclude=tuple(exclude) if exclude is not None else None,
        max_file_size=_non_negative_int(data, "max_file_size", path),
        timeout_ms=_non_negative_int(data, "timeout_ms", path),
        # Rule files are resolved relative to the config file that names them.
        rules=[path.parent / item for item in rules],
    )


def load_config(path: Path) -> ScanConfig:
    """Load ``path``; a missing file is an error, an empty one is not."""

    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        data = read_yaml_file(path)
    except yaml.YAMLError as exc:
        raise ConfigError(f"{path}: invalid YAML: {exc}") from exc
    return parse_config(data, path)
