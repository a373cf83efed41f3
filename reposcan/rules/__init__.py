"""Rule model and catalog for the scanner.

Rules are declarative data. The built-in catalog lives in YAML files under
``catalog/``, one file per category, and is loaded once on first use.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import yaml

from reposcan.conditions import Condition, parse_condition
from reposcan.severity import Severity
from reposcan.utils import read_yaml_file

logger = logging.getLogger(__name__)

CATALOG_DIR = Path(__file__).parent / "catalog"
REQUIRED_FIELDS = ("id", "name", "description", "severity", "file_patterns", "detect")


class RuleDefinitionError(ValueError):
    """Raised when a catalog file contains a malformed rule."""


@dataclass(frozen=True)
class RegexDetection:
    pattern: str
    flags: str = "gm"


@dataclass(frozen=True)
class JsonPathDetection:
    path: str
    condition: Condition


@dataclass(frozen=True)
class FileExistsDetection:
    paths: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CustomDetection:
    handler: str


Detection = Union[RegexDetection, JsonPathDetection, FileExistsDetection, CustomDetection]


@dataclass(frozen=True)
class Rule:
    """A declarative detection unit."""

    id: str
    name: str
    description: str
    severity: Severity
    category: str
    file_patterns: Tuple[str, ...]
    detect: Detection


class RuleCatalog:
    """Read-only collection of rules with the lookups the scanner needs."""

    def __init__(self, rules: Iterable[Rule]) -> None:
        self._rules: Tuple[Rule, ...] = tuple(rules)
        self._by_id: Dict[str, Rule] = {}
        for rule in self._rules:
            if rule.id in self._by_id:
                raise RuleDefinitionError(f"Duplicate rule id: {rule.id}")
            self._by_id[rule.id] = rule

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def all(self) -> Tuple[Rule, ...]:
        return self._rules

    def by_category(self, category: str) -> List[Rule]:
        return [rule for rule in self._rules if rule.category == category]

    def by_id(self, rule_id: str) -> Optional[Rule]:
        return self._by_id.get(rule_id)

    @property
    def categories(self) -> List[str]:
        seen: Dict[str, None] = {}
        for rule in self._rules:
            seen.setdefault(rule.category, None)
        return list(seen)

    def extended(self, rules: Iterable[Rule]) -> "RuleCatalog":
        return RuleCatalog([*self._rules, *rules])

    def filtered(self, categories: Sequence[str]) -> "RuleCatalog":
        wanted = set(categories)
        return RuleCatalog(rule for rule in self._rules if rule.category in wanted)


# ----------------------------------------------------------------------
# Loading
# ----------------------------------------------------------------------
def _parse_detection(data: Any, where: str) -> Detection:
    if not isinstance(data, dict):
        raise RuleDefinitionError(f"{where}: 'detect' must be a mapping")
    kind = data.get("type")
    if kind == "regex":
        pattern = data.get("pattern")
        if not isinstance(pattern, str):
            raise RuleDefinitionError(f"{where}: regex detection needs a string 'pattern'")
        return RegexDetection(pattern=pattern, flags=str(data.get("flags", "gm")))
    if kind == "json-path":
        path = data.get("path")
        if not isinstance(path, str) or not path:
            raise RuleDefinitionError(f"{where}: json-path detection needs a 'path'")
        return JsonPathDetection(path=path, condition=parse_condition(data.get("condition")))
    if kind == "file-exists":
        return FileExistsDetection(paths=tuple(str(item) for item in data.get("paths") or ()))
    if kind == "custom":
        handler = data.get("handler")
        if not isinstance(handler, str):
            raise RuleDefinitionError(f"{where}: custom detection needs a 'handler'")
        return CustomDetection(handler=handler)
    raise RuleDefinitionError(f"{where}: unknown detection type {kind!r}")


def parse_rule(data: Any, default_category: Optional[str] = None, source: str = "<rules>") -> Rule:
    """Build a :class:`Rule` from its mapping form."""

    if not isinstance(data, dict):
        raise RuleDefinitionError(f"{source}: rule entries must be mappings")
    where = f"{source}:{data.get('id', '?')}"
    missing = [name for name in REQUIRED_FIELDS if name not in data]
    if missing:
        raise RuleDefinitionError(f"{where}: missing field(s) {', '.join(missing)}")

    try:
        severity = Severity(str(data["severity"]).lower())
    except ValueError as exc:
        raise RuleDefinitionError(f"{where}: unknown severity {data['severity']!r}") from exc

    category = data.get("category", default_category)
    if not category:
        raise RuleDefinitionError(f"{where}: missing category")

    patterns = data["file_patterns"]
    if isinstance(patterns, str):
        patterns = [patterns]
    if not isinstance(patterns, list) or not all(isinstance(item, str) for item in patterns):
        raise RuleDefinitionError(f"{where}: 'file_patterns' must be a list of strings")

    return Rule(
        id=str(data["id"]),
        name=str(data["name"]).strip(),
        description=" ".join(str(data["description"]).split()),
        severity=severity,
        category=str(category),
        file_patterns=tuple(patterns),
        detect=_parse_detection(data["detect"], where),
    )


def load_rule_file(path: Path) -> List[Rule]:
    """Load every rule declared in one catalog file."""

    try:
        data = read_yaml_file(path)
    except yaml.YAMLError as exc:
        raise RuleDefinitionError(f"{path}: invalid YAML: {exc}") from exc
    if data is None:
        raise RuleDefinitionError(f"Rule file not found or empty: {path}")
    if not isinstance(data, dict) or not isinstance(data.get("rules"), list):
        raise RuleDefinitionError(f"{path}: expected a mapping with a 'rules' list")
    category = data.get("category")
    rules = [parse_rule(entry, default_category=category, source=path.name) for entry in data["rules"]]
    logger.debug("Loaded %d rules from %s", len(rules), path)
    return rules


def load_catalog(paths: Optional[Iterable[Path]] = None) -> RuleCatalog:
    """Load a catalog from ``paths``, defaulting to the packaged YAML files."""

    if paths is None:
        paths = sorted(CATALOG_DIR.glob("*.yaml"), key=_catalog_sort_key)
    rules: List[Rule] = []
    for path in paths:
        rules.extend(load_rule_file(Path(path)))
    return RuleCatalog(rules)


# Load order of the packaged files; anything else follows alphabetically.
CATALOG_ORDER = ("vscode", "javascript", "python", "shell", "repo_heuristics")


def _catalog_sort_key(path: Path) -> Tuple[int, str]:
    try:
        return CATALOG_ORDER.index(path.stem), path.stem
    except ValueError:
        return len(CATALOG_ORDER), path.stem


@lru_cache(maxsize=1)
def default_catalog() -> RuleCatalog:
    """Return the built-in catalog, loading it on first use."""

    return load_catalog()
