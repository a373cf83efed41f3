"""Apply a single rule to a single file's content."""

from __future__ import annotations

import logging
import re
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Pattern

from .conditions import canonical_text, check
from .result import Finding, truncate_match
from .rules import (
    CustomDetection,
    FileExistsDetection,
    JsonPathDetection,
    RegexDetection,
    Rule,
)
from .utils import jsonpath, parse_json_document

logger = logging.getLogger(__name__)

CustomHandler = Callable[[Rule, str, str], Iterable[Finding]]

REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "u": 0,
}


class InvalidRulePattern(ValueError):
    """Raised internally when a regex rule cannot be compiled."""


def compile_rule_pattern(detect: RegexDetection) -> Pattern[str]:
    flags = 0
    for letter in detect.flags:
        if letter == "g":
            continue
        if letter not in REGEX_FLAGS:
            raise InvalidRulePattern(f"unsupported flag {letter!r}")
        flags |= REGEX_FLAGS[letter]
    try:
        return re.compile(detect.pattern, flags)
    except (re.error, OverflowError, RecursionError) as exc:
        raise InvalidRulePattern(str(exc)) from exc


def make_finding(
    rule: Rule,
    file: str,
    line: Optional[int] = None,
    column: Optional[int] = None,
    match: Optional[str] = None,
) -> Finding:
    return Finding(
        rule_id=rule.id,
        rule_name=rule.name,
        severity=rule.severity,
        category=rule.category,
        file=file,
        line=line,
        column=column,
        match=truncate_match(match) if match is not None else None,
        message=rule.name,
        explanation=rule.description,
    )


def locate(content: str, offset: int) -> tuple[int, int]:
    """Return the 1-indexed ``(line, column)`` of ``offset`` in ``content``."""

    line = content.count("\n", 0, offset) + 1
    column = offset - content.rfind("\n", 0, offset)
    return line, column


def _evaluate_regex(rule: Rule, file: str, content: str, _handlers: Mapping[str, CustomHandler]) -> List[Finding]:
    detect = rule.detect
    try:
        regex = compile_rule_pattern(detect)
    except InvalidRulePattern as exc:
        logger.warning("Invalid regex in rule %s: %s", rule.id, exc)
        return []

    if "g" in detect.flags:
        # finditer steps one position past empty matches, so this terminates.
        matches = regex.finditer(content)
    else:
        first = regex.search(content)
        matches = iter([first] if first else [])

    findings = []
    for match in matches:
        line, column = locate(content, match.start())
        findings.append(make_finding(rule, file, line=line, column=column, match=match.group(0)))
    return findings


def find_key_line(content: str, path: str) -> int:
    """Return the first line mentioning the quoted final key of ``path``.

    This is a textual approximation: a key repeated elsewhere in the document
    is attributed to its first occurrence.
    """

    needle = f'"{jsonpath.last_key(path)}"'
    for number, text in enumerate(content.split("\n"), start=1):
        if needle in text:
            return number
    return 1


def _evaluate_json_path(rule: Rule, file: str, content: str, _handlers: Mapping[str, CustomHandler]) -> List[Finding]:
    detect = rule.detect
    document = parse_json_document(content)
    if document is jsonpath.MISSING:
        logger.debug("Skipping %s for %s: not valid JSON", rule.id, file)
        return []

    value = jsonpath.get(document, detect.path)
    if not check(value, detect.condition):
        return []
    return [
        make_finding(
            rule,
            file,
            line=find_key_line(content, detect.path),
            match=canonical_text(value),
        )
    ]


def _evaluate_file_exists(rule: Rule, file: str, content: str, _handlers: Mapping[str, CustomHandler]) -> List[Finding]:
    return [make_finding(rule, file)]


def _evaluate_custom(rule: Rule, file: str, content: str, handlers: Mapping[str, CustomHandler]) -> List[Finding]:
    handler = handlers.get(rule.detect.handler)
    if handler is None:
        return []
    try:
        return list(handler(rule, file, content))
    except Exception:  # pylint: disable=broad-except
        logger.exception("Custom handler %s failed for rule %s on %s", rule.detect.handler, rule.id, file)
        return []


_DISPATCH: Dict[type, Callable[[Rule, str, str, Mapping[str, CustomHandler]], List[Finding]]] = {
    RegexDetection: _evaluate_regex,
    JsonPathDetection: _evaluate_json_path,
    FileExistsDetection: _evaluate_file_exists,
    CustomDetection: _evaluate_custom,
}


def evaluate(
    rule: Rule,
    file: str,
    content: str,
    custom_handlers: Optional[Mapping[str, CustomHandler]] = None,
) -> List[Finding]:
    """Return the findings ``rule`` produces for ``content`` of ``file``."""

    try:
        handler = _DISPATCH[type(rule.detect)]
    except KeyError:
        raise TypeError(f"Unsupported detection type: {type(rule.detect).__name__}") from None
    return handler(rule, file, content, custom_handlers or {})
