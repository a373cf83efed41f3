"""Walk a directory tree and apply the rule catalog to every candidate file."""

from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Mapping, Optional, Tuple

from .evaluator import CustomHandler, evaluate
from .matcher import matches
from .result import Finding, ScanResult, ScanState
from .rules import Rule, default_catalog
from .severity import Verdict
from .utils import read_text_file

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDE: Tuple[str, ...] = (
    "node_modules",
    ".git",
    "dist",
    "build",
    "out",
    ".next",
    "__pycache__",
    "venv",
    ".venv",
    "target",
)
DEFAULT_MAX_FILE_SIZE = 1024 * 1024
DEFAULT_TIMEOUT_MS = 30_000
SENSITIVE_CONFIG_DIR = ".vscode"


@dataclass(frozen=True)
class ScanOptions:
    """Inputs fixed for the duration of one scan."""

    root_path: Path
    exclude_patterns: Tuple[str, ...] = DEFAULT_EXCLUDE
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    sensitive_dir: str = SENSITIVE_CONFIG_DIR

    def __post_init__(self) -> None:
        object.__setattr__(self, "root_path", Path(self.root_path))
        object.__setattr__(self, "exclude_patterns", tuple(self.exclude_patterns))


class CancellationToken:
    """Cooperative stop signal, safe to set from any thread."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class ScanContext:
    """Mutable state owned by a single ``Scanner.scan`` call."""

    options: ScanOptions
    token: CancellationToken
    started: float = field(default_factory=time.monotonic)
    findings: List[Finding] = field(default_factory=list)
    scanned_files: int = 0
    state: ScanState = ScanState.RUNNING

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)

    def should_stop(self) -> bool:
        """Check the cancellation and timeout signals, recording which fired."""

        if self.state is not ScanState.RUNNING:
            return True
        if self.token.cancelled:
            logger.info("Scan aborted after %d files", self.scanned_files)
            self.state = ScanState.ABORTED
            return True
        if self.elapsed_ms() > self.options.timeout_ms:
            logger.info("Scan timed out after %d ms", self.options.timeout_ms)
            self.state = ScanState.TIMED_OUT
            return True
        return False


class Scanner:
    """Static, non-executing scanner for a single directory tree.

    Cancellation is checked when a directory is entered and before each of its
    entries; a file that is already being read or evaluated runs to completion.
    Bound ``max_file_size`` if scans need a hard deadline.
    """

    def __init__(
        self,
        options: ScanOptions,
        rules: Optional[Iterable[Rule]] = None,
        custom_handlers: Optional[Mapping[str, CustomHandler]] = None,
    ) -> None:
        self.options = options
        self.rules: Tuple[Rule, ...] = tuple(rules if rules is not None else default_catalog())
        self.custom_handlers = dict(custom_handlers or {})
        self.state = ScanState.IDLE
        self._token = CancellationToken()

    def abort(self) -> None:
        """Ask the running scan to stop at its next checkpoint.

        Called while no scan is running, the request applies to the next scan.
        """

        self._token.cancel()

    def scan(self, token: Optional[CancellationToken] = None) -> ScanResult:
        if token is not None:
            self._token = token
        context = ScanContext(options=self.options, token=self._token)
        self.state = ScanState.RUNNING
        root = self.options.root_path
        logger.debug("Scanning %s with %d rules", root, len(self.rules))

        try:
            self._walk_directory(context, root, PurePosixPath())
        finally:
            # A token is consumed by the scan that observed it.
            self._token = CancellationToken()

        if context.state is ScanState.RUNNING:
            context.state = ScanState.COMPLETED
        self.state = context.state
        result = ScanResult(
            verdict=Verdict.from_severities(finding.severity for finding in context.findings),
            findings=context.findings,
            scanned_files=context.scanned_files,
            scan_duration_ms=context.elapsed_ms(),
            timestamp=datetime.now(timezone.utc).isoformat(),
            outcome=context.state,
        )
        logger.debug(
            "Scan %s: %d files, %d findings, verdict %s",
            result.outcome.value,
            result.scanned_files,
            len(result.findings),
            result.verdict.value,
        )
        return result

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------
    def _walk_directory(self, context: ScanContext, directory: Path, relative_dir: PurePosixPath) -> None:
        if context.should_stop():
            return

        try:
            with os.scandir(directory) as iterator:
                entries = sorted(iterator, key=lambda entry: entry.name)
        except OSError as exc:
            if directory == self.options.root_path:
                logger.warning("Cannot open scan root %s: %s", directory, exc)
            else:
                logger.debug("Skipping unreadable directory %s: %s", directory, exc)
            return

        for entry in entries:
            if context.should_stop():
                return

            relative = relative_dir / entry.name
            if self._should_exclude(relative, entry.name):
                continue

            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = entry.is_file(follow_symlinks=False)
            except OSError:
                continue
            if is_dir:
                self._walk_directory(context, Path(entry.path), relative)
            elif is_file:
                self._scan_file(context, entry, str(relative))

    def _should_exclude(self, relative: PurePosixPath, name: str) -> bool:
        if name.startswith(".") and name != self.options.sensitive_dir:
            return True

        relative_text = relative.as_posix()
        for pattern in self.options.exclude_patterns:
            if "/" in pattern:
                if pattern in relative_text:
                    return True
            elif name == pattern or pattern in relative.parts:
                return True
        return False

    # ------------------------------------------------------------------
    # Per-file evaluation
    # ------------------------------------------------------------------
    def applicable_rules(self, relative_path: str) -> List[Rule]:
        return [rule for rule in self.rules if matches(relative_path, rule.file_patterns)]

    def _scan_file(self, context: ScanContext, entry: os.DirEntry, relative_path: str) -> None:
        try:
            size = entry.stat(follow_symlinks=False).st_size
        except OSError as exc:
            logger.debug("Cannot stat %s: %s", relative_path, exc)
            return
        if size > self.options.max_file_size:
            logger.debug("Skipping %s: %d bytes exceeds limit", relative_path, size)
            return

        rules = self.applicable_rules(relative_path)
        if not rules:
            return

        try:
            content = read_text_file(Path(entry.path))
        except OSError as exc:
            logger.debug("Cannot read %s: %s", relative_path, exc)
            return

        context.scanned_files += 1
        for rule in rules:
            context.findings.extend(evaluate(rule, relative_path, content, self.custom_handlers))


def scan_repository(root_path: os.PathLike | str, **options) -> ScanResult:
    """Scan ``root_path`` with the built-in catalog and default limits."""

    return Scanner(ScanOptions(root_path=Path(root_path), **options)).scan()
