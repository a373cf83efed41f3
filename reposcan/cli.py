"""Command-line entry point for the RepoScan scanner."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Sequence

from . import __version__
from .config import ConfigError, ScanConfig, load_config
from .result import ScanResult, format_summary_table
from .rules import RuleCatalog, RuleDefinitionError, default_catalog, load_rule_file
from .scanner import Scanner

EXIT_USAGE_ERROR = 3

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reposcan",
        description="Static scanner for supply-chain and workspace-trust attack patterns. "
        "Nothing in the scanned tree is ever executed.",
    )
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Root directory to scan (defaults to the current directory).",
    )
    parser.add_argument(
        "--exclude",
        "-x",
        dest="exclude",
        action="append",
        default=None,
        help="Directory or path segment to skip (repeatable). Replaces the default exclusions.",
    )
    parser.add_argument(
        "--max-file-size",
        type=int,
        default=None,
        help="Skip files larger than this many bytes (default: 1048576).",
    )
    parser.add_argument(
        "--timeout",
        dest="timeout_ms",
        type=int,
        default=None,
        help="Stop traversal after this many milliseconds (default: 30000).",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="YAML config file with scan settings. Never read from the scanned tree.",
    )
    parser.add_argument(
        "--rules",
        dest="rule_files",
        action="append",
        default=[],
        help="Additional YAML rule catalog file (repeatable).",
    )
    parser.add_argument(
        "--category",
        dest="categories",
        action="append",
        default=[],
        help="Only run rules from this category (repeatable).",
    )
    parser.add_argument(
        "--format",
        choices=["json"],
        default="json",
        help="Report format for file output (defaults to json).",
    )
    parser.add_argument(
        "--out",
        "--output",
        dest="output_path",
        type=str,
        default=None,
        help="Path to write the structured report (e.g., artifacts/reposcan.json).",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def resolve_config(args: argparse.Namespace) -> ScanConfig:
    # Never read from the scan root.
    config = ScanConfig()
    if args.config:
        logger.debug("Loading config from %s", args.config)
        config = load_config(Path(args.config))
    cli = ScanConfig(
        exclude=tuple(args.exclude) if args.exclude else None,
        max_file_size=args.max_file_size,
        timeout_ms=args.timeout_ms,
        rules=[Path(item) for item in args.rule_files],
    )
    return config.merged(cli)


def load_rules(rule_files: Sequence[Path], categories: Sequence[str] = ()) -> RuleCatalog:
    catalog = default_catalog()
    for path in rule_files:
        catalog = catalog.extended(load_rule_file(path))
    if categories:
        catalog = catalog.filtered(categories)
    return catalog


def run_scan(root: Path, config: ScanConfig, categories: Sequence[str] = ()) -> ScanResult:
    catalog = load_rules(config.rules, categories)
    scanner = Scanner(config.to_options(root), rules=catalog)
    return scanner.scan()


def write_output(result: ScanResult, output_path: str | None, report_format: str) -> None:
    summary = format_summary_table(result)
    print(summary)

    if report_format == "json":
        payload = json.dumps(result.to_dict(), indent=2)
        if output_path:
            output_file = Path(output_path)
            output_file.parent.mkdir(parents=True, exist_ok=True)
            output_file.write_text(payload, encoding="utf-8")
            print(f"\nReport written to {output_path}")
        else:
            print("\nJSON Report")
            print(payload)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    root = Path(args.path)
    try:
        config = resolve_config(args)
        result = run_scan(root, config, args.categories)
    except (ConfigError, RuleDefinitionError) as exc:
        sys.stderr.write(f"reposcan: {exc}\n")
        return EXIT_USAGE_ERROR

    write_output(result, args.output_path, args.format)
    return result.exit_code()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
