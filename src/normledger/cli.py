"""normledger CLI: record audits, browse checkpoints and capture norms."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from ._internal.canonical_json import artifact_dumps
from ._internal.package_meta import get_tool_version
from .errors import (
    CheckpointNotFoundError,
    ConfigurationError,
    CorruptArtifactError,
    InvalidDirectoryError,
    NoCheckpointsError,
    NormDetectionError,
    NormLedgerError,
    StorageError,
    SummaryWriteError,
)
from .codes import ErrorCode, StatusFilter
from .settings import LedgerSettings


def _error_code(error: NormLedgerError) -> ErrorCode:
    """Map an exception to its reported error code (most specific first)."""
    if isinstance(error, NoCheckpointsError):
        return ErrorCode.NO_CHECKPOINTS
    if isinstance(error, CheckpointNotFoundError):
        return ErrorCode.CHECKPOINT_NOT_FOUND
    if isinstance(error, CorruptArtifactError):
        return ErrorCode.CORRUPT_ARTIFACT
    if isinstance(error, StorageError):
        return ErrorCode.STORAGE_ERROR
    if isinstance(error, InvalidDirectoryError):
        return ErrorCode.INVALID_DIRECTORY
    if isinstance(error, NormDetectionError):
        return ErrorCode.NORM_DETECTION_FAILED
    if isinstance(error, SummaryWriteError):
        return ErrorCode.SUMMARY_WRITE_FAILED
    if isinstance(error, ConfigurationError):
        return ErrorCode.CONFIGURATION_ERROR
    return ErrorCode.STORAGE_ERROR


def _format_delta(value: int) -> str:
    return f"+{value}" if value > 0 else str(value)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="normledger",
        description="normledger: migration audit history and directory norm detection"
    )
    parser.add_argument("--version", action="version", version=f"normledger {get_tool_version()}")
    # Common arguments
    parent_parser = argparse.ArgumentParser(add_help=False)
    parent_parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Output directory for audit history (defaults to NORMLEDGER_OUTPUT_DIR or .amp/normledger)"
    )
    parent_parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging."
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # audit command
    audit_parser = subparsers.add_parser(
        "audit",
        help="Record an audit run from a JSON array of violations",
        parents=[parent_parser]
    )
    audit_parser.add_argument(
        "--findings",
        type=Path,
        required=True,
        help="Path to a JSON array of raw violations"
    )
    audit_parser.add_argument(
        "--rules-enabled",
        nargs="*",
        default=None,
        help="Ids of the rules that ran"
    )
    audit_parser.add_argument(
        "--thread",
        default=None,
        help="Attribution reference for this run"
    )
    audit_parser.add_argument(
        "--project-root",
        default=None,
        help="Project root used to relativize absolute file paths"
    )
    audit_parser.add_argument(
        "--fail-on",
        nargs="+",
        choices=["error", "warning", "info"],
        default=None,
        help="Severities that make the command exit 1 (default: error)"
    )

    # checkpoints command group
    checkpoints_parser = subparsers.add_parser(
        "checkpoints",
        help="Checkpoint history commands"
    )
    checkpoints_subparsers = checkpoints_parser.add_subparsers(
        dest="checkpoints_command", help="Available checkpoint commands"
    )
    list_parser = checkpoints_subparsers.add_parser(
        "list",
        help="List recent checkpoints, newest first",
        parents=[parent_parser]
    )
    list_parser.add_argument(
        "--limit",
        type=int,
        default=10,
        help="Maximum number of checkpoints to show"
    )
    list_parser.add_argument(
        "--json",
        action="store_true",
        help="Print checkpoint summaries as JSON"
    )
    show_parser = checkpoints_subparsers.add_parser(
        "show",
        help="Print one checkpoint as JSON",
        parents=[parent_parser]
    )
    show_parser.add_argument("checkpoint_id", help="Checkpoint id")

    # norms command group
    norms_parser = subparsers.add_parser(
        "norms",
        help="Directory norm commands"
    )
    norms_subparsers = norms_parser.add_subparsers(dest="norms_command", help="Available norm commands")
    capture_parser = norms_subparsers.add_parser(
        "capture",
        help="Summarize a directory and optionally write norms/<dir>.json",
        parents=[parent_parser]
    )
    capture_parser.add_argument(
        "--directory",
        required=True,
        help="Project-relative directory, e.g. src/services"
    )
    capture_parser.add_argument(
        "--lookback",
        type=int,
        default=None,
        help="Consecutive zero checkpoints required for a norm (default 5)"
    )
    capture_parser.add_argument(
        "--min-files",
        type=int,
        default=1,
        help="Minimum files in the directory for the summary to be written"
    )
    capture_parser.add_argument(
        "--status",
        choices=[s.value for s in StatusFilter],
        default=StatusFilter.MIGRATED.value,
        help="Only write directories with this status"
    )
    capture_parser.add_argument(
        "--write",
        action="store_true",
        help="Write the summary (otherwise print only)"
    )
    capture_parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace an existing summary file"
    )
    return parser


def _settings_from_args(args: argparse.Namespace, **overrides) -> LedgerSettings:
    output_dir = str(args.output_dir) if getattr(args, "output_dir", None) else None
    return LedgerSettings.from_env(output_dir=output_dir, **overrides)


def _run_audit(args: argparse.Namespace) -> int:
    from .api import record_audit

    try:
        with open(args.findings, "r", encoding="utf-8") as f:
            violations = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error: cannot read findings {args.findings}: {e}", file=sys.stderr)
        return 1
    if not isinstance(violations, list):
        print(f"Error: {args.findings} must contain a JSON array of violations", file=sys.stderr)
        return 1

    settings = _settings_from_args(args, project_root=args.project_root, fail_on=args.fail_on)
    try:
        record = record_audit(violations, settings=settings, rules_enabled=args.rules_enabled, thread=args.thread)
    except ValidationError as e:
        print(f"Error: invalid violation in {args.findings}: {e}", file=sys.stderr)
        return 1
    summary = record.findings.summary
    print(f"[OK] Audit recorded (revision {record.revision})")
    print(f"  Checkpoint: {record.checkpoint.id}")
    print(f"  Findings: {summary.total_findings} ({summary.errors} errors, "
          f"{summary.warnings} warnings, {summary.info} info) in {summary.total_files} files")
    if record.checkpoint.delta is not None:
        delta = record.checkpoint.delta
        print(f"  Delta: errors {_format_delta(delta.errors)}, warnings {_format_delta(delta.warnings)}, "
              f"total {_format_delta(delta.total_findings)}")
    print(f"  Audit: {record.audit_path}")
    print(f"  Metrics: {record.metrics_path}")

    if any(summary.count(severity) for severity in settings.fail_on):
        return 1
    return 0


def _run_checkpoints_list(args: argparse.Namespace) -> int:
    from .api import list_checkpoints

    summaries = list_checkpoints(settings=_settings_from_args(args), limit=args.limit)
    if args.json:
        print(artifact_dumps([s.to_json_dict() for s in summaries]), end="")
        return 0
    if not summaries:
        print("No checkpoints found")
        return 0
    for entry in summaries:
        line = f"{entry.id}  total={entry.summary.total_findings} errors={entry.summary.errors}"
        if entry.delta is not None:
            line += f" (delta {_format_delta(entry.delta.total_findings)})"
        if entry.thread:
            line += f" thread={entry.thread}"
        print(line)
    return 0


def _run_checkpoints_show(args: argparse.Namespace) -> int:
    from .store import CheckpointStore

    settings = _settings_from_args(args)
    checkpoint = CheckpointStore(project_root=settings.project_root).read_checkpoint(
        settings.output_dir, args.checkpoint_id
    )
    print(artifact_dumps(checkpoint.to_json_dict()), end="")
    return 0


def _run_norms_capture(args: argparse.Namespace) -> int:
    from .api import capture_norms

    settings = _settings_from_args(args, lookback_window=args.lookback)
    result = capture_norms(
        args.directory,
        settings=settings,
        status=args.status,
        min_files=args.min_files,
        write=args.write,
        overwrite=args.overwrite,
    )
    summary = result.summary
    print(f"{summary.directory}: {summary.status.value} "
          f"({summary.files.clean}/{summary.files.total} files clean, {len(summary.norms)} norms)")
    for norm in summary.norms:
        print(f"  {norm.rule_id} [{norm.severity}] fixed {norm.violations_fixed}")
    if result.written:
        print(f"[OK] Wrote {result.path}")
    elif result.reason:
        print(f"  Not written: {result.reason}")
    return 0


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point for normledger commands."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if getattr(args, "verbose", False) else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "audit":
        handler = _run_audit
    elif args.command == "checkpoints" and args.checkpoints_command == "list":
        handler = _run_checkpoints_list
    elif args.command == "checkpoints" and args.checkpoints_command == "show":
        handler = _run_checkpoints_show
    elif args.command == "norms" and args.norms_command == "capture":
        handler = _run_norms_capture
    else:
        parser.print_help()
        sys.exit(1)

    try:
        sys.exit(handler(args))
    except NormLedgerError as e:
        print(f"Error [{_error_code(e).value}]: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
