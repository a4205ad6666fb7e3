"""Public API for normledger.

High-level functions that record audit runs and derive directory summaries.
Callers should use these functions instead of importing from _internal.
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Union

from pydantic import BaseModel, ValidationError

from normledger._internal.canonical_json import artifact_dumps
from normledger._internal.storage import FileStorage
from normledger.codes import DirectoryStatus, StatusFilter
from normledger.contracts import DirectorySummary
from normledger.errors import NormLedgerError
from normledger.kernel.checkpoint import (
    SCHEMA_VERSION,
    AuditContext,
    CheckpointMetadata,
    CheckpointSummary,
    ConfigSnapshot,
    MetricsContext,
    MetricsSummary,
    RuleMetrics,
)
from normledger.kernel.findings import FindingsGroup, RuleViolation
from normledger.kernel.normalizer import normalize_results
from normledger.settings import LedgerSettings
from normledger.store import CheckpointStore
from normledger.summarizer import DirectorySummarizer, write_norm_summary

logger = logging.getLogger(__name__)

AUDIT_FILE = "audit.json"
METRICS_FILE = "metrics.json"


class AuditRecord(BaseModel):
    """Result of recording one audit run."""
    revision: int
    checkpoint: CheckpointMetadata
    findings: FindingsGroup
    audit_path: str  # audit.json
    metrics_path: str  # metrics.json
    checkpoint_path: str  # checkpoints/<id>.json


class CaptureResult(BaseModel):
    """Outcome of a norm capture for one directory."""
    directory: str
    written: bool = False
    skipped: bool = False
    reason: Optional[str] = None  # Why nothing was written
    path: Optional[str] = None  # norms/<dir>.json when written or already present
    summary: DirectorySummary


def _normalize_path(path: Union[str, os.PathLike, Path]) -> Path:
    """Normalize path input to Path object."""
    return Path(path) if not isinstance(path, Path) else path


def normalize_file_path(file_path: str, project_root: Union[str, Path]) -> str:
    """Project-relative path with "/" separators.

    Absolute paths are made relative to ``project_root``; relative paths are
    only converted to forward slashes.
    """
    if os.path.isabs(file_path):
        root = os.path.abspath(str(project_root))
        file_path = os.path.relpath(file_path, root)
    return file_path.replace("\\", "/")


def _coerce_violations(
    violations: Iterable[Union[RuleViolation, Dict]],
    project_root: Union[str, Path],
) -> List[RuleViolation]:
    coerced: List[RuleViolation] = []
    for v in violations:
        violation = v if isinstance(v, RuleViolation) else RuleViolation.model_validate(v)
        if violation.file:
            violation = violation.model_copy(
                update={"file": normalize_file_path(violation.file, project_root)}
            )
        coerced.append(violation)
    return coerced


def _read_advisory(path: Path, model, storage: FileStorage):
    """Read an advisory artifact, degrading to None on any failure."""
    if not storage.exists(path):
        return None
    try:
        return model.model_validate(storage.read_json(path))
    except (NormLedgerError, ValidationError) as e:
        logger.warning("Ignoring unreadable %s: %s", path, e)
        return None


def read_audit_context(
    output_dir: Union[str, Path],
    storage: Optional[FileStorage] = None,
) -> Optional[AuditContext]:
    """Load audit.json, or None when it is missing or invalid."""
    storage = storage or FileStorage()
    return _read_advisory(_normalize_path(output_dir) / AUDIT_FILE, AuditContext, storage)


def read_metrics_context(
    output_dir: Union[str, Path],
    storage: Optional[FileStorage] = None,
) -> Optional[MetricsContext]:
    """Load metrics.json, or None when it is missing or invalid."""
    storage = storage or FileStorage()
    return _read_advisory(_normalize_path(output_dir) / METRICS_FILE, MetricsContext, storage)


def progress_percentage(current_total: int, previous_total: Optional[int]) -> int:
    """Progress relative to the previous run's violation total.

    Examples: 100 -> 50 is 50, 100 -> 0 is 100, 50 -> 75 is 0 (clamped).
    """
    if not previous_total:
        return 100 if current_total == 0 else 0
    return max(0, min(100, round(100 * (1 - current_total / previous_total))))


def compute_metrics(
    findings: FindingsGroup,
    revision: int,
    tool_version: str,
    timestamp: datetime,
    previous: Optional[MetricsContext] = None,
    project_root: str = ".",
) -> MetricsContext:
    """Build the metrics.json model for one run.

    Args:
        findings: Normalized findings of the current run
        revision: Revision shared with the run's checkpoint and audit.json
        tool_version: Version recorded in the artifact
        timestamp: Run timestamp
        previous: Previous metrics, baseline for progress (None if absent)
        project_root: Project root recorded in the artifact

    Returns:
        MetricsContext with summary and per-rule breakdown (sorted by rule id)
    """
    summary = findings.summary
    total = summary.total_findings

    by_rule: Dict[int, int] = {}
    files_by_rule: Dict[int, Set[int]] = {}
    affected: Set[int] = set()
    for result in findings.results:
        by_rule[result.rule] = by_rule.get(result.rule, 0) + 1
        if result.file is not None:
            files_by_rule.setdefault(result.rule, set()).add(result.file)
            affected.add(result.file)

    breakdown = [
        RuleMetrics(
            id=findings.rules[idx].id,
            violations=count,
            severity=findings.rules[idx].severity,
            files_affected=len(files_by_rule.get(idx, ())),
        )
        for idx, count in sorted(by_rule.items())
    ]
    previous_total = previous.summary.total_violations if previous is not None else None

    return MetricsContext(
        schema_version=SCHEMA_VERSION,
        revision=revision,
        tool_version=tool_version,
        project_root=project_root,
        timestamp=timestamp,
        summary=MetricsSummary(
            total_violations=total,
            errors=summary.errors,
            warnings=summary.warnings,
            info=summary.info,
            files_affected=len(affected),
            progress_percentage=progress_percentage(total, previous_total),
        ),
        rule_breakdown=breakdown,
    )


def record_audit(
    violations: Iterable[Union[RuleViolation, Dict]],
    settings: Optional[LedgerSettings] = None,
    rules_enabled: Optional[List[str]] = None,
    thread: Optional[str] = None,
    store: Optional[CheckpointStore] = None,
) -> AuditRecord:
    """Record one audit run.

    Normalizes the violations, creates a checkpoint and writes audit.json and
    metrics.json, all carrying the same revision.

    Args:
        violations: Raw violations (models or dicts in wire form)
        settings: Output location and project root (defaults from environment)
        rules_enabled: Ids of the rules that ran
        thread: Optional attribution reference for this run
        store: Checkpoint store (injectable for time control in tests)

    Returns:
        AuditRecord describing the written artifacts

    Raises:
        StorageError: If an artifact cannot be written
        CorruptArtifactError: If the existing manifest is corrupt
    """
    settings = settings or LedgerSettings.from_env()
    store = store or CheckpointStore(project_root=settings.project_root)
    output_dir = _normalize_path(settings.output_dir)

    findings = normalize_results(_coerce_violations(violations, settings.project_root))
    config = ConfigSnapshot(
        rules_enabled=sorted(set(rules_enabled or [])),
        fail_on=sorted(set(settings.fail_on)),
    )

    revision = store.next_revision(output_dir)
    metadata = store.create_checkpoint(output_dir, findings, config, revision=revision, thread=thread)

    previous_audit = read_audit_context(output_dir, store.storage)
    threads = set(previous_audit.threads or []) if previous_audit is not None else set()
    if thread:
        threads.add(thread)

    audit = AuditContext(
        schema_version=SCHEMA_VERSION,
        revision=revision,
        tool_version=store.tool_version,
        project_root=store.project_root,
        timestamp=metadata.timestamp,
        findings=findings,
        config=config,
        threads=sorted(threads) or None,
    )
    audit_path = output_dir / AUDIT_FILE
    store.storage.write_text(audit_path, artifact_dumps(audit.to_json_dict()))

    metrics = compute_metrics(
        findings,
        revision=revision,
        tool_version=store.tool_version,
        timestamp=metadata.timestamp,
        previous=read_metrics_context(output_dir, store.storage),
        project_root=store.project_root,
    )
    metrics_path = output_dir / METRICS_FILE
    store.storage.write_text(metrics_path, artifact_dumps(metrics.to_json_dict()))
    logger.debug("Recorded audit revision %d (%d findings)", revision, findings.summary.total_findings)

    return AuditRecord(
        revision=revision,
        checkpoint=metadata,
        findings=findings,
        audit_path=str(audit_path),
        metrics_path=str(metrics_path),
        checkpoint_path=str(output_dir / metadata.path),
    )


def list_checkpoints(
    settings: Optional[LedgerSettings] = None,
    limit: int = 10,
    store: Optional[CheckpointStore] = None,
) -> List[CheckpointSummary]:
    """Newest-first checkpoint summaries for the configured output directory."""
    settings = settings or LedgerSettings.from_env()
    store = store or CheckpointStore(project_root=settings.project_root)
    return store.list_checkpoints(settings.output_dir, limit)


def summarize_directory(
    directory: str,
    settings: Optional[LedgerSettings] = None,
    store: Optional[CheckpointStore] = None,
) -> DirectorySummary:
    """Summarize one directory using the configured lookback and limits.

    Raises:
        InvalidDirectoryError: If ``directory`` is not a usable relative path
        NoCheckpointsError: If no checkpoints exist yet
        NormDetectionError: If detection fails
    """
    settings = settings or LedgerSettings.from_env()
    summarizer = DirectorySummarizer(
        store=store or CheckpointStore(project_root=settings.project_root),
        read_concurrency=settings.read_concurrency,
    )
    return summarizer.summarize(
        settings.output_dir,
        directory,
        lookback_window=settings.lookback_window,
        checkpoint_limit=settings.checkpoint_limit,
    )


def _status_matches(status: DirectoryStatus, status_filter: StatusFilter) -> bool:
    if status_filter == StatusFilter.ALL:
        return True
    return status.value == status_filter.value


def capture_norms(
    directory: str,
    settings: Optional[LedgerSettings] = None,
    status: Union[StatusFilter, str] = StatusFilter.MIGRATED,
    min_files: int = 1,
    write: bool = False,
    overwrite: bool = False,
    store: Optional[CheckpointStore] = None,
) -> CaptureResult:
    """Summarize a directory and optionally persist the summary.

    The summary is written to ``norms/<dir>.json`` only when ``write`` is set,
    the directory matches ``status`` and has at least ``min_files`` files. An
    existing file is kept unless ``overwrite`` is set.

    Raises:
        InvalidDirectoryError, NoCheckpointsError, NormDetectionError: As for
            summarize_directory
        SummaryWriteError: If the summary cannot be written
    """
    settings = settings or LedgerSettings.from_env()
    status_filter = StatusFilter(status)
    summary = summarize_directory(directory, settings=settings, store=store)

    if not _status_matches(summary.status, status_filter):
        return CaptureResult(
            directory=summary.directory,
            skipped=True,
            reason=f"status is {summary.status.value}, wanted {status_filter.value}",
            summary=summary,
        )
    if summary.files.total < min_files:
        return CaptureResult(
            directory=summary.directory,
            skipped=True,
            reason=f"{summary.files.total} file(s), fewer than {min_files}",
            summary=summary,
        )
    if not write:
        return CaptureResult(directory=summary.directory, reason="dry run", summary=summary)

    storage = store.storage if store is not None else FileStorage()
    path = write_norm_summary(settings.output_dir, summary, overwrite=overwrite, storage=storage)
    if path is None:
        return CaptureResult(
            directory=summary.directory,
            skipped=True,
            reason="summary already exists (use overwrite)",
            summary=summary,
        )
    return CaptureResult(directory=summary.directory, written=True, path=str(path), summary=summary)
