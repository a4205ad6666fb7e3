"""Directory summarizer: checkpoint history -> DirectorySummary.

Loads the most recent checkpoints from the store, runs the pure norm detector
over them and converts its plain output into the typed public models.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Union

from normledger._internal.canonical_json import artifact_dumps
from normledger._internal.clock import format_timestamp
from normledger._internal.storage import FileStorage
from normledger.codes import DirectoryStatus
from normledger.contracts import DirectoryFiles, DirectorySummary, Norm
from normledger.errors import (
    InvalidDirectoryError,
    NoCheckpointsError,
    NormDetectionError,
    StorageError,
    SummaryWriteError,
)
from normledger.kernel.checkpoint import AuditCheckpoint, CheckpointMetadata
from normledger.kernel.norms import (
    DEFAULT_LOOKBACK_WINDOW,
    CheckpointData,
    NormData,
    ResultRef,
    RuleInfo,
    compute_directory_stats,
    detect_norms,
    determine_status,
    find_clean_timestamp,
)
from normledger.store import CheckpointStore

logger = logging.getLogger(__name__)

DEFAULT_CHECKPOINT_LIMIT = 50
DEFAULT_READ_CONCURRENCY = 4
NORMS_DIR = "norms"


def normalize_directory(directory: str) -> str:
    """Validate a directory argument and strip trailing slashes.

    Raises:
        InvalidDirectoryError: If the directory is empty, absolute or escapes
            its root with ".."
    """
    cleaned = directory.strip().replace("\\", "/").rstrip("/")
    if not cleaned:
        raise InvalidDirectoryError(directory, "directory must not be empty")
    if cleaned.startswith("/") or (len(cleaned) > 1 and cleaned[1] == ":"):
        raise InvalidDirectoryError(directory, "directory must be relative to the project root")
    if ".." in cleaned.split("/"):
        raise InvalidDirectoryError(directory, "directory must not contain '..'")
    return cleaned


def checkpoint_to_data(checkpoint: AuditCheckpoint) -> CheckpointData:
    """Reduce a persisted checkpoint to the plain view the detector works on."""
    findings = checkpoint.findings
    return CheckpointData(
        checkpoint_id=checkpoint.checkpoint_id,
        timestamp=format_timestamp(checkpoint.timestamp),
        rules=tuple(
            RuleInfo(
                id=rule.id,
                kind=rule.kind,
                severity=rule.severity,
                message=rule.message,
                docs_url=rule.docs_url,
            )
            for rule in findings.rules
        ),
        files=tuple(findings.files),
        results=tuple(ResultRef(rule=r.rule, file=r.file) for r in findings.results),
    )


def norm_from_data(data: NormData) -> Norm:
    return Norm(
        rule_id=data.rule_id,
        rule_kind=data.rule_kind,
        severity=data.severity,
        established_at=data.established_at,
        violations_fixed=data.violations_fixed,
        docs_url=data.docs_url,
    )


def norm_summary_filename(directory: str) -> str:
    """File name for a captured summary: "src/services" -> "src_services.json"."""
    return directory.rstrip("/").replace("/", "_") + ".json"


class DirectorySummarizer:
    """Builds directory summaries from a store's checkpoint history."""

    def __init__(
        self,
        store: Optional[CheckpointStore] = None,
        read_concurrency: int = DEFAULT_READ_CONCURRENCY,
    ):
        if read_concurrency < 1:
            raise ValueError(f"read_concurrency must be >= 1, got {read_concurrency}")
        self.store = store or CheckpointStore()
        self.read_concurrency = read_concurrency

    def load_history(
        self,
        output_dir: Union[str, Path],
        checkpoint_limit: int = DEFAULT_CHECKPOINT_LIMIT,
    ) -> List[CheckpointMetadata]:
        """Manifest entries ascending by time, limited to the most recent ones.

        Raises:
            NoCheckpointsError: If the manifest has no entries
        """
        manifest = self.store.read_manifest(output_dir)
        if not manifest.checkpoints:
            raise NoCheckpointsError(str(output_dir), "run an audit first")
        ascending = sorted(manifest.checkpoints, key=lambda m: m.timestamp)
        if checkpoint_limit > 0:
            ascending = ascending[-checkpoint_limit:]
        return ascending

    def load_checkpoints(
        self,
        output_dir: Union[str, Path],
        entries: List[CheckpointMetadata],
    ) -> List[AuditCheckpoint]:
        """Read checkpoint bodies concurrently, preserving the order of ``entries``."""
        with ThreadPoolExecutor(max_workers=self.read_concurrency) as executor:
            checkpoints = list(executor.map(
                lambda entry: self.store.read_checkpoint(output_dir, entry.id),
                entries,
            ))
        logger.debug("Loaded %d checkpoint bodies from %s", len(checkpoints), output_dir)
        return checkpoints

    def summarize(
        self,
        output_dir: Union[str, Path],
        directory: str,
        lookback_window: int = DEFAULT_LOOKBACK_WINDOW,
        checkpoint_limit: int = DEFAULT_CHECKPOINT_LIMIT,
    ) -> DirectorySummary:
        """Summarize the migration state of one directory.

        Args:
            output_dir: Output directory holding the checkpoint history
            directory: Project-relative directory, "/"-separated
            lookback_window: Consecutive trailing zero checkpoints required (K)
            checkpoint_limit: Most recent checkpoints to analyze

        Returns:
            DirectorySummary referencing the latest analyzed checkpoint

        Raises:
            InvalidDirectoryError: If ``directory`` is not a usable relative path
            NoCheckpointsError: If no checkpoints exist yet
            NormDetectionError: If loading, detection or conversion fails; the
                cause is chained
        """
        directory = normalize_directory(directory)
        try:
            entries = self.load_history(output_dir, checkpoint_limit)
            bodies = self.load_checkpoints(output_dir, entries)
            history = [checkpoint_to_data(cp) for cp in bodies]

            norm_data = detect_norms(history, directory, lookback_window)
            stats = compute_directory_stats(history, directory)
            status = determine_status(stats, norm_data)
            clean_since = find_clean_timestamp(history, directory)
            logger.debug("Detected %d norm(s) in %s", len(norm_data), directory)

            return DirectorySummary(
                directory=directory,
                status=DirectoryStatus(status),
                clean_since=clean_since,
                files=DirectoryFiles(
                    total=stats.total,
                    clean=stats.clean,
                    with_violations=stats.with_violations,
                ),
                norms=[norm_from_data(n) for n in norm_data],
                latest_checkpoint=entries[-1].to_summary(),
            )
        except NoCheckpointsError:
            raise
        except Exception as e:
            raise NormDetectionError(f"Failed to summarize directory: {e}", directory) from e


def write_norm_summary(
    output_dir: Union[str, Path],
    summary: DirectorySummary,
    overwrite: bool = False,
    storage: Optional[FileStorage] = None,
) -> Optional[Path]:
    """Write ``norms/<dir>.json`` as ``{"summary": ...}``.

    Returns:
        The written path, or None when the file exists and ``overwrite`` is False

    Raises:
        SummaryWriteError: If the file cannot be written
    """
    storage = storage or FileStorage()
    path = Path(output_dir) / NORMS_DIR / norm_summary_filename(summary.directory)
    if storage.exists(path) and not overwrite:
        return None
    try:
        storage.mkdir(path.parent)
        storage.write_text(path, artifact_dumps({"summary": summary.to_json_dict()}))
    except StorageError as e:
        raise SummaryWriteError(str(path)) from e
    logger.debug("Wrote norm summary %s", path)
    return path
