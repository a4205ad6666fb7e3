"""Checkpoint store: immutable, versioned audit snapshots.

Layout under an output directory:

    checkpoints/manifest.json   metadata for every checkpoint, newest first
    checkpoints/<id>.json       one full, self-contained checkpoint

The store is the only writer of these files. Writes assume a single writer per
output directory; there is no cross-process locking.
"""

import logging
from datetime import timedelta
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from normledger._internal.canonical_json import artifact_dumps
from normledger._internal.clock import Clock, format_checkpoint_id, system_clock
from normledger._internal.package_meta import get_tool_version
from normledger._internal.storage import FileStorage
from normledger.errors import (
    CheckpointIdCollisionError,
    CheckpointNotFoundError,
    CorruptArtifactError,
    NormLedgerError,
)
from normledger.kernel.checkpoint import (
    DEFAULT_PROJECT_ROOT,
    SCHEMA_VERSION,
    AuditCheckpoint,
    CheckpointManifest,
    CheckpointMetadata,
    CheckpointSummary,
    ConfigSnapshot,
    DeltaStats,
)
from normledger.kernel.findings import FindingsGroup, FindingsSummary

logger = logging.getLogger(__name__)

CHECKPOINTS_DIR = "checkpoints"
MANIFEST_FILE = "manifest.json"
DEFAULT_LIST_LIMIT = 10


def compute_delta(previous: FindingsSummary, current: FindingsSummary) -> DeltaStats:
    """Signed per-bucket change from ``previous`` to ``current``."""
    return DeltaStats(
        errors=current.errors - previous.errors,
        warnings=current.warnings - previous.warnings,
        info=current.info - previous.info,
        total_findings=current.total_findings - previous.total_findings,
    )


def _sorted_newest_first(entries: List[CheckpointMetadata]) -> List[CheckpointMetadata]:
    return sorted(entries, key=lambda m: m.timestamp, reverse=True)


class CheckpointStore:
    """Reads and writes checkpoints and the manifest for output directories."""

    def __init__(
        self,
        storage: Optional[FileStorage] = None,
        clock: Optional[Clock] = None,
        tool_version: Optional[str] = None,
        project_root: str = DEFAULT_PROJECT_ROOT,
    ):
        self.storage = storage or FileStorage()
        self.clock = clock or system_clock
        self.tool_version = tool_version or get_tool_version()
        self.project_root = project_root

    # Paths

    def checkpoints_dir(self, output_dir: Union[str, Path]) -> Path:
        return Path(output_dir) / CHECKPOINTS_DIR

    def manifest_path(self, output_dir: Union[str, Path]) -> Path:
        return self.checkpoints_dir(output_dir) / MANIFEST_FILE

    def checkpoint_path(self, output_dir: Union[str, Path], checkpoint_id: str) -> Path:
        return self.checkpoints_dir(output_dir) / f"{checkpoint_id}.json"

    # Reads

    def read_manifest(self, output_dir: Union[str, Path]) -> CheckpointManifest:
        """Load the manifest.

        A missing manifest yields an empty manifest.

        Raises:
            CorruptArtifactError: If the manifest is not valid JSON or fails validation
            StorageError: If the manifest exists but cannot be read
        """
        path = self.manifest_path(output_dir)
        if not self.storage.exists(path):
            return CheckpointManifest(
                schema_version=SCHEMA_VERSION,
                project_root=self.project_root,
                checkpoints=[],
            )
        data = self.storage.read_json(path)
        try:
            return CheckpointManifest.model_validate(data)
        except ValidationError as e:
            raise CorruptArtifactError(str(path), f"schema validation failed: {e.error_count()} error(s)") from e

    def read_checkpoint(self, output_dir: Union[str, Path], checkpoint_id: str) -> AuditCheckpoint:
        """Load one checkpoint body.

        Raises:
            CheckpointNotFoundError: If no body exists for ``checkpoint_id``
            CorruptArtifactError: If the body is not valid JSON or fails validation
        """
        path = self.checkpoint_path(output_dir, checkpoint_id)
        if not self.storage.exists(path):
            raise CheckpointNotFoundError(str(output_dir), checkpoint_id)
        data = self.storage.read_json(path)
        try:
            return AuditCheckpoint.model_validate(data)
        except ValidationError as e:
            raise CorruptArtifactError(str(path), f"schema validation failed: {e.error_count()} error(s)") from e

    def list_checkpoints(
        self,
        output_dir: Union[str, Path],
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> List[CheckpointSummary]:
        """Newest-first checkpoint summaries, each with its delta vs. its predecessor."""
        manifest = self.read_manifest(output_dir)
        return [entry.to_summary() for entry in manifest.checkpoints[:max(limit, 0)]]

    def latest_revision(self, output_dir: Union[str, Path]) -> int:
        """Revision of the newest checkpoint that reads and validates, else 0.

        Unreadable or invalid history restarts the counter instead of blocking
        the write; the restart is logged and visible in the revision itself.
        """
        try:
            manifest = self.read_manifest(output_dir)
        except NormLedgerError as e:
            logger.warning("Restarting revision counter: manifest unusable (%s)", e)
            return 0
        if not manifest.checkpoints:
            return 0
        newest = _sorted_newest_first(manifest.checkpoints)[0]
        try:
            return self.read_checkpoint(output_dir, newest.id).revision
        except NormLedgerError as e:
            logger.warning("Restarting revision counter: checkpoint %s unusable (%s)", newest.id, e)
            return 0

    def next_revision(self, output_dir: Union[str, Path]) -> int:
        return self.latest_revision(output_dir) + 1

    # Writes

    def write_manifest(self, output_dir: Union[str, Path], manifest: CheckpointManifest) -> None:
        self.storage.mkdir(self.checkpoints_dir(output_dir))
        self.storage.write_text(self.manifest_path(output_dir), artifact_dumps(manifest.to_json_dict()))
        logger.debug("Wrote manifest with %d checkpoint(s)", len(manifest.checkpoints))

    def create_checkpoint(
        self,
        output_dir: Union[str, Path],
        findings: FindingsGroup,
        config: ConfigSnapshot,
        revision: Optional[int] = None,
        thread: Optional[str] = None,
    ) -> CheckpointMetadata:
        """Persist a new checkpoint and prepend it to the manifest.

        Args:
            output_dir: Output directory (created if missing)
            findings: Normalized findings for this run
            config: Configuration snapshot for this run
            revision: Explicit revision; defaults to next_revision(output_dir)
            thread: Optional attribution reference

        Returns:
            Manifest metadata for the new checkpoint (delta is None for the
            first checkpoint in a history)

        Raises:
            CorruptArtifactError: If the existing manifest is corrupt
            StorageError: If writing fails or the checkpoint id is already taken
        """
        if revision is None:
            revision = self.next_revision(output_dir)

        manifest = self.read_manifest(output_dir)
        previous = _sorted_newest_first(manifest.checkpoints)
        delta = compute_delta(previous[0].summary, findings.summary) if previous else None

        timestamp = self.clock()
        if previous and timestamp <= previous[0].timestamp:
            # Timestamps (and so ids) strictly increase within one output directory
            timestamp = previous[0].timestamp + timedelta(milliseconds=1)
        checkpoint_id = format_checkpoint_id(timestamp)
        self.storage.mkdir(self.checkpoints_dir(output_dir))

        checkpoint_path = self.checkpoint_path(output_dir, checkpoint_id)
        if self.storage.exists(checkpoint_path):
            raise CheckpointIdCollisionError(str(checkpoint_path))

        checkpoint = AuditCheckpoint(
            schema_version=SCHEMA_VERSION,
            revision=revision,
            checkpoint_id=checkpoint_id,
            tool_version=self.tool_version,
            project_root=self.project_root,
            timestamp=timestamp,
            thread=thread,
            findings=findings,
            config=config,
        )
        self.storage.write_text(checkpoint_path, artifact_dumps(checkpoint.to_json_dict()))
        logger.debug("Wrote checkpoint %s (revision %d)", checkpoint_id, revision)

        metadata = CheckpointMetadata(
            id=checkpoint_id,
            timestamp=checkpoint.timestamp,
            path=f"{CHECKPOINTS_DIR}/{checkpoint_id}.json",
            schema_version=SCHEMA_VERSION,
            tool_version=self.tool_version,
            summary=findings.summary,
            delta=delta,
            thread=thread,
        )
        self.write_manifest(output_dir, CheckpointManifest(
            schema_version=SCHEMA_VERSION,
            project_root=self.project_root,
            checkpoints=[metadata] + previous,
        ))
        return metadata

