"""Checkpoint, manifest and audit context models."""

from datetime import datetime, timezone
from typing import Annotated, List, Optional
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, PlainSerializer

from normledger._internal.clock import format_timestamp
from .findings import FindingsGroup, FindingsSummary, Severity

SCHEMA_VERSION = "0.2.0"
DEFAULT_PROJECT_ROOT = "."


def _ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC; aware ones are converted to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Serialized as "2025-11-08T15:30:45.123Z"
UtcTimestamp = Annotated[
    datetime,
    AfterValidator(_ensure_utc),
    PlainSerializer(format_timestamp, return_type=str, when_used="json"),
]


class _ArtifactModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    def to_json_dict(self) -> dict:
        """Wire form: camelCase keys, absent optionals omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ConfigSnapshot(_ArtifactModel):
    """The subset of configuration needed to interpret a run."""
    rules_enabled: List[str] = Field(default_factory=list, alias="rulesEnabled")
    fail_on: List[Severity] = Field(default_factory=lambda: ["error"], alias="failOn")


class DeltaStats(_ArtifactModel):
    """Signed change in counts relative to the previous checkpoint."""
    errors: int
    warnings: int
    info: int
    total_findings: int = Field(..., alias="totalFindings")


class AuditCheckpoint(_ArtifactModel):
    """Immutable snapshot of one audit run (checkpoints/<id>.json)."""
    schema_version: str = Field(SCHEMA_VERSION, alias="schemaVersion")
    revision: int = Field(..., ge=1)
    checkpoint_id: str = Field(..., alias="checkpointId")
    tool_version: str = Field(..., alias="toolVersion")
    project_root: str = Field(DEFAULT_PROJECT_ROOT, alias="projectRoot")
    timestamp: UtcTimestamp
    thread: Optional[str] = None  # Attribution reference, opaque
    findings: FindingsGroup
    config: ConfigSnapshot

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)


class CheckpointSummary(_ArtifactModel):
    """Lightweight projection used for listing and summaries."""
    id: str
    timestamp: UtcTimestamp
    thread: Optional[str] = None
    summary: FindingsSummary
    delta: Optional[DeltaStats] = None


class CheckpointMetadata(_ArtifactModel):
    """Manifest entry for one checkpoint."""
    id: str
    timestamp: UtcTimestamp
    path: str  # Relative to the output directory
    schema_version: str = Field(SCHEMA_VERSION, alias="schemaVersion")
    tool_version: str = Field(..., alias="toolVersion")
    summary: FindingsSummary
    delta: Optional[DeltaStats] = None
    thread: Optional[str] = None

    def to_summary(self) -> CheckpointSummary:
        return CheckpointSummary(
            id=self.id,
            timestamp=self.timestamp,
            thread=self.thread,
            summary=self.summary,
            delta=self.delta,
        )


class CheckpointManifest(_ArtifactModel):
    """checkpoints/manifest.json: checkpoint metadata, newest first."""
    schema_version: str = Field(SCHEMA_VERSION, alias="schemaVersion")
    project_root: str = Field(DEFAULT_PROJECT_ROOT, alias="projectRoot")
    checkpoints: List[CheckpointMetadata] = Field(default_factory=list)


class AuditContext(_ArtifactModel):
    """audit.json: the latest-run view."""
    schema_version: str = Field(SCHEMA_VERSION, alias="schemaVersion")
    revision: int = Field(..., ge=1)
    tool_version: str = Field(..., alias="toolVersion")
    project_root: str = Field(DEFAULT_PROJECT_ROOT, alias="projectRoot")
    timestamp: UtcTimestamp
    findings: FindingsGroup
    config: ConfigSnapshot
    threads: Optional[List[str]] = None


class MetricsSummary(_ArtifactModel):
    total_violations: int = Field(..., alias="totalViolations")
    errors: int
    warnings: int
    info: int
    files_affected: int = Field(..., alias="filesAffected")
    progress_percentage: int = Field(..., ge=0, le=100, alias="progressPercentage")


class RuleMetrics(_ArtifactModel):
    id: str
    violations: int
    severity: Severity
    files_affected: int = Field(..., alias="filesAffected")


class MetricsContext(_ArtifactModel):
    """metrics.json: per-run progress metrics."""
    schema_version: str = Field(SCHEMA_VERSION, alias="schemaVersion")
    revision: int = Field(..., ge=1)
    tool_version: str = Field(..., alias="toolVersion")
    project_root: str = Field(DEFAULT_PROJECT_ROOT, alias="projectRoot")
    timestamp: UtcTimestamp
    summary: MetricsSummary
    rule_breakdown: List[RuleMetrics] = Field(default_factory=list, alias="ruleBreakdown")
