"""JSON schemas for persisted artifacts, keyed by output file name."""

from typing import Dict

from normledger.contracts import DirectorySummary
from normledger.kernel.checkpoint import (
    AuditCheckpoint,
    AuditContext,
    CheckpointManifest,
    MetricsContext,
)

ARTIFACT_MODELS = {
    "checkpoint.schema.json": AuditCheckpoint,
    "manifest.schema.json": CheckpointManifest,
    "audit.schema.json": AuditContext,
    "metrics.schema.json": MetricsContext,
    "directory_summary.schema.json": DirectorySummary,
}


def artifact_schemas() -> Dict[str, dict]:
    """Wire-form (camelCase) JSON schema for every persisted artifact."""
    return {
        name: model.model_json_schema(by_alias=True, mode="serialization")
        for name, model in ARTIFACT_MODELS.items()
    }
