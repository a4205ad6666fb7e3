"""Public output models for directory summaries."""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from normledger.codes import DirectoryStatus
from normledger.kernel.checkpoint import CheckpointSummary, UtcTimestamp
from normledger.kernel.findings import Severity


class Norm(BaseModel):
    """A rule whose violations in a directory went to zero and stayed there."""
    rule_id: str = Field(..., alias="ruleId")
    rule_kind: str = Field(..., alias="ruleKind")  # "pattern" | "boundary" | ...
    severity: Severity
    established_at: UtcTimestamp = Field(..., alias="establishedAt")  # First zero after the last nonzero
    violations_fixed: int = Field(..., ge=0, alias="violationsFixed")  # Peak count before the clean window
    docs_url: Optional[str] = Field(None, alias="docsUrl")

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)


class DirectoryFiles(BaseModel):
    """File counts within a directory."""
    total: int  # Union of files ever observed, including deleted ones
    clean: int  # total - withViolations; files no longer observed count as clean
    with_violations: int = Field(..., alias="withViolations")  # From the latest checkpoint

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class DirectorySummary(BaseModel):
    """Point-in-time report of a directory's migration state."""
    directory: str
    status: DirectoryStatus
    clean_since: Optional[UtcTimestamp] = Field(None, alias="cleanSince")
    files: DirectoryFiles
    norms: List[Norm]
    latest_checkpoint: CheckpointSummary = Field(..., alias="latestCheckpoint")

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    def to_json_dict(self) -> dict:
        """Wire form: camelCase keys, absent optionals omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
