"""Pydantic models for raw violations and normalized findings."""

from typing import Dict, List, Literal, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, model_validator

Severity = Literal["error", "warning", "info"]
RuleKind = Literal["pattern", "boundary", "docs", "metrics"]

# [startLine, startColumn, endLine, endColumn]
CompactRange = Tuple[int, int, int, int]


class Position(BaseModel):
    """A line/column position inside a file."""
    line: int
    column: int


class Range(BaseModel):
    """Span from start position to end position within a file."""
    start: Position
    end: Position

    def to_compact(self) -> CompactRange:
        return (self.start.line, self.start.column, self.end.line, self.end.column)

    @classmethod
    def from_compact(cls, compact: CompactRange) -> "Range":
        return cls(
            start=Position(line=compact[0], column=compact[1]),
            end=Position(line=compact[2], column=compact[3]),
        )


class RuleViolation(BaseModel):
    """A single raw violation as produced by a rule matcher."""
    id: str  # Rule id, e.g. "no-async-await"
    rule_kind: RuleKind = Field("pattern", alias="ruleKind")
    severity: Severity
    message: str
    file: Optional[str] = None  # Project-relative path with "/" separators
    range: Optional[Range] = None
    docs_url: Optional[str] = Field(None, alias="docsUrl")
    tags: Optional[List[str]] = None

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class RuleDef(BaseModel):
    """Rule metadata stored once per distinct rule id."""
    id: str
    kind: RuleKind
    severity: Severity
    message: str
    docs_url: Optional[str] = Field(None, alias="docsUrl")
    tags: Optional[List[str]] = None  # Omitted when empty

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class CompactResult(BaseModel):
    """One violation, referencing rules[] and files[] by index.

    ``message`` is present only when it differs from the rule message.
    """
    rule: int = Field(..., ge=0)
    file: Optional[int] = Field(None, ge=0)
    range: Optional[CompactRange] = None
    message: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class FindingsGroups(BaseModel):
    """Index lookups: stringified file/rule index -> result indices."""
    by_file: Dict[str, List[int]] = Field(default_factory=dict, alias="byFile")
    by_rule: Dict[str, List[int]] = Field(default_factory=dict, alias="byRule")

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class FindingsSummary(BaseModel):
    """Severity counts for a set of findings."""
    errors: int = 0
    warnings: int = 0
    info: int = 0
    total_files: int = Field(0, alias="totalFiles")
    total_findings: int = Field(0, alias="totalFindings")

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    def count(self, severity: Severity) -> int:
        """Number of findings at the given severity."""
        return {"error": self.errors, "warning": self.warnings, "info": self.info}[severity]


class FindingsGroup(BaseModel):
    """Deduplicated, index-referenced representation of a violation list.

    Invariants (checked on construction):
    - every result's rule/file reference is a valid index
    - rules sorted by id, files sorted by path
    - groups is a pure function of results; rebuilt when absent, rejected
      when a stored value disagrees
    """
    rules: List[RuleDef] = Field(default_factory=list)
    files: List[str] = Field(default_factory=list)
    results: List[CompactResult] = Field(default_factory=list)
    groups: Optional[FindingsGroups] = None
    summary: FindingsSummary = Field(default_factory=FindingsSummary)

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    @model_validator(mode="after")
    def validate_indices(self):
        """Reject dangling indices, unsorted tables and a stale groups cache."""
        rule_count = len(self.rules)
        file_count = len(self.files)
        for idx, result in enumerate(self.results):
            if result.rule >= rule_count:
                raise ValueError(
                    f"results[{idx}].rule={result.rule} out of range (rules: {rule_count})"
                )
            if result.file is not None and result.file >= file_count:
                raise ValueError(
                    f"results[{idx}].file={result.file} out of range (files: {file_count})"
                )

        rule_ids = [r.id for r in self.rules]
        if rule_ids != sorted(rule_ids) or len(set(rule_ids)) != len(rule_ids):
            raise ValueError("rules must be unique and sorted by id")
        if self.files != sorted(self.files) or len(set(self.files)) != len(self.files):
            raise ValueError("files must be unique and sorted by path")

        # Local import: normalizer imports this module
        from .normalizer import rebuild_groups
        rebuilt = rebuild_groups(self)
        if self.groups is None:
            self.groups = rebuilt
        elif self.groups != rebuilt:
            raise ValueError("groups do not match results")
        return self

    def to_json_dict(self) -> dict:
        """Wire form: camelCase keys, absent optionals omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
