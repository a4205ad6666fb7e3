"""Performance sentinel workloads (synthetic, no fixtures)."""

from __future__ import annotations

import os
from typing import List

from normledger.kernel.findings import Position, Range, RuleViolation
from normledger.kernel.norms import CheckpointData, ResultRef, RuleInfo


def _budget_from_env(var_name: str, default_ms: float) -> float:
    raw = os.getenv(var_name)
    if not raw:
        return default_ms
    try:
        return float(raw)
    except ValueError:
        return default_ms


MAX_NORMALIZE_MS = _budget_from_env("NORMLEDGER_MAX_NORMALIZE_MS", 1500.0)
MAX_DETECT_NORMS_MS = _budget_from_env("NORMLEDGER_MAX_DETECT_NORMS_MS", 1500.0)

SENTINEL_RULES = 40
SENTINEL_FILES = 500
SENTINEL_CHECKPOINTS = 100


def synthetic_violations(count: int, rules: int = SENTINEL_RULES, files: int = SENTINEL_FILES) -> List[RuleViolation]:
    """Deterministic violation list spread over ``rules`` rules and ``files`` files."""
    violations = []
    for i in range(count):
        line = i % 400 + 1
        violations.append(RuleViolation(
            id=f"rule-{i % rules:03d}",
            severity=("error", "warning", "info")[i % 3],
            message=f"rule-{i % rules:03d} violation",
            file=f"src/dir{i % 20:02d}/file{i % files:04d}.ts",
            range=Range(start=Position(line=line, column=1), end=Position(line=line, column=20)),
        ))
    return violations


def synthetic_history(checkpoints: int = SENTINEL_CHECKPOINTS, rules: int = SENTINEL_RULES) -> List[CheckpointData]:
    """History where rule N stops firing in src/dir00 after checkpoint N."""
    rule_infos = tuple(
        RuleInfo(id=f"rule-{r:03d}", kind="pattern", severity="error") for r in range(rules)
    )
    files = tuple(f"src/dir00/file{f:04d}.ts" for f in range(50))
    history = []
    for c in range(checkpoints):
        results = tuple(
            ResultRef(rule=r, file=f)
            for r in range(rules) if c <= r
            for f in range(0, len(files), 5)
        )
        history.append(CheckpointData(
            checkpoint_id=f"cp-{c:04d}",
            timestamp=f"2025-01-01T00:{c // 60:02d}:{c % 60:02d}.000Z",
            rules=rule_infos,
            files=files,
            results=results,
        ))
    return history

