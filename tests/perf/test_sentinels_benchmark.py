"""Performance sentinels (gated)."""

from __future__ import annotations

import pytest

from normledger.kernel.normalizer import normalize_results
from normledger.kernel.norms import detect_norms
from normledger._internal.benchmarks import (
    MAX_DETECT_NORMS_MS,
    MAX_NORMALIZE_MS,
    SENTINEL_CHECKPOINTS,
    SENTINEL_RULES,
    synthetic_history,
    synthetic_violations,
)


def _assert_budget(benchmark, max_ms: float) -> None:
    mean_ms = benchmark.stats.stats.mean * 1000.0
    assert mean_ms < max_ms, f"Mean {mean_ms:.2f} ms exceeded budget {max_ms:.2f} ms"


@pytest.mark.perf
def test_normalize_sentinel(benchmark):
    violations = synthetic_violations(20000)
    findings = benchmark.pedantic(lambda: normalize_results(violations), rounds=3, iterations=1)

    assert findings.summary.total_findings == 20000
    assert len(findings.rules) == SENTINEL_RULES

    _assert_budget(benchmark, MAX_NORMALIZE_MS)


@pytest.mark.perf
def test_detect_norms_sentinel(benchmark):
    history = synthetic_history()
    norms = benchmark.pedantic(lambda: detect_norms(history, "src/dir00"), rounds=3, iterations=1)

    # Rules that stopped at least 5 checkpoints before the end
    assert len(norms) == SENTINEL_RULES
    assert all(n.violations_fixed == 10 for n in norms)
    assert SENTINEL_CHECKPOINTS > SENTINEL_RULES + 5

    _assert_budget(benchmark, MAX_DETECT_NORMS_MS)
