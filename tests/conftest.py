"""Pytest configuration for tests.

No sys.path hacks - tests should import from the installed normledger package.
"""

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from normledger._internal.clock import SteppingClock
from normledger.settings import LedgerSettings
from normledger.store import CheckpointStore

START = datetime(2025, 11, 8, 15, 30, 45, 123000, tzinfo=timezone.utc)


def pytest_addoption(parser):
    """Add gated perf test option."""
    parser.addoption(
        "--run-perf",
        action="store_true",
        default=False,
        help="Run performance sentinel benchmarks (gated)."
    )


def pytest_collection_modifyitems(config, items):
    """Skip perf-marked tests unless --run-perf is set."""
    if config.getoption("--run-perf"):
        return
    skip_perf = pytest.mark.skip(reason="perf tests gated; pass --run-perf")
    for item in items:
        if "perf" in item.keywords:
            item.add_marker(skip_perf)


def pytest_sessionfinish(session, exitstatus):
    """Best-effort cleanup for basetemp on Windows without patching pytest internals."""
    if os.name != "nt":
        return
    basetemp = getattr(session.config.option, "basetemp", None)
    if not basetemp:
        return
    basetemp_path = Path(basetemp)
    if not basetemp_path.exists():
        return
    try:
        import shutil
        shutil.rmtree(basetemp_path)
    except (PermissionError, OSError):
        # If cleanup fails, let it surface as a warning rather than masking errors.
        import warnings
        warnings.warn(f"Could not remove basetemp: {basetemp_path}")


@pytest.fixture
def clock():
    """Deterministic clock: one minute per call, starting at START."""
    return SteppingClock(START, timedelta(minutes=1))


@pytest.fixture
def store(clock):
    """Checkpoint store with a stepping clock and a fixed tool version."""
    return CheckpointStore(clock=clock, tool_version="0.0.0-test")


@pytest.fixture
def output_dir(tmp_path):
    return tmp_path / "out"


@pytest.fixture
def settings(output_dir, tmp_path):
    return LedgerSettings(output_dir=str(output_dir), project_root=str(tmp_path))
