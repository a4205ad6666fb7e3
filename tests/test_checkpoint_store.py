"""Tests for the checkpoint store: revisions, manifest ordering and deltas."""

import json
import logging
from datetime import timedelta

import pytest

from normledger._internal.clock import format_checkpoint_id
from normledger.errors import (
    CheckpointIdCollisionError,
    CheckpointNotFoundError,
    CorruptArtifactError,
)
from normledger.kernel.checkpoint import ConfigSnapshot
from normledger.kernel.findings import RuleViolation
from normledger.kernel.normalizer import normalize_results
from normledger.store import CheckpointStore, compute_delta


def _findings(errors=0, warnings=0):
    violations = [
        RuleViolation(id="no-promise", severity="error", message="m", file=f"src/e{i}.ts")
        for i in range(errors)
    ] + [
        RuleViolation(id="no-async", severity="warning", message="m", file=f"src/w{i}.ts")
        for i in range(warnings)
    ]
    return normalize_results(violations)


@pytest.fixture
def config():
    return ConfigSnapshot(rules_enabled=["no-async", "no-promise"])


def test_first_checkpoint_layout(store, output_dir, config):
    metadata = store.create_checkpoint(output_dir, _findings(errors=2), config)

    assert metadata.id == "2025-11-08T15-30-45.123Z"
    assert metadata.path == f"checkpoints/{metadata.id}.json"
    assert metadata.delta is None

    body = json.loads((output_dir / metadata.path).read_text(encoding="utf-8"))
    assert body["revision"] == 1
    assert body["checkpointId"] == metadata.id
    assert body["timestamp"] == "2025-11-08T15:30:45.123Z"
    assert body["toolVersion"] == "0.0.0-test"
    assert body["config"] == {"rulesEnabled": ["no-async", "no-promise"], "failOn": ["error"]}
    assert "thread" not in body

    manifest = json.loads((output_dir / "checkpoints" / "manifest.json").read_text(encoding="utf-8"))
    assert [c["id"] for c in manifest["checkpoints"]] == [metadata.id]


def test_revisions_monotonic(store, output_dir, config):
    revisions = []
    for _ in range(4):
        metadata = store.create_checkpoint(output_dir, _findings(errors=1), config)
        revisions.append(store.read_checkpoint(output_dir, metadata.id).revision)
    assert revisions == [1, 2, 3, 4]
    assert store.next_revision(output_dir) == 5


def test_manifest_newest_first(store, output_dir, config):
    ids = [store.create_checkpoint(output_dir, _findings(errors=n), config).id for n in range(3)]
    manifest = store.read_manifest(output_dir)
    assert [c.id for c in manifest.checkpoints] == list(reversed(ids))


def test_delta_against_previous(store, output_dir, config):
    store.create_checkpoint(output_dir, _findings(errors=10, warnings=1), config)
    metadata = store.create_checkpoint(output_dir, _findings(errors=4, warnings=3), config)

    assert metadata.delta.errors == -6
    assert metadata.delta.warnings == 2
    assert metadata.delta.info == 0
    assert metadata.delta.total_findings == -4


def test_compute_delta():
    delta = compute_delta(_findings(errors=1).summary, _findings(errors=3).summary)
    assert delta.errors == 2
    assert delta.total_findings == 2


def test_list_checkpoints(store, output_dir, config):
    for n in range(12):
        store.create_checkpoint(output_dir, _findings(errors=n), config, thread=f"T-{n}")

    summaries = store.list_checkpoints(output_dir)
    assert len(summaries) == 10
    assert summaries[0].thread == "T-11"
    assert summaries[0].delta.errors == 1
    assert summaries[-1].thread == "T-2"

    assert len(store.list_checkpoints(output_dir, limit=3)) == 3
    assert store.list_checkpoints(output_dir, limit=0) == []


def test_empty_location(store, output_dir):
    assert store.read_manifest(output_dir).checkpoints == []
    assert store.list_checkpoints(output_dir) == []
    assert store.next_revision(output_dir) == 1


def test_read_missing_checkpoint(store, output_dir):
    with pytest.raises(CheckpointNotFoundError) as excinfo:
        store.read_checkpoint(output_dir, "2025-01-01T00-00-00.000Z")
    assert excinfo.value.checkpoint_id == "2025-01-01T00-00-00.000Z"


def test_corrupt_checkpoint_read_fails(store, output_dir, config):
    metadata = store.create_checkpoint(output_dir, _findings(errors=1), config)
    (output_dir / metadata.path).write_text("{not json", encoding="utf-8")
    with pytest.raises(CorruptArtifactError):
        store.read_checkpoint(output_dir, metadata.id)


def test_schema_invalid_checkpoint_read_fails(store, output_dir, config):
    metadata = store.create_checkpoint(output_dir, _findings(errors=1), config)
    path = output_dir / metadata.path
    body = json.loads(path.read_text(encoding="utf-8"))
    body["revision"] = "one"
    path.write_text(json.dumps(body), encoding="utf-8")
    with pytest.raises(CorruptArtifactError):
        store.read_checkpoint(output_dir, metadata.id)


def test_corrupt_manifest_read_fails(store, output_dir, config):
    store.create_checkpoint(output_dir, _findings(errors=1), config)
    (output_dir / "checkpoints" / "manifest.json").write_text("[]", encoding="utf-8")
    with pytest.raises(CorruptArtifactError):
        store.read_manifest(output_dir)


def test_revision_restarts_when_latest_checkpoint_unreadable(store, output_dir, config, caplog):
    first = store.create_checkpoint(output_dir, _findings(errors=1), config)
    store.create_checkpoint(output_dir, _findings(errors=1), config)
    newest = store.read_manifest(output_dir).checkpoints[0]
    (output_dir / newest.path).write_text("garbage", encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="normledger.store"):
        assert store.next_revision(output_dir) == 1
    assert "Restarting revision counter" in caplog.text
    # Older history is untouched
    assert store.read_checkpoint(output_dir, first.id).revision == 1


def test_revision_restarts_when_manifest_corrupt(store, output_dir, config):
    store.create_checkpoint(output_dir, _findings(errors=1), config)
    (output_dir / "checkpoints" / "manifest.json").write_text("{", encoding="utf-8")
    assert store.latest_revision(output_dir) == 0


def test_undecodable_manifest(store, output_dir, config):
    store.create_checkpoint(output_dir, _findings(errors=1), config)
    (output_dir / "checkpoints" / "manifest.json").write_bytes(b"\xff\xfe{")

    with pytest.raises(CorruptArtifactError):
        store.read_manifest(output_dir)
    assert store.latest_revision(output_dir) == 0
    with pytest.raises(CorruptArtifactError):
        store.create_checkpoint(output_dir, _findings(errors=1), config)


def test_undecodable_checkpoint_body(store, output_dir, config, caplog):
    metadata = store.create_checkpoint(output_dir, _findings(errors=1), config)
    (output_dir / metadata.path).write_bytes(b"\xff\xfe{")

    with pytest.raises(CorruptArtifactError):
        store.read_checkpoint(output_dir, metadata.id)
    with caplog.at_level(logging.WARNING, logger="normledger.store"):
        assert store.next_revision(output_dir) == 1
    assert "Restarting revision counter" in caplog.text


def test_checkpoint_with_stale_groups_is_corrupt(store, output_dir, config):
    metadata = store.create_checkpoint(output_dir, _findings(errors=2), config)
    path = output_dir / metadata.path
    body = json.loads(path.read_text(encoding="utf-8"))
    body["findings"]["groups"]["byFile"] = {"0": [0, 1]}
    path.write_text(json.dumps(body), encoding="utf-8")

    with pytest.raises(CorruptArtifactError):
        store.read_checkpoint(output_dir, metadata.id)


def test_explicit_revision(store, output_dir, config):
    metadata = store.create_checkpoint(output_dir, _findings(), config, revision=7)
    assert store.read_checkpoint(output_dir, metadata.id).revision == 7


def test_identical_clock_readings_get_distinct_ids(output_dir, config, clock):
    fixed = clock()
    store = CheckpointStore(clock=lambda: fixed, tool_version="0.0.0-test")
    first = store.create_checkpoint(output_dir, _findings(errors=1), config)
    second = store.create_checkpoint(output_dir, _findings(errors=2), config)

    assert first.id != second.id
    assert second.timestamp - first.timestamp == timedelta(milliseconds=1)
    assert [c.id for c in store.read_manifest(output_dir).checkpoints] == [second.id, first.id]


def test_id_collision_refused(output_dir, config, clock):
    fixed = clock()
    store = CheckpointStore(clock=lambda: fixed, tool_version="0.0.0-test")
    stray = store.checkpoint_path(output_dir, format_checkpoint_id(fixed))
    stray.parent.mkdir(parents=True)
    stray.write_text("{}", encoding="utf-8")

    with pytest.raises(CheckpointIdCollisionError):
        store.create_checkpoint(output_dir, _findings(errors=1), config)
    assert store.read_manifest(output_dir).checkpoints == []


def test_checkpoint_is_self_contained(store, output_dir, config):
    findings = _findings(errors=2, warnings=1)
    metadata = store.create_checkpoint(output_dir, findings, config, thread="T-1")
    checkpoint = store.read_checkpoint(output_dir, metadata.id)

    assert checkpoint.findings == findings
    assert checkpoint.thread == "T-1"
    with pytest.raises(Exception):
        checkpoint.revision = 99
