"""Tests for the directory summarizer and norm summary writing."""

import json

import pytest

from normledger.codes import DirectoryStatus
from normledger.errors import (
    InvalidDirectoryError,
    NoCheckpointsError,
    NormDetectionError,
    SummaryWriteError,
)
from normledger.kernel.checkpoint import ConfigSnapshot
from normledger.kernel.findings import RuleViolation
from normledger.kernel.normalizer import normalize_results
from normledger.summarizer import (
    DirectorySummarizer,
    normalize_directory,
    norm_summary_filename,
    write_norm_summary,
)


def _record(store, output_dir, promise_files=(), async_files=()):
    violations = [
        RuleViolation(id="no-promise", severity="error", message="Use Effect", file=f,
                      docs_url="https://docs.example/no-promise")
        for f in promise_files
    ] + [
        RuleViolation(id="no-async", severity="warning", message="Avoid async", file=f)
        for f in async_files
    ]
    return store.create_checkpoint(output_dir, normalize_results(violations), ConfigSnapshot())


@pytest.fixture
def migrated_history(store, output_dir):
    """src/services fixed no-promise at the third checkpoint and stayed clean."""
    _record(store, output_dir, promise_files=["src/services/a.ts", "src/services/b.ts"],
            async_files=["src/api/x.ts"])
    _record(store, output_dir, promise_files=["src/services/a.ts"], async_files=["src/api/x.ts"])
    for _ in range(5):
        _record(store, output_dir, async_files=["src/api/x.ts"])
    return output_dir


def test_migrated_directory(store, migrated_history):
    summary = DirectorySummarizer(store).summarize(migrated_history, "src/services")

    assert summary.directory == "src/services"
    assert summary.status == DirectoryStatus.MIGRATED
    assert summary.files.total == 2
    assert summary.files.with_violations == 0
    assert summary.files.clean == 2
    assert [n.rule_id for n in summary.norms] == ["no-promise"]

    norm = summary.norms[0]
    assert norm.violations_fixed == 2
    assert norm.severity == "error"
    assert norm.docs_url == "https://docs.example/no-promise"
    manifest = store.read_manifest(migrated_history)
    third = sorted(manifest.checkpoints, key=lambda m: m.timestamp)[2]
    assert norm.established_at == third.timestamp
    assert summary.clean_since == third.timestamp
    assert summary.latest_checkpoint.id == manifest.checkpoints[0].id


def test_in_progress_directory(store, migrated_history):
    summary = DirectorySummarizer(store).summarize(migrated_history, "src/api")
    assert summary.status == DirectoryStatus.IN_PROGRESS
    assert summary.norms == []
    assert summary.files.with_violations == 1
    assert summary.clean_since is None


def test_unknown_directory_not_started(store, migrated_history):
    summary = DirectorySummarizer(store).summarize(migrated_history, "src/ui")
    assert summary.status == DirectoryStatus.NOT_STARTED
    assert summary.files.total == 0


def test_lookback_window_respected(store, migrated_history):
    summary = DirectorySummarizer(store).summarize(migrated_history, "src/services", lookback_window=6)
    assert summary.norms == []
    assert summary.status == DirectoryStatus.IN_PROGRESS


def test_checkpoint_limit_keeps_most_recent(store, migrated_history):
    # Only the clean tail remains: nothing was ever fixed within the window
    summary = DirectorySummarizer(store).summarize(
        migrated_history, "src/services", lookback_window=2, checkpoint_limit=4
    )
    assert summary.norms == []
    assert summary.latest_checkpoint.id == store.read_manifest(migrated_history).checkpoints[0].id


def test_concurrency_does_not_change_result(store, migrated_history):
    serial = DirectorySummarizer(store, read_concurrency=1).summarize(migrated_history, "src/services")
    parallel = DirectorySummarizer(store, read_concurrency=8).summarize(migrated_history, "src/services")
    assert serial == parallel


def test_wire_form(store, migrated_history):
    data = DirectorySummarizer(store).summarize(migrated_history, "src/services").to_json_dict()
    assert data["status"] == "migrated"
    assert set(data["files"]) == {"total", "clean", "withViolations"}
    assert data["norms"][0]["ruleId"] == "no-promise"
    assert data["norms"][0]["establishedAt"].endswith("Z")
    assert "latestCheckpoint" in data
    assert "cleanSince" in data


def test_no_checkpoints(store, output_dir):
    with pytest.raises(NoCheckpointsError):
        DirectorySummarizer(store).summarize(output_dir, "src")


def test_missing_body_is_detection_error(store, migrated_history):
    newest = store.read_manifest(migrated_history).checkpoints[0]
    (migrated_history / newest.path).unlink()

    with pytest.raises(NormDetectionError) as excinfo:
        DirectorySummarizer(store).summarize(migrated_history, "src/services")
    assert excinfo.value.directory == "src/services"
    assert excinfo.value.__cause__ is not None
    assert "src/services" in str(excinfo.value)


def test_corrupt_manifest_is_detection_error(store, migrated_history):
    (migrated_history / "checkpoints" / "manifest.json").write_text("{", encoding="utf-8")
    with pytest.raises(NormDetectionError):
        DirectorySummarizer(store).summarize(migrated_history, "src/services")


@pytest.mark.parametrize("directory", ["", "/", "/abs/path", "src/../etc", "C:/src"])
def test_invalid_directory(directory):
    with pytest.raises(InvalidDirectoryError):
        normalize_directory(directory)


def test_normalize_directory():
    assert normalize_directory("src/services/") == "src/services"
    assert normalize_directory("src\\services") == "src/services"


def test_invalid_read_concurrency(store):
    with pytest.raises(ValueError):
        DirectorySummarizer(store, read_concurrency=0)


class TestWriteNormSummary:

    def test_filename(self):
        assert norm_summary_filename("src/services") == "src_services.json"
        assert norm_summary_filename("src/services/") == "src_services.json"

    def test_write_and_skip_existing(self, store, migrated_history):
        summary = DirectorySummarizer(store).summarize(migrated_history, "src/services")
        path = write_norm_summary(migrated_history, summary)

        assert path == migrated_history / "norms" / "src_services.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data == {"summary": summary.to_json_dict()}

        assert write_norm_summary(migrated_history, summary) is None
        assert write_norm_summary(migrated_history, summary, overwrite=True) == path

    def test_write_failure(self, store, migrated_history):
        summary = DirectorySummarizer(store).summarize(migrated_history, "src/services")
        # A file where the norms directory should be
        (migrated_history / "norms").write_text("", encoding="utf-8")
        with pytest.raises(SummaryWriteError):
            write_norm_summary(migrated_history, summary)
