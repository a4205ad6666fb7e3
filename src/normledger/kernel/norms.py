"""Directory norm detection (pure).

A norm is a rule whose violations inside a directory dropped to zero and stayed
at zero for the last K checkpoints (the lookback window). Everything here works
on plain data (ISO timestamp strings, ints) with no I/O, so re-running over an
identical history always yields an identical result.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple

DEFAULT_LOOKBACK_WINDOW = 5

STATUS_MIGRATED = "migrated"
STATUS_IN_PROGRESS = "in-progress"
STATUS_NOT_STARTED = "not-started"

TimeSeries = List[Tuple[str, int]]  # (timestamp, count), one point per checkpoint


@dataclass(frozen=True)
class RuleInfo:
    """Rule metadata needed for norm reporting."""
    id: str
    kind: str
    severity: str
    message: str = ""
    docs_url: Optional[str] = None


@dataclass(frozen=True)
class ResultRef:
    """A compact result reduced to its rule and file indices."""
    rule: int
    file: Optional[int] = None


@dataclass(frozen=True)
class CheckpointData:
    """Plain view of one checkpoint for analysis."""
    checkpoint_id: str
    timestamp: str  # ISO 8601
    rules: Tuple[RuleInfo, ...]
    files: Tuple[str, ...]
    results: Tuple[ResultRef, ...]


@dataclass(frozen=True)
class NormData:
    """A detected norm with plain values (timestamps as ISO strings)."""
    rule_id: str
    rule_kind: str
    severity: str
    established_at: str
    violations_fixed: int
    docs_url: Optional[str] = None


@dataclass(frozen=True)
class DirectoryStats:
    total: int
    clean: int
    with_violations: int


def _dir_prefix(directory: str) -> str:
    return directory.rstrip("/") + "/"


def _in_directory(path: Optional[str], prefix: str) -> bool:
    return path is not None and path.startswith(prefix)


def dir_key_from_path(file_path: str, depth: int) -> str:
    """First ``depth`` "/"-separated segments of a path.

    Example: dir_key_from_path("src/services/UserService.ts", 2) -> "src/services"
    """
    return "/".join(file_path.split("/")[:depth])


def discover_directories(checkpoints: Sequence[CheckpointData], depth: int) -> List[str]:
    """Sorted distinct directory keys at ``depth`` for every observed file.

    Files with ``depth`` or fewer segments are not inside a directory at that
    depth and are skipped.
    """
    if depth < 1:
        raise ValueError(f"depth must be >= 1, got {depth}")
    keys: Set[str] = set()
    for checkpoint in checkpoints:
        for file_path in checkpoint.files:
            if len(file_path.split("/")) > depth:
                keys.add(dir_key_from_path(file_path, depth))
    return sorted(keys)


def build_rule_time_series(
    checkpoints: Sequence[CheckpointData],
    rule_id: str,
    directory: str,
) -> TimeSeries:
    """Count results of ``rule_id`` under ``directory/`` for each checkpoint.

    Rule indices are resolved per checkpoint by id; a checkpoint where the rule
    is absent contributes a zero point.
    """
    prefix = _dir_prefix(directory)
    series: TimeSeries = []
    for checkpoint in checkpoints:
        rule_index = next(
            (idx for idx, rule in enumerate(checkpoint.rules) if rule.id == rule_id),
            None,
        )
        count = 0
        if rule_index is not None:
            for result in checkpoint.results:
                if result.rule != rule_index or result.file is None:
                    continue
                if _in_directory(checkpoint.files[result.file], prefix):
                    count += 1
        series.append((checkpoint.timestamp, count))
    return series


def detect_norm_transition(
    time_series: TimeSeries,
    lookback_window: int,
) -> Optional[Tuple[str, int]]:
    """Detect a sustained transition to zero.

    A transition exists iff:
    - the series has at least lookback_window + 1 points
    - the trailing lookback_window points are all zero
    - some point before the trailing window is nonzero

    Returns:
        (established_at, violations_fixed) where established_at is the
        timestamp of the first zero after the last nonzero point, and
        violations_fixed is the peak count before the trailing window.
        None when there is no transition.
    """
    if lookback_window < 1:
        raise ValueError(f"lookback_window must be >= 1, got {lookback_window}")
    if len(time_series) < lookback_window + 1:
        return None

    window_start = len(time_series) - lookback_window
    if any(count != 0 for _, count in time_series[window_start:]):
        return None

    earlier = time_series[:window_start]
    if not any(count > 0 for _, count in earlier):
        return None

    last_nonzero = -1
    for i in range(window_start - 1, -1, -1):
        if time_series[i][1] > 0:
            last_nonzero = i
            break

    established_at = time_series[last_nonzero + 1][0]
    violations_fixed = max(count for _, count in earlier)
    return established_at, violations_fixed


def detect_norms(
    checkpoints: Sequence[CheckpointData],
    directory: str,
    lookback_window: int = DEFAULT_LOOKBACK_WINDOW,
) -> List[NormData]:
    """Detect norms for every rule observed across the checkpoints.

    Args:
        checkpoints: Checkpoints sorted ascending by timestamp
        directory: Directory (relative, "/"-separated) to scope counts to
        lookback_window: Consecutive trailing zero checkpoints required (K)

    Returns:
        Norms sorted by rule id. Rule metadata comes from the earliest
        checkpoint in which the rule id appears.
    """
    if not checkpoints:
        return []

    rule_meta: Dict[str, RuleInfo] = {}
    for checkpoint in checkpoints:
        for rule in checkpoint.rules:
            if rule.id not in rule_meta:
                rule_meta[rule.id] = rule

    norms: List[NormData] = []
    for rule_id in sorted(rule_meta):
        rule = rule_meta[rule_id]
        series = build_rule_time_series(checkpoints, rule_id, directory)
        transition = detect_norm_transition(series, lookback_window)
        if transition is None:
            continue
        established_at, violations_fixed = transition
        norms.append(NormData(
            rule_id=rule.id,
            rule_kind=rule.kind,
            severity=rule.severity,
            established_at=established_at,
            violations_fixed=violations_fixed,
            docs_url=rule.docs_url,
        ))
    return norms


def compute_directory_stats(
    checkpoints: Sequence[CheckpointData],
    directory: str,
) -> DirectoryStats:
    """File counts for a directory.

    total is the union of directory files observed across all checkpoints
    (deleted files still count). with_violations reflects the latest
    checkpoint only and clean is total - with_violations, so a file that
    disappeared from later checkpoints counts as clean.
    """
    if not checkpoints:
        return DirectoryStats(total=0, clean=0, with_violations=0)

    prefix = _dir_prefix(directory)
    all_files: Set[str] = set()
    for checkpoint in checkpoints:
        all_files.update(f for f in checkpoint.files if _in_directory(f, prefix))
    total = len(all_files)
    if total == 0:
        return DirectoryStats(total=0, clean=0, with_violations=0)

    latest = checkpoints[-1]
    dirty: Set[str] = set()
    for result in latest.results:
        if result.file is None:
            continue
        path = latest.files[result.file]
        if _in_directory(path, prefix):
            dirty.add(path)
    with_violations = len(dirty)
    return DirectoryStats(total=total, clean=total - with_violations, with_violations=with_violations)


def determine_status(stats: DirectoryStats, norms: Sequence[NormData]) -> str:
    """Classify a directory as migrated, not-started or in-progress."""
    if stats.with_violations == 0 and len(norms) > 0:
        return STATUS_MIGRATED
    if stats.total == 0 and len(norms) == 0:
        return STATUS_NOT_STARTED
    return STATUS_IN_PROGRESS


def directory_violation_series(
    checkpoints: Sequence[CheckpointData],
    directory: str,
) -> TimeSeries:
    """Total violations (any rule) under ``directory/`` per checkpoint."""
    prefix = _dir_prefix(directory)
    series: TimeSeries = []
    for checkpoint in checkpoints:
        count = sum(
            1 for result in checkpoint.results
            if result.file is not None and _in_directory(checkpoint.files[result.file], prefix)
        )
        series.append((checkpoint.timestamp, count))
    return series


def find_clean_timestamp(
    checkpoints: Sequence[CheckpointData],
    directory: str,
) -> Optional[str]:
    """Earliest timestamp from which the directory stays at zero violations.

    A regression after a temporary clean period resets this: only a zero
    point followed exclusively by zeros qualifies.
    """
    series = directory_violation_series(checkpoints, directory)
    clean_since: Optional[str] = None
    for timestamp, count in series:
        if count == 0:
            if clean_since is None:
                clean_since = timestamp
        else:
            clean_since = None
    return clean_since
