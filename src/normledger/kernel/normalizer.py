"""Normalizer: compact a flat violation list into a FindingsGroup and back.

Rules and files are stored once and referenced by integer index from compact
results. Tables are sorted (rules by id, files by path) and results are put in
a canonical order, so identical violation sets always normalize to identical
output regardless of input order.

Cross-snapshot deltas must never compare raw indices: indices shift whenever a
rule or file is added or removed. Use derive_result_key() instead, which is
built from content (rule id, file path, range, message).
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .findings import (
    CompactRange,
    CompactResult,
    FindingsGroup,
    FindingsGroups,
    FindingsSummary,
    Range,
    RuleDef,
    RuleViolation,
)


@dataclass(frozen=True)
class MessageOverride:
    """Either an explicit message for one result, or "inherit the rule message".

    Collapsed to a present/absent ``message`` field only at serialization.
    """
    text: Optional[str] = None

    @classmethod
    def inherit(cls) -> "MessageOverride":
        return cls(None)

    @classmethod
    def for_message(cls, message: str, rule_message: str) -> "MessageOverride":
        """Override only when the result message differs from the rule message."""
        if message == rule_message:
            return cls.inherit()
        return cls(message)

    @classmethod
    def from_compact(cls, result: CompactResult) -> "MessageOverride":
        return cls(result.message)

    @property
    def is_override(self) -> bool:
        return self.text is not None

    def resolve(self, rule_message: str) -> str:
        return self.text if self.text is not None else rule_message


@dataclass
class FindingsDelta:
    """Content-keyed difference between two FindingsGroups."""
    added: List[str]  # Keys present in the newer group only (sorted)
    removed: List[str]  # Keys present in the older group only (sorted)

    @property
    def unchanged(self) -> bool:
        return not self.added and not self.removed


def _rule_def_from_violation(v: RuleViolation) -> RuleDef:
    return RuleDef(
        id=v.id,
        kind=v.rule_kind,
        severity=v.severity,
        message=v.message,
        docs_url=v.docs_url or None,
        tags=list(v.tags) if v.tags else None,
    )


def _metadata_key(v: RuleViolation) -> Tuple:
    # Total order over the metadata a rule definition is built from
    return (v.message, v.severity, v.rule_kind, v.docs_url or "", tuple(v.tags or ()))


def _result_sort_key(result: CompactResult) -> Tuple:
    # File-less results sort before file results of the same rule
    file_key = (0, 0) if result.file is None else (1, result.file)
    range_key = (0,) if result.range is None else (1,) + tuple(result.range)
    message_key = (0, "") if result.message is None else (1, result.message)
    return (result.rule, file_key, range_key, message_key)


def normalize_results(violations: Iterable[RuleViolation]) -> FindingsGroup:
    """
    Normalize raw violations into a compact, deduplicated FindingsGroup.

    Process:
    1. Single pass: provisional rule/file indices in first-seen order,
       one metadata candidate kept per rule id
    2. Sort rules by id and files by path, remap every result index
    3. Resolve message overrides against the chosen rule messages and put
       results in canonical order (rule, file, range, message)
    4. Rebuild groups from the remapped results
    5. Count severities

    Rule metadata (kind, severity, message, docsUrl, tags) comes from the
    violation with the smallest (message, severity, kind, docsUrl, tags) among
    those sharing the rule id. Severity counts use the rule table, so expanding
    a result reports the same severity the summary counted.

    Args:
        violations: Raw violations from the rule matchers

    Returns:
        FindingsGroup with sorted tables and canonical result order
    """
    rule_index: Dict[str, int] = {}
    candidates: List[RuleViolation] = []
    file_index: Dict[str, int] = {}
    files: List[str] = []
    provisional: List[Tuple[int, Optional[int], Optional[CompactRange], str]] = []

    for v in violations:
        ri = rule_index.get(v.id)
        if ri is None:
            ri = len(candidates)
            rule_index[v.id] = ri
            candidates.append(v)
        elif _metadata_key(v) < _metadata_key(candidates[ri]):
            candidates[ri] = v

        fi: Optional[int] = None
        if v.file:
            fi = file_index.get(v.file)
            if fi is None:
                fi = len(files)
                file_index[v.file] = fi
                files.append(v.file)

        compact_range = v.range.to_compact() if v.range is not None else None
        provisional.append((ri, fi, compact_range, v.message))

    rules = [_rule_def_from_violation(v) for v in candidates]
    sorted_rules = sorted(rules, key=lambda r: r.id)
    sorted_files = sorted(files)
    new_rule_index = {r.id: idx for idx, r in enumerate(sorted_rules)}
    new_file_index = {f: idx for idx, f in enumerate(sorted_files)}

    remapped: List[CompactResult] = []
    counts = {"error": 0, "warning": 0, "info": 0}
    for ri, fi, compact_range, message in provisional:
        rule = rules[ri]
        override = MessageOverride.for_message(message, rule.message)
        remapped.append(CompactResult(
            rule=new_rule_index[rule.id],
            file=new_file_index[files[fi]] if fi is not None else None,
            range=compact_range,
            message=override.text if override.is_override else None,
        ))
        counts[rule.severity] += 1
    remapped.sort(key=_result_sort_key)

    findings = FindingsGroup(
        rules=sorted_rules,
        files=sorted_files,
        results=remapped,
        summary=FindingsSummary(
            errors=counts["error"],
            warnings=counts["warning"],
            info=counts["info"],
            total_files=len(sorted_files),
            total_findings=len(remapped),
        ),
    )
    return findings


def expand_result(
    result: CompactResult,
    rules: Sequence[RuleDef],
    files: Sequence[str],
) -> RuleViolation:
    """Rehydrate a compact result into a full RuleViolation.

    Resolves the rule and file indices, applies the message override and
    converts the range tuple back into a Range.
    """
    rule = rules[result.rule]
    override = MessageOverride.from_compact(result)
    return RuleViolation(
        id=rule.id,
        rule_kind=rule.kind,
        severity=rule.severity,
        message=override.resolve(rule.message),
        file=files[result.file] if result.file is not None else None,
        range=Range.from_compact(result.range) if result.range is not None else None,
        docs_url=rule.docs_url,
        tags=list(rule.tags) if rule.tags else None,
    )


def expand_findings(findings: FindingsGroup) -> List[RuleViolation]:
    """Expand every result of a FindingsGroup (in result order)."""
    return [expand_result(r, findings.rules, findings.files) for r in findings.results]


def derive_result_key(
    result: CompactResult,
    rules: Sequence[RuleDef],
    files: Sequence[str],
) -> str:
    """Stable, index-independent key for a result.

    Format: "ruleId|filePath|startLine:startCol-endLine:endCol|message"
    (file and range segments are empty when absent).
    """
    rule = rules[result.rule]
    file_path = files[result.file] if result.file is not None else ""
    if result.range is not None:
        start_line, start_col, end_line, end_col = result.range
        range_str = f"{start_line}:{start_col}-{end_line}:{end_col}"
    else:
        range_str = ""
    message = MessageOverride.from_compact(result).resolve(rule.message)
    return f"{rule.id}|{file_path}|{range_str}|{message}"


def derive_result_keys(findings: FindingsGroup) -> Dict[int, str]:
    """Map every result index to its stable key."""
    return {
        idx: derive_result_key(result, findings.rules, findings.files)
        for idx, result in enumerate(findings.results)
    }


def diff_findings(older: FindingsGroup, newer: FindingsGroup) -> FindingsDelta:
    """Compute added/removed violations between two snapshots by stable key."""
    older_keys = set(derive_result_keys(older).values())
    newer_keys = set(derive_result_keys(newer).values())
    return FindingsDelta(
        added=sorted(newer_keys - older_keys),
        removed=sorted(older_keys - newer_keys),
    )


def rebuild_groups(findings: FindingsGroup) -> FindingsGroups:
    """Rebuild byFile/byRule lookups from results alone.

    Keys are stringified indices; file-less results appear only in byRule.
    """
    by_file: Dict[str, List[int]] = {}
    by_rule: Dict[str, List[int]] = {}
    for idx, result in enumerate(findings.results):
        by_rule.setdefault(str(result.rule), []).append(idx)
        if result.file is not None:
            by_file.setdefault(str(result.file), []).append(idx)
    return FindingsGroups(by_file=by_file, by_rule=by_rule)
