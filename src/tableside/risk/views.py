"""Read-only summaries of risk flags.

The 0–100 risk score is informational: a severity-weighted flag count
(INFO 1, LOW 5, MEDIUM 15, HIGH 30) capped at 100.  It ranks what to review
first and carries no enforcement meaning.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType

from tableside.risk.types import AnalysisResult, Flag, RiskCategory, RiskSeverity

SEVERITY_WEIGHTS: Mapping[RiskSeverity, int] = MappingProxyType(
    {
        RiskSeverity.INFO: 1,
        RiskSeverity.LOW: 5,
        RiskSeverity.MEDIUM: 15,
        RiskSeverity.HIGH: 30,
    }
)
MAX_RISK_SCORE = 100


@dataclass(frozen=True)
class PeriodRiskSummary:
    period_start: int
    period_end: int
    total_flags: int
    by_severity: Mapping[RiskSeverity, int]
    by_category: Mapping[RiskCategory, int]
    high_severity_count: int
    flags: tuple[Flag, ...]


@dataclass(frozen=True)
class SubjectRiskSummary:
    subject_type: str
    subject_id: str
    total_flags: int
    by_severity: Mapping[RiskSeverity, int]
    by_category: Mapping[RiskCategory, int]
    has_high_severity: bool
    flags: tuple[Flag, ...]


@dataclass(frozen=True)
class HighRiskList:
    analyzed_at: int
    total_high_severity: int
    high_severity_flags: tuple[Flag, ...]
    medium_severity_flags: tuple[Flag, ...]
    affected_actors: tuple[str, ...]
    affected_subjects: tuple[str, ...]


@dataclass(frozen=True)
class OverallRiskSummary:
    analyzed_at: int
    total_flags: int
    by_severity: Mapping[RiskSeverity, int]
    by_category: Mapping[RiskCategory, int]
    rules_evaluated: int
    has_high_severity: bool
    subjects_flagged: int
    risk_score: int


def _by_severity(flags: Sequence[Flag]) -> Mapping[RiskSeverity, int]:
    return MappingProxyType({s: sum(1 for f in flags if f.severity is s) for s in RiskSeverity})


def _by_category(flags: Sequence[Flag]) -> Mapping[RiskCategory, int]:
    return MappingProxyType({c: sum(1 for f in flags if f.category is c) for c in RiskCategory})


def _subject_key(flag: Flag) -> str:
    return f"{flag.subject_type}:{flag.subject_id}"


def risk_score(flags: Iterable[Flag]) -> int:
    return min(MAX_RISK_SCORE, sum(SEVERITY_WEIGHTS[f.severity] for f in flags))


def period_risk_summary(flags: Iterable[Flag], period_start: int, period_end: int) -> PeriodRiskSummary:
    """Flags analysed within ``[period_start, period_end]``."""
    selected = tuple(f for f in flags if period_start <= f.analyzed_at <= period_end)
    by_severity = _by_severity(selected)
    return PeriodRiskSummary(
        period_start=period_start,
        period_end=period_end,
        total_flags=len(selected),
        by_severity=by_severity,
        by_category=_by_category(selected),
        high_severity_count=by_severity[RiskSeverity.HIGH],
        flags=selected,
    )


def subject_risk_summary(flags: Iterable[Flag], subject_type: str, subject_id: str) -> SubjectRiskSummary:
    """Flags raised against one subject, e.g. ``("actor", "p-1")`` or ``("club", "c-9")``."""
    selected = tuple(
        f for f in flags if f.subject_type == subject_type and f.subject_id == subject_id
    )
    by_severity = _by_severity(selected)
    return SubjectRiskSummary(
        subject_type=subject_type,
        subject_id=subject_id,
        total_flags=len(selected),
        by_severity=by_severity,
        by_category=_by_category(selected),
        has_high_severity=by_severity[RiskSeverity.HIGH] > 0,
        flags=selected,
    )


def all_subject_summaries(flags: Iterable[Flag], subject_type: str) -> tuple[SubjectRiskSummary, ...]:
    """One summary per flagged subject of ``subject_type``, in first-flagged order."""
    flags = tuple(flags)
    subject_ids = dict.fromkeys(f.subject_id for f in flags if f.subject_type == subject_type)
    return tuple(subject_risk_summary(flags, subject_type, sid) for sid in subject_ids)


def high_risk_list(flags: Iterable[Flag], analyzed_at: int) -> HighRiskList:
    flags = tuple(flags)
    high = tuple(f for f in flags if f.severity is RiskSeverity.HIGH)
    medium = tuple(f for f in flags if f.severity is RiskSeverity.MEDIUM)
    return HighRiskList(
        analyzed_at=analyzed_at,
        total_high_severity=len(high),
        high_severity_flags=high,
        medium_severity_flags=medium,
        affected_actors=tuple(dict.fromkeys(f.subject_id for f in high if f.subject_type == "actor")),
        affected_subjects=tuple(dict.fromkeys(_subject_key(f) for f in high)),
    )


def overall_summary(result: AnalysisResult) -> OverallRiskSummary:
    return OverallRiskSummary(
        analyzed_at=result.analyzed_at,
        total_flags=len(result.flags),
        by_severity=_by_severity(result.flags),
        by_category=_by_category(result.flags),
        rules_evaluated=result.rules_evaluated,
        has_high_severity=result.has_high_severity,
        subjects_flagged=len({_subject_key(f) for f in result.flags}),
        risk_score=risk_score(result.flags),
    )


def aggregate_results(results: Iterable[AnalysisResult]) -> AnalysisResult:
    """Merge several results; ``analyzed_at`` is the latest of them (0 when empty)."""
    results = tuple(results)
    flags = tuple(f for r in results for f in r.flags)
    return AnalysisResult(
        flags=flags,
        analyzed_at=max((r.analyzed_at for r in results), default=0),
        rules_evaluated=sum(r.rules_evaluated for r in results),
        has_high_severity=any(f.severity is RiskSeverity.HIGH for f in flags),
    )
