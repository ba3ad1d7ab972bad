"""Pure rule evaluators.

Each ``evaluate_*`` function checks one rule against observed data and
returns a :class:`~tableside.risk.types.Flag` when the threshold is
exceeded, else ``None``.  A rule of the wrong category or threshold type is
simply not applicable and also yields ``None``; evaluators never raise on
well-typed input.

The analysis timestamp is always injected by the caller, so the same inputs
always produce the same flags (including flag ids).

Batch helpers run every active rule of a :class:`~tableside.risk.rulebook.RuleBook`
against one input and wrap the flags in an
:class:`~tableside.risk.types.AnalysisResult`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from types import MappingProxyType
from typing import Any

from tableside.risk.rulebook import RuleBook
from tableside.risk.types import (
    AnalysisResult,
    ConcentrationInput,
    CountThreshold,
    Flag,
    PendingPatternInput,
    PercentageThreshold,
    RateThreshold,
    RiskCategory,
    RiskRule,
    RiskSeverity,
    SkewInput,
    TimestampedEvent,
    WindowThreshold,
    flag_id,
)

logger = logging.getLogger(__name__)


def _flag(
    rule: RiskRule,
    subject_type: str,
    subject_id: str,
    observed: float,
    threshold: float,
    analyzed_at: int,
    context: Mapping[str, Any] | None = None,
) -> Flag:
    logger.debug(
        "risk: %s flagged %s %s (observed %s, threshold %s)",
        rule.rule_id,
        subject_type,
        subject_id,
        observed,
        threshold,
    )
    return Flag(
        flag_id=flag_id(rule.rule_id, subject_type, subject_id, analyzed_at),
        rule_id=rule.rule_id,
        category=rule.category,
        severity=rule.severity,
        description=f"{rule.name}: {rule.description}",
        subject_type=subject_type,
        subject_id=subject_id,
        observed_value=observed,
        threshold_value=threshold,
        analyzed_at=analyzed_at,
        context=MappingProxyType(dict(context or {})),
    )


def _whole_percent(part: int, total: int) -> int:
    return (part * 100) // total


# ── Single-rule evaluators ────────────────────────────────────────────────────


def evaluate_frequency(
    rule: RiskRule,
    events: Sequence[TimestampedEvent],
    subject_type: str,
    subject_id: str,
    analyzed_at: int,
) -> Flag | None:
    """COUNT: more than ``max_count`` events in total.
    RATE: more than ``max_count`` events at or after ``analyzed_at - window_ms``.
    """
    if rule.category is not RiskCategory.FREQUENCY:
        return None

    threshold = rule.threshold
    if isinstance(threshold, CountThreshold):
        observed = len(events)
    elif isinstance(threshold, RateThreshold):
        window_start = analyzed_at - threshold.window_ms
        observed = sum(1 for e in events if e.timestamp >= window_start)
    else:
        return None

    if observed <= threshold.max_count:
        return None
    return _flag(rule, subject_type, subject_id, observed, threshold.max_count, analyzed_at)


def evaluate_velocity(
    rule: RiskRule,
    events: Sequence[TimestampedEvent],
    subject_type: str,
    subject_id: str,
    analyzed_at: int,
) -> Flag | None:
    """WINDOW: the smallest gap between consecutive events is below ``min_gap_ms``."""
    if rule.category is not RiskCategory.VELOCITY:
        return None
    threshold = rule.threshold
    if not isinstance(threshold, WindowThreshold) or len(events) < 2:
        return None

    ordered = sorted(e.timestamp for e in events)
    min_gap = min(later - earlier for earlier, later in zip(ordered, ordered[1:]))
    if min_gap >= threshold.min_gap_ms:
        return None
    return _flag(
        rule,
        subject_type,
        subject_id,
        min_gap,
        threshold.min_gap_ms,
        analyzed_at,
        {"min_gap_observed": min_gap},
    )


def evaluate_concentration(
    rule: RiskRule,
    subject_events: int,
    total_events: int,
    subject_type: str,
    subject_id: str,
    analyzed_at: int,
) -> Flag | None:
    """PERCENTAGE: the subject's whole-percent share exceeds ``max_percentage``."""
    if rule.category is not RiskCategory.CONCENTRATION:
        return None
    threshold = rule.threshold
    if not isinstance(threshold, PercentageThreshold) or total_events == 0:
        return None

    percentage = _whole_percent(subject_events, total_events)
    if percentage <= threshold.max_percentage:
        return None
    return _flag(
        rule,
        subject_type,
        subject_id,
        percentage,
        threshold.max_percentage,
        analyzed_at,
        {"subject_events": subject_events, "total_events": total_events},
    )


def evaluate_skew(rule: RiskRule, data: SkewInput) -> Flag | None:
    """Same arithmetic as :func:`evaluate_concentration` for SKEW rules."""
    if rule.category is not RiskCategory.SKEW:
        return None
    threshold = rule.threshold
    if not isinstance(threshold, PercentageThreshold) or data.total_events == 0:
        return None

    percentage = _whole_percent(data.subject_events, data.total_events)
    if percentage <= threshold.max_percentage:
        return None
    return _flag(
        rule,
        data.subject_type,
        data.subject_id,
        percentage,
        threshold.max_percentage,
        data.analyzed_at,
        {"subject_events": data.subject_events, "total_events": data.total_events},
    )


def evaluate_repeated_pending(rule: RiskRule, data: PendingPatternInput) -> Flag | None:
    """PATTERN with COUNT: more than ``max_count`` unresolved events for one actor."""
    if rule.category is not RiskCategory.PATTERN:
        return None
    threshold = rule.threshold
    if not isinstance(threshold, CountThreshold):
        return None

    pending = len(data.pending_events)
    if pending <= threshold.max_count:
        return None
    return _flag(
        rule,
        "actor",
        data.actor_id,
        pending,
        threshold.max_count,
        data.analyzed_at,
        {"pending_events": pending},
    )


# ── Batch evaluation ──────────────────────────────────────────────────────────


def _result(flags: list[Flag], analyzed_at: int, rules_evaluated: int) -> AnalysisResult:
    return AnalysisResult(
        flags=tuple(flags),
        analyzed_at=analyzed_at,
        rules_evaluated=rules_evaluated,
        has_high_severity=any(f.severity is RiskSeverity.HIGH for f in flags),
    )


def group_by_subject(events: Iterable[TimestampedEvent]) -> dict[str, list[TimestampedEvent]]:
    """Group events by subject id, preserving first-seen subject order."""
    grouped: dict[str, list[TimestampedEvent]] = {}
    for event in events:
        grouped.setdefault(event.subject_id, []).append(event)
    return grouped


def evaluate_events(
    rulebook: RuleBook,
    events: Iterable[TimestampedEvent],
    analyzed_at: int,
    subject_type: str = "event",
) -> AnalysisResult:
    """Run every active FREQUENCY and VELOCITY rule per event subject."""
    rules = rulebook.active_rules()
    grouped = group_by_subject(events)
    flags: list[Flag] = []
    for rule in rules:
        if rule.category is RiskCategory.FREQUENCY:
            evaluate = evaluate_frequency
        elif rule.category is RiskCategory.VELOCITY:
            evaluate = evaluate_velocity
        else:
            continue
        for subject_id, subject_events in grouped.items():
            flag = evaluate(rule, subject_events, subject_type, subject_id, analyzed_at)
            if flag is not None:
                flags.append(flag)
    return _result(flags, analyzed_at, len(rules))


def evaluate_actor_concentration(rulebook: RuleBook, data: ConcentrationInput) -> AnalysisResult:
    rules = rulebook.active_rules()
    flags = [
        flag
        for rule in rules
        if (
            flag := evaluate_concentration(
                rule, len(data.events), data.total_events, "actor", data.actor_id, data.analyzed_at
            )
        )
        is not None
    ]
    return _result(flags, data.analyzed_at, len(rules))


def evaluate_skew_risk(rulebook: RuleBook, data: SkewInput) -> AnalysisResult:
    rules = rulebook.active_rules()
    flags = [flag for rule in rules if (flag := evaluate_skew(rule, data)) is not None]
    return _result(flags, data.analyzed_at, len(rules))


def evaluate_pending_pattern_risk(rulebook: RuleBook, data: PendingPatternInput) -> AnalysisResult:
    rules = rulebook.active_rules()
    flags = [
        flag for rule in rules if (flag := evaluate_repeated_pending(rule, data)) is not None
    ]
    return _result(flags, data.analyzed_at, len(rules))
