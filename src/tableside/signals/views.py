"""Read-only views over behaviour signals for human review.

Views combine analyzer results into the shapes an operator looks at: one
signal kind, one actor, one context, one period, an actor/context trace, the
busiest actors and contexts, and a global summary.  All of them are frozen
and computed on demand from the entries passed in.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Literal

from tableside.core import stats
from tableside.ledger.chain import Entry
from tableside.signals.analyzer import (
    DEFAULT_TREND_WINDOW_MS,
    ActorProfile,
    ContextDistribution,
    PeriodSummary,
    TrendAnalysis,
    actor_profile,
    context_distribution,
    correlation_metrics,
    period_summary,
    signals_of,
    trend,
)
from tableside.signals.types import (
    SIGNAL_KINDS,
    ActorType,
    ContextType,
    CorrelationMetric,
    CorrelationRecord,
    Signal,
    SignalKind,
)

#: Half-to-half mean intensity change below which a trace counts as stable.
DEFAULT_TRACE_DEADBAND = 0.05
DEFAULT_TOP_N = 10

Signals = Iterable[Entry[Signal] | Signal]


# ── View types ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class KindView:
    kind: SignalKind
    signal_count: int
    average_intensity: float
    total_duration_ms: float
    metrics: tuple[CorrelationMetric, ...]
    actor_count: int
    context_count: int


@dataclass(frozen=True)
class ActorView:
    actor_id: str
    actor_type: ActorType | None
    profile: ActorProfile
    metrics_by_kind: Mapping[SignalKind, tuple[CorrelationMetric, ...]]
    trends_by_kind: Mapping[SignalKind, TrendAnalysis]
    total_observations: int


@dataclass(frozen=True)
class KindShare:
    kind: SignalKind
    count: int
    share: float


@dataclass(frozen=True)
class ContextView:
    context_id: str
    context_type: ContextType | None
    distribution: ContextDistribution
    ranked_kinds: tuple[KindShare, ...]
    actor_count: int
    intensity_variance: float


@dataclass(frozen=True)
class KindActivity:
    count: int
    average_intensity: float


@dataclass(frozen=True)
class PeriodView:
    period_id: str
    summary: PeriodSummary
    activity_by_kind: Mapping[SignalKind, KindActivity]
    active_actors: tuple[str, ...]
    active_contexts: tuple[str, ...]
    period_start: int | None
    period_end: int | None


@dataclass(frozen=True)
class Observation:
    timestamp: int
    kind: SignalKind
    intensity: float
    duration_ms: float


@dataclass(frozen=True)
class TraceView:
    """Time-ordered observations of one actor or context.

    Attributes:
        direction:  ``1`` when the second half of the observations has a
                    higher mean intensity than the first half by more than
                    the deadband, ``-1`` when lower, else ``0``.
        volatility: Coefficient of variation of the intensities.
        span_ms:    Time between the first and last observation.
    """

    entity_id: str
    entity_type: Literal["actor", "context"]
    observations: tuple[Observation, ...]
    direction: int
    dominant_kind: SignalKind | None
    volatility: float
    span_ms: int


@dataclass(frozen=True)
class ActorRank:
    actor_id: str
    actor_type: ActorType
    signal_count: int
    total_intensity: float
    total_duration_ms: float


@dataclass(frozen=True)
class ContextRank:
    context_id: str
    context_type: ContextType
    signal_count: int
    actor_count: int
    concentration_index: float


@dataclass(frozen=True)
class SignalSummaryView:
    total_signals: int
    total_correlations: int
    signals_by_kind: Mapping[SignalKind, int]
    correlations_by_kind: Mapping[SignalKind, int]
    actor_count: int
    context_count: int
    period_count: int
    average_intensity: float
    average_confidence: float


# ── Builders ──────────────────────────────────────────────────────────────────


def kind_view(items: Signals, kind: SignalKind) -> KindView:
    signals = signals_of(items)
    matching = [s for s in signals if s.kind == kind]
    return KindView(
        kind=kind,
        signal_count=len(matching),
        average_intensity=stats.mean([s.intensity for s in matching]),
        total_duration_ms=sum(s.duration_ms for s in matching),
        metrics=correlation_metrics(signals, kind),
        actor_count=len({s.actor_id for s in matching}),
        context_count=len({s.context_id for s in matching}),
    )


def all_kind_views(items: Signals) -> tuple[KindView, ...]:
    signals = signals_of(items)
    return tuple(kind_view(signals, kind) for kind in SIGNAL_KINDS)


def actor_view(
    items: Signals,
    actor_id: str,
    window_ms: int = DEFAULT_TREND_WINDOW_MS,
) -> ActorView:
    """Profile, per-kind metrics and per-kind trend for one actor.

    Metrics are computed over the actor's own signals, so LIFT compares the
    actor's mix of kinds against an even split.
    """
    signals = signals_of(items)
    own = [s for s in signals if s.actor_id == actor_id]
    profile = actor_profile(signals, actor_id)
    return ActorView(
        actor_id=actor_id,
        actor_type=profile.actor_type,
        profile=profile,
        metrics_by_kind=MappingProxyType(
            {kind: correlation_metrics(own, kind) for kind in SIGNAL_KINDS}
        ),
        trends_by_kind=MappingProxyType(
            {kind: trend(signals, actor_id, kind, window_ms) for kind in SIGNAL_KINDS}
        ),
        total_observations=len(own),
    )


def context_view(items: Signals, context_id: str) -> ContextView:
    signals = signals_of(items)
    own = [s for s in signals if s.context_id == context_id]
    total = len(own)

    counts = [(kind, sum(1 for s in own if s.kind == kind)) for kind in SIGNAL_KINDS]
    # sorted() is stable, so equal counts keep declaration order.
    ranked = sorted(counts, key=lambda pair: pair[1], reverse=True)

    distribution = context_distribution(signals, context_id)
    return ContextView(
        context_id=context_id,
        context_type=distribution.context_type,
        distribution=distribution,
        ranked_kinds=tuple(
            KindShare(kind=kind, count=count, share=stats.safe_ratio(count, total))
            for kind, count in ranked
        ),
        actor_count=len({s.actor_id for s in own}),
        intensity_variance=stats.variance([s.intensity for s in own]),
    )


def period_view(items: Signals, period_id: str) -> PeriodView:
    signals = signals_of(items)
    own = [s for s in signals if s.period_id == period_id]
    summary = period_summary(signals, period_id)

    timestamps = [s.timestamp for s in own]
    return PeriodView(
        period_id=period_id,
        summary=summary,
        activity_by_kind=MappingProxyType(
            {
                kind: KindActivity(
                    count=summary.counts[kind],
                    average_intensity=summary.average_intensity[kind],
                )
                for kind in SIGNAL_KINDS
            }
        ),
        active_actors=tuple(dict.fromkeys(s.actor_id for s in own)),
        active_contexts=tuple(dict.fromkeys(s.context_id for s in own)),
        period_start=min(timestamps) if timestamps else None,
        period_end=max(timestamps) if timestamps else None,
    )


def trace_view(
    items: Signals,
    entity_id: str,
    entity_type: Literal["actor", "context"],
    deadband: float = DEFAULT_TRACE_DEADBAND,
) -> TraceView:
    if entity_type == "actor":
        own = [s for s in signals_of(items) if s.actor_id == entity_id]
    elif entity_type == "context":
        own = [s for s in signals_of(items) if s.context_id == entity_id]
    else:
        raise ValueError(f"entity_type must be 'actor' or 'context', got {entity_type!r}.")

    ordered = sorted(own, key=lambda s: s.timestamp)
    if not ordered:
        return TraceView(entity_id, entity_type, (), 0, None, 0.0, 0)

    # Ties go to the kind observed first.
    counts: dict[SignalKind, int] = {}
    for signal in ordered:
        counts[signal.kind] = counts.get(signal.kind, 0) + 1
    dominant = max(counts, key=lambda kind: counts[kind])

    direction = 0
    if len(ordered) >= 2:
        half = len(ordered) // 2
        first = stats.mean([s.intensity for s in ordered[:half]])
        second = stats.mean([s.intensity for s in ordered[half:]])
        direction = stats.direction(second - first, deadband)

    return TraceView(
        entity_id=entity_id,
        entity_type=entity_type,
        observations=tuple(
            Observation(s.timestamp, s.kind, s.intensity, s.duration_ms) for s in ordered
        ),
        direction=direction,
        dominant_kind=dominant,
        volatility=stats.coefficient_of_variation([s.intensity for s in ordered]),
        span_ms=ordered[-1].timestamp - ordered[0].timestamp,
    )


def top_actors(items: Signals, top_n: int = DEFAULT_TOP_N) -> tuple[ActorRank, ...]:
    """Actors by signal count, busiest first; ties keep first-seen order."""
    grouped: dict[str, list[Signal]] = {}
    for signal in signals_of(items):
        grouped.setdefault(signal.actor_id, []).append(signal)

    ranks = [
        ActorRank(
            actor_id=actor_id,
            actor_type=group[0].actor_type,
            signal_count=len(group),
            total_intensity=sum(s.intensity for s in group),
            total_duration_ms=sum(s.duration_ms for s in group),
        )
        for actor_id, group in grouped.items()
    ]
    ranks.sort(key=lambda rank: rank.signal_count, reverse=True)
    return tuple(ranks[: max(top_n, 0)])


def top_contexts(items: Signals, top_n: int = DEFAULT_TOP_N) -> tuple[ContextRank, ...]:
    """Contexts by signal count, busiest first; ties keep first-seen order."""
    grouped: dict[str, list[Signal]] = {}
    for signal in signals_of(items):
        grouped.setdefault(signal.context_id, []).append(signal)

    ranks = []
    for context_id, group in grouped.items():
        shares = [
            sum(1 for s in group if s.kind == kind) / len(group) for kind in SIGNAL_KINDS
        ]
        ranks.append(
            ContextRank(
                context_id=context_id,
                context_type=group[0].context_type,
                signal_count=len(group),
                actor_count=len({s.actor_id for s in group}),
                concentration_index=stats.concentration_index(shares),
            )
        )
    ranks.sort(key=lambda rank: rank.signal_count, reverse=True)
    return tuple(ranks[: max(top_n, 0)])


def summary_view(
    items: Signals,
    correlations: Sequence[Entry[CorrelationRecord] | CorrelationRecord] = (),
) -> SignalSummaryView:
    signals = signals_of(items)
    records = [c.payload if isinstance(c, Entry) else c for c in correlations]
    confidences = [m.confidence for record in records for m in record.metrics]

    return SignalSummaryView(
        total_signals=len(signals),
        total_correlations=len(records),
        signals_by_kind=MappingProxyType(
            {kind: sum(1 for s in signals if s.kind == kind) for kind in SIGNAL_KINDS}
        ),
        correlations_by_kind=MappingProxyType(
            {kind: sum(1 for r in records if r.signal_kind == kind) for kind in SIGNAL_KINDS}
        ),
        actor_count=len({s.actor_id for s in signals}),
        context_count=len({s.context_id for s in signals}),
        period_count=len({s.period_id for s in signals}),
        average_intensity=stats.mean([s.intensity for s in signals]),
        average_confidence=stats.mean(confidences),
    )
