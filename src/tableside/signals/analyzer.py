"""Pure statistical analysis over behaviour signals.

Every function here is stateless and total: it accepts ledger entries (or
bare :class:`~tableside.signals.types.Signal` payloads), never mutates them,
and returns a frozen result.  Empty input yields zero-valued results rather
than errors, so the views built on top need no error handling.

The measures are statistical correlations between observed exposures.  They
say nothing about causation.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from tableside.core import stats
from tableside.ledger.chain import Entry
from tableside.signals.types import (
    SIGNAL_KINDS,
    ActorType,
    ContextType,
    CorrelationMetric,
    CorrelationMetricType,
    Signal,
    SignalKind,
)

#: Default trend window: one day in milliseconds.
DEFAULT_TREND_WINDOW_MS = 86_400_000

#: Minimum absolute slope for a trend to count as rising or falling.
TREND_SLOPE_DEADBAND = 0.01

_CONFIDENCE_SAMPLE = 30
_SKEW_CONFIDENCE_SAMPLE = 50
_ELASTICITY_CONFIDENCE_CONTEXTS = 10
_SINGLE_CONTEXT_CONFIDENCE = 0.1


# ── Result types ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SignalSummary:
    kind: SignalKind
    count: int
    total_duration_ms: float
    average_intensity: float
    min_intensity: float
    max_intensity: float


@dataclass(frozen=True)
class ActorProfile:
    """Signal profile of a single actor.

    Attributes:
        actor_id:          The profiled actor.
        actor_type:        Type recorded on the actor's first signal, or
                           ``None`` when the actor has no signals.
        summaries:         One :class:`SignalSummary` per kind, keyed by kind
                           in declaration order.
        dominant_kind:     Kind with the highest count; ties go to the kind
                           declared first.  ``None`` when there are no signals.
        total_exposure_ms: Sum of all signal durations.
        observation_count: Number of the actor's signals.
    """

    actor_id: str
    actor_type: ActorType | None
    summaries: Mapping[SignalKind, SignalSummary]
    dominant_kind: SignalKind | None
    total_exposure_ms: float
    observation_count: int


@dataclass(frozen=True)
class ContextDistribution:
    context_id: str
    context_type: ContextType | None
    shares: Mapping[SignalKind, float]
    concentration_index: float
    total_observations: int


@dataclass(frozen=True)
class PeriodSummary:
    period_id: str
    counts: Mapping[SignalKind, int]
    average_intensity: Mapping[SignalKind, float]
    actor_count: int
    context_count: int
    total_observations: int


@dataclass(frozen=True)
class CoOccurrence:
    """Actor-level co-occurrence of two signal kinds.

    ``lift`` compares actors observed with both kinds against the number
    expected if the kinds were independent; ``confidence`` is the share of
    kind-A actors that also saw kind B.
    """

    kind_a: SignalKind
    kind_b: SignalKind
    count_a: int
    count_b: int
    both_count: int
    total_actors: int
    lift: float
    confidence: float


@dataclass(frozen=True)
class TrendAnalysis:
    entity_id: str
    kind: SignalKind
    direction: int
    slope: float
    r_squared: float
    window_count: int


# ── Helpers ───────────────────────────────────────────────────────────────────


def signals_of(items: Iterable[Entry[Signal] | Signal]) -> list[Signal]:
    """Unwrap ledger entries into their signal payloads."""
    return [item.payload if isinstance(item, Entry) else item for item in items]


def _empty_summary(kind: SignalKind) -> SignalSummary:
    return SignalSummary(
        kind=kind,
        count=0,
        total_duration_ms=0.0,
        average_intensity=0.0,
        min_intensity=0.0,
        max_intensity=0.0,
    )


def _summary_of(signals: list[Signal], kind: SignalKind) -> SignalSummary:
    matching = [s for s in signals if s.kind == kind]
    if not matching:
        return _empty_summary(kind)
    intensities = [s.intensity for s in matching]
    return SignalSummary(
        kind=kind,
        count=len(matching),
        total_duration_ms=math.fsum(s.duration_ms for s in matching),
        average_intensity=stats.mean(intensities),
        min_intensity=min(intensities),
        max_intensity=max(intensities),
    )


# ── Summaries ─────────────────────────────────────────────────────────────────


def summarize(items: Iterable[Entry[Signal] | Signal], kind: SignalKind) -> SignalSummary:
    """Count, total duration and intensity range of the ``kind`` signals."""
    return _summary_of(signals_of(items), kind)


def summarize_all(items: Iterable[Entry[Signal] | Signal]) -> tuple[SignalSummary, ...]:
    """One summary per kind, in declaration order."""
    signals = signals_of(items)
    return tuple(_summary_of(signals, kind) for kind in SIGNAL_KINDS)


def actor_profile(items: Iterable[Entry[Signal] | Signal], actor_id: str) -> ActorProfile:
    signals = [s for s in signals_of(items) if s.actor_id == actor_id]
    summaries = {kind: _summary_of(signals, kind) for kind in SIGNAL_KINDS}

    dominant: SignalKind | None = None
    best = 0
    for kind in SIGNAL_KINDS:
        if summaries[kind].count > best:
            best = summaries[kind].count
            dominant = kind

    return ActorProfile(
        actor_id=actor_id,
        actor_type=signals[0].actor_type if signals else None,
        summaries=MappingProxyType(summaries),
        dominant_kind=dominant,
        total_exposure_ms=math.fsum(s.duration_ms for s in signals),
        observation_count=len(signals),
    )


def context_distribution(
    items: Iterable[Entry[Signal] | Signal], context_id: str
) -> ContextDistribution:
    """Share of each kind within one context plus its concentration index."""
    signals = [s for s in signals_of(items) if s.context_id == context_id]
    total = len(signals)
    if total == 0:
        return ContextDistribution(
            context_id=context_id,
            context_type=None,
            shares=MappingProxyType({kind: 0.0 for kind in SIGNAL_KINDS}),
            concentration_index=0.0,
            total_observations=0,
        )

    shares = {kind: sum(1 for s in signals if s.kind == kind) / total for kind in SIGNAL_KINDS}
    return ContextDistribution(
        context_id=context_id,
        context_type=signals[0].context_type,
        shares=MappingProxyType(shares),
        concentration_index=stats.concentration_index(shares.values()),
        total_observations=total,
    )


def period_summary(items: Iterable[Entry[Signal] | Signal], period_id: str) -> PeriodSummary:
    signals = [s for s in signals_of(items) if s.period_id == period_id]
    counts: dict[SignalKind, int] = {}
    averages: dict[SignalKind, float] = {}
    for kind in SIGNAL_KINDS:
        intensities = [s.intensity for s in signals if s.kind == kind]
        counts[kind] = len(intensities)
        averages[kind] = stats.mean(intensities)

    return PeriodSummary(
        period_id=period_id,
        counts=MappingProxyType(counts),
        average_intensity=MappingProxyType(averages),
        actor_count=len({s.actor_id for s in signals}),
        context_count=len({s.context_id for s in signals}),
        total_observations=len(signals),
    )


# ── Co-occurrence ─────────────────────────────────────────────────────────────


def co_occurrence(
    items: Iterable[Entry[Signal] | Signal],
    kind_a: SignalKind,
    kind_b: SignalKind,
) -> CoOccurrence:
    """How often ``kind_a`` and ``kind_b`` are seen for the same actor."""
    kinds_by_actor: dict[str, set[SignalKind]] = {}
    for signal in signals_of(items):
        kinds_by_actor.setdefault(signal.actor_id, set()).add(signal.kind)

    total = len(kinds_by_actor)
    count_a = sum(1 for kinds in kinds_by_actor.values() if kind_a in kinds)
    count_b = sum(1 for kinds in kinds_by_actor.values() if kind_b in kinds)
    both = sum(1 for kinds in kinds_by_actor.values() if kind_a in kinds and kind_b in kinds)

    expected = (count_a / total) * (count_b / total) * total if total else 0.0
    return CoOccurrence(
        kind_a=kind_a,
        kind_b=kind_b,
        count_a=count_a,
        count_b=count_b,
        both_count=both,
        total_actors=total,
        lift=stats.safe_ratio(both, expected),
        confidence=stats.safe_ratio(both, count_a),
    )


def all_co_occurrences(items: Iterable[Entry[Signal] | Signal]) -> tuple[CoOccurrence, ...]:
    """Co-occurrence for every unordered pair of distinct kinds."""
    signals = signals_of(items)
    return tuple(
        co_occurrence(signals, SIGNAL_KINDS[i], SIGNAL_KINDS[j])
        for i in range(len(SIGNAL_KINDS))
        for j in range(i + 1, len(SIGNAL_KINDS))
    )


# ── Trend ─────────────────────────────────────────────────────────────────────


def trend(
    items: Iterable[Entry[Signal] | Signal],
    entity_id: str,
    kind: SignalKind,
    window_ms: int = DEFAULT_TREND_WINDOW_MS,
) -> TrendAnalysis:
    """Linear trend of mean intensity across fixed time windows.

    The entity matches signals whose actor **or** context equals
    ``entity_id``.  Windows start at the earliest matching timestamp; empty
    windows are skipped and the regression runs over the index of the
    non-empty ones.  A non-positive ``window_ms`` has no windows and yields a
    flat result with ``window_count`` 0.
    """
    if window_ms <= 0:
        return TrendAnalysis(entity_id, kind, 0, 0.0, 0.0, 0)

    signals = sorted(
        (
            s
            for s in signals_of(items)
            if s.kind == kind and (s.actor_id == entity_id or s.context_id == entity_id)
        ),
        key=lambda s: s.timestamp,
    )
    if len(signals) < 2:
        return TrendAnalysis(entity_id, kind, 0, 0.0, 0.0, len(signals))

    start = signals[0].timestamp
    windows: dict[int, list[float]] = {}
    for signal in signals:
        windows.setdefault((signal.timestamp - start) // window_ms, []).append(signal.intensity)
    means = [stats.mean(windows[index]) for index in sorted(windows)]

    if len(means) < 2:
        return TrendAnalysis(entity_id, kind, 0, 0.0, 0.0, len(means))

    fit = stats.linear_fit(means)
    return TrendAnalysis(
        entity_id=entity_id,
        kind=kind,
        direction=stats.direction(fit.slope, TREND_SLOPE_DEADBAND),
        slope=fit.slope,
        r_squared=fit.r_squared,
        window_count=len(means),
    )


# ── Correlation metrics ───────────────────────────────────────────────────────


def correlation_metrics(
    items: Iterable[Entry[Signal] | Signal], kind: SignalKind
) -> tuple[CorrelationMetric, ...]:
    """LIFT, DELTA, SKEW and INDEX for ``kind`` against the whole input.

    Returns an empty tuple when no signal of ``kind`` is present.
    """
    signals = signals_of(items)
    matching = [s.intensity for s in signals if s.kind == kind]
    n = len(matching)
    if n == 0:
        return ()

    expected_share = 1 / len(SIGNAL_KINDS)
    lift = (n / len(signals)) / expected_share
    delta = stats.mean(matching) - stats.mean([s.intensity for s in signals])
    skew = stats.skewness(matching)
    index = 0.5 * min(2.0, lift) / 2 + 0.3 * (delta + 1) / 2 + 0.2 * (1 - abs(skew))

    confidence = min(1.0, n / _CONFIDENCE_SAMPLE)
    return (
        CorrelationMetric(CorrelationMetricType.LIFT, lift, confidence, n),
        CorrelationMetric(CorrelationMetricType.DELTA, delta, confidence, n),
        CorrelationMetric(
            CorrelationMetricType.SKEW, skew, min(1.0, n / _SKEW_CONFIDENCE_SAMPLE), n
        ),
        CorrelationMetric(CorrelationMetricType.INDEX, index, confidence, n),
    )


def elasticity(items: Iterable[Entry[Signal] | Signal], kind: SignalKind) -> CorrelationMetric:
    """Sensitivity of ``kind`` intensity to the context it was observed in.

    The value is the variance of per-context mean intensities divided by the
    pooled within-context variance.
    """
    matching = [s for s in signals_of(items) if s.kind == kind]
    n = len(matching)
    if n < 2:
        return CorrelationMetric(CorrelationMetricType.ELASTICITY, 0.0, 0.0, n)

    by_context: dict[str, list[float]] = {}
    for signal in matching:
        by_context.setdefault(signal.context_id, []).append(signal.intensity)

    if len(by_context) < 2:
        return CorrelationMetric(
            CorrelationMetricType.ELASTICITY, 0.0, _SINGLE_CONTEXT_CONFIDENCE, n
        )

    context_means = [stats.mean(values) for values in by_context.values()]
    between = stats.variance(context_means)
    within = stats.pooled_variance(by_context.values())
    return CorrelationMetric(
        CorrelationMetricType.ELASTICITY,
        stats.safe_ratio(between, within),
        min(1.0, len(by_context) / _ELASTICITY_CONFIDENCE_CONTEXTS),
        n,
    )
