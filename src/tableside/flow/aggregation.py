"""Pure aggregations over flow records.

All functions accept ledger entries or bare :class:`~tableside.flow.types.Flow`
payloads and return frozen results.  Ratios with a zero denominator are
``0.0``; empty input yields zero-valued results.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from tableside.core import stats
from tableside.flow.types import Flow, FlowDirection, FlowSource
from tableside.ledger.chain import Entry

Flows = Iterable[Entry[Flow] | Flow]


@dataclass(frozen=True)
class Volume:
    total_units: int
    inbound_units: int
    outbound_units: int
    internal_units: int
    net_flow: int
    record_count: int


@dataclass(frozen=True)
class Frequency:
    """Flow counts.

    ``average_per_period`` and ``peak_per_period`` are only computed when a
    period length is given and the records span a positive time range;
    otherwise they are ``None``.
    """

    total_flows: int
    by_direction: Mapping[FlowDirection, int]
    by_source: Mapping[FlowSource, int]
    average_per_period: float | None = None
    peak_per_period: int | None = None


@dataclass(frozen=True)
class Distribution:
    by_entity: Mapping[str, float]
    by_source: Mapping[FlowSource, float]
    by_direction: Mapping[FlowDirection, float]
    concentration_index: float


@dataclass(frozen=True)
class Ratios:
    outbound_to_inbound: float
    internal_to_total: float
    net_to_total: float
    average_units_per_flow: float
    entity_activity: Mapping[str, float]


@dataclass(frozen=True)
class TimeSeriesPoint:
    period_start: int
    period_end: int
    volume: Volume
    frequency: Frequency


@dataclass(frozen=True)
class TimeSeries:
    points: tuple[TimeSeriesPoint, ...]
    overall: Volume
    period_ms: int
    time_span_ms: int


def flows_of(items: Flows) -> list[Flow]:
    """Unwrap ledger entries into their flow payloads."""
    return [item.payload if isinstance(item, Entry) else item for item in items]


def volume(items: Flows) -> Volume:
    flows = flows_of(items)
    units = {direction: 0 for direction in FlowDirection}
    for flow in flows:
        units[flow.direction] += flow.unit_count
    return Volume(
        total_units=sum(units.values()),
        inbound_units=units[FlowDirection.INBOUND],
        outbound_units=units[FlowDirection.OUTBOUND],
        internal_units=units[FlowDirection.INTERNAL],
        net_flow=units[FlowDirection.INBOUND] - units[FlowDirection.OUTBOUND],
        record_count=len(flows),
    )


def frequency(items: Flows, period_ms: int | None = None) -> Frequency:
    flows = flows_of(items)
    by_direction = {d: sum(1 for f in flows if f.direction is d) for d in FlowDirection}
    by_source = {s: sum(1 for f in flows if f.source is s) for s in FlowSource}

    average = peak = None
    if period_ms and flows:
        start = min(f.timestamp for f in flows)
        span = max(f.timestamp for f in flows) - start
        if span > 0:
            average = len(flows) / math.ceil(span / period_ms)
            per_period: dict[int, int] = {}
            for flow in flows:
                index = (flow.timestamp - start) // period_ms
                per_period[index] = per_period.get(index, 0) + 1
            peak = max(per_period.values())

    return Frequency(
        total_flows=len(flows),
        by_direction=MappingProxyType(by_direction),
        by_source=MappingProxyType(by_source),
        average_per_period=average,
        peak_per_period=peak,
    )


def distribution(items: Flows) -> Distribution:
    """Shares of flows by source entity, source and direction."""
    flows = flows_of(items)
    total = len(flows)

    entity_counts: dict[str, int] = {}
    for flow in flows:
        entity_counts[flow.source_entity_id] = entity_counts.get(flow.source_entity_id, 0) + 1
    by_entity = {entity: count / total for entity, count in entity_counts.items()}

    return Distribution(
        by_entity=MappingProxyType(by_entity),
        by_source=MappingProxyType(
            {s: stats.safe_ratio(sum(1 for f in flows if f.source is s), total) for s in FlowSource}
        ),
        by_direction=MappingProxyType(
            {
                d: stats.safe_ratio(sum(1 for f in flows if f.direction is d), total)
                for d in FlowDirection
            }
        ),
        concentration_index=stats.concentration_index(by_entity.values()),
    )


def ratios(items: Flows) -> Ratios:
    flows = flows_of(items)
    totals = volume(flows)

    entity_units: dict[str, int] = {}
    for flow in flows:
        entity_units[flow.source_entity_id] = (
            entity_units.get(flow.source_entity_id, 0) + flow.unit_count
        )

    return Ratios(
        outbound_to_inbound=stats.safe_ratio(totals.outbound_units, totals.inbound_units),
        internal_to_total=stats.safe_ratio(totals.internal_units, totals.total_units),
        net_to_total=stats.safe_ratio(totals.net_flow, totals.total_units),
        average_units_per_flow=stats.safe_ratio(totals.total_units, len(flows)),
        entity_activity=MappingProxyType(
            {
                entity: stats.safe_ratio(units, totals.total_units)
                for entity, units in entity_units.items()
            }
        ),
    )


def time_series(items: Flows, period_ms: int) -> TimeSeries:
    """Volume and frequency per fixed period, starting at the earliest record.

    Every period between the first and last record is present, empty ones
    included.
    """
    if period_ms <= 0:
        raise ValueError(f"period_ms must be positive, got {period_ms}.")

    flows = flows_of(items)
    if not flows:
        return TimeSeries(points=(), overall=volume(()), period_ms=period_ms, time_span_ms=0)

    start = min(f.timestamp for f in flows)
    span = max(f.timestamp for f in flows) - start

    grouped: dict[int, list[Flow]] = {}
    for flow in flows:
        grouped.setdefault((flow.timestamp - start) // period_ms, []).append(flow)

    points = []
    for index in range(math.ceil(span / period_ms) + 1):
        period_start = start + index * period_ms
        members = grouped.get(index, [])
        points.append(
            TimeSeriesPoint(
                period_start=period_start,
                period_end=period_start + period_ms,
                volume=volume(members),
                frequency=frequency(members),
            )
        )

    return TimeSeries(
        points=tuple(points),
        overall=volume(flows),
        period_ms=period_ms,
        time_span_ms=span,
    )


# ── Entity & source variants ──────────────────────────────────────────────────


def _touching(items: Flows, entity_id: str) -> list[Flow]:
    return [f for f in flows_of(items) if f.touches(entity_id)]


def entity_volume(items: Flows, entity_id: str) -> Volume:
    """Volume of flows where ``entity_id`` is the source or the target."""
    return volume(_touching(items, entity_id))


def entity_frequency(items: Flows, entity_id: str, period_ms: int | None = None) -> Frequency:
    return frequency(_touching(items, entity_id), period_ms)


def entity_ratios(items: Flows, entity_id: str) -> Ratios:
    return ratios(_touching(items, entity_id))


def volume_by_source(items: Flows) -> Mapping[FlowSource, Volume]:
    flows = flows_of(items)
    return MappingProxyType(
        {source: volume([f for f in flows if f.source is source]) for source in FlowSource}
    )


def frequency_by_source(
    items: Flows, period_ms: int | None = None
) -> Mapping[FlowSource, Frequency]:
    flows = flows_of(items)
    return MappingProxyType(
        {
            source: frequency([f for f in flows if f.source is source], period_ms)
            for source in FlowSource
        }
    )
