"""Read-only views over flow records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from tableside.flow.aggregation import (
    Distribution,
    Flows,
    Frequency,
    Ratios,
    Volume,
    distribution,
    flows_of,
    frequency,
    ratios,
    volume,
)
from tableside.flow.links import FlowLink, Links, LinkType, links_of
from tableside.flow.types import EntityType, Flow, FlowDirection, FlowSource


@dataclass(frozen=True)
class PeriodFlowView:
    period_start: int
    period_end: int
    volume: Volume
    frequency: Frequency
    distribution: Distribution
    ratios: Ratios
    record_count: int


@dataclass(frozen=True)
class EntitySummary:
    """Flows touching one entity as source or target.

    ``first_activity_at`` and ``last_activity_at`` are ``0`` when the entity
    has no flows.
    """

    entity_id: str
    entity_type: EntityType | None
    volume: Volume
    frequency: Frequency
    ratios: Ratios
    first_activity_at: int
    last_activity_at: int


@dataclass(frozen=True)
class AgentSummary(EntitySummary):
    """Entity summary of an agent plus the tables and clubs its flows touch."""

    associated_tables: tuple[str, ...]
    associated_clubs: tuple[str, ...]


@dataclass(frozen=True)
class TableSummary(EntitySummary):
    """Entity summary of a table.

    ``session_count`` counts distinct sessions linked to the table's flows.
    """

    player_count: int
    session_count: int


@dataclass(frozen=True)
class ClubSummary(EntitySummary):
    table_count: int
    agent_count: int


@dataclass(frozen=True)
class TraceStep:
    flow: Flow
    signed_units: int
    running_net: int


@dataclass(frozen=True)
class EntityTrace:
    """Time-ordered flows of one entity with a running inbound-minus-outbound total."""

    entity_id: str
    steps: tuple[TraceStep, ...]
    span_ms: int


@dataclass(frozen=True)
class FlowTrace:
    """One flow with every link recorded for it, grouped by reference type."""

    flow: Flow
    links: tuple[FlowLink, ...]
    linked_hands: tuple[str, ...]
    linked_sessions: tuple[str, ...]
    linked_intents: tuple[str, ...]


@dataclass(frozen=True)
class OverallFlowView:
    volume: Volume
    frequency: Frequency
    distribution: Distribution
    ratios: Ratios
    entity_count: int
    operator_count: int
    time_span_ms: int


def period_view(items: Flows, period_start: int, period_end: int) -> PeriodFlowView:
    """Flows with ``period_start <= timestamp <= period_end``."""
    return _period_view(flows_of(items), period_start, period_end, include_end=True)


def _period_view(
    flows: list[Flow], period_start: int, period_end: int, *, include_end: bool
) -> PeriodFlowView:
    if include_end:
        flows = [f for f in flows if period_start <= f.timestamp <= period_end]
    else:
        flows = [f for f in flows if period_start <= f.timestamp < period_end]
    return PeriodFlowView(
        period_start=period_start,
        period_end=period_end,
        volume=volume(flows),
        frequency=frequency(flows),
        distribution=distribution(flows),
        ratios=ratios(flows),
        record_count=len(flows),
    )


def period_series(
    items: Flows, period_ms: int, start: int, end: int
) -> tuple[PeriodFlowView, ...]:
    """Consecutive period views from ``start`` to ``end``.

    Each period covers ``[period_start, period_end)`` except the last, which
    is clipped to ``end`` and includes it.  A flow on a shared boundary is
    counted once, in the later period, so the record counts of the series
    add up to the number of flows in ``[start, end]``.
    """
    if period_ms <= 0:
        raise ValueError(f"period_ms must be positive, got {period_ms}.")
    flows = flows_of(items)
    views = []
    current = start
    while current < end:
        upper = min(current + period_ms, end)
        views.append(_period_view(flows, current, upper, include_end=upper == end))
        current = upper
    return tuple(views)


def _summary_fields(flows: list[Flow]) -> dict[str, Any]:
    timestamps = [f.timestamp for f in flows]
    return {
        "volume": volume(flows),
        "frequency": frequency(flows),
        "ratios": ratios(flows),
        "first_activity_at": min(timestamps, default=0),
        "last_activity_at": max(timestamps, default=0),
    }


def _entity_summary(entity_id: str, entity_type: EntityType | None, flows: list[Flow]) -> EntitySummary:
    return EntitySummary(entity_id=entity_id, entity_type=entity_type, **_summary_fields(flows))


def _counterparts(flows: list[Flow], entity_type: EntityType, exclude: str) -> tuple[str, ...]:
    """Distinct ids of ``entity_type`` on either side of ``flows``, first-seen order."""
    seen: dict[str, None] = {}
    for flow in flows:
        if flow.source_entity_type is entity_type and flow.source_entity_id != exclude:
            seen.setdefault(flow.source_entity_id)
        if flow.target_entity_type is entity_type and flow.target_entity_id is not None:
            if flow.target_entity_id != exclude:
                seen.setdefault(flow.target_entity_id)
    return tuple(seen)


def entity_summary(items: Flows, entity_id: str) -> EntitySummary:
    flows = [f for f in flows_of(items) if f.touches(entity_id)]
    entity_type = None
    for flow in flows:
        if flow.source_entity_id == entity_id:
            entity_type = flow.source_entity_type
            break
        if flow.target_entity_type is not None:
            entity_type = flow.target_entity_type
            break
    return _entity_summary(entity_id, entity_type, flows)


def all_entity_summaries(items: Flows) -> tuple[EntitySummary, ...]:
    """One summary per source or target entity, in first-seen order."""
    grouped: dict[str, tuple[EntityType | None, list[Flow]]] = {}
    for flow in flows_of(items):
        grouped.setdefault(flow.source_entity_id, (flow.source_entity_type, []))[1].append(flow)
        if flow.target_entity_id is not None and flow.target_entity_id != flow.source_entity_id:
            grouped.setdefault(flow.target_entity_id, (flow.target_entity_type, []))[1].append(flow)
    return tuple(
        _entity_summary(entity_id, entity_type, flows)
        for entity_id, (entity_type, flows) in grouped.items()
    )


def agent_summary(items: Flows, agent_id: str) -> AgentSummary:
    """Summary of ``agent_id`` with the tables and clubs on the other side of its flows."""
    flows = [f for f in flows_of(items) if f.touches(agent_id)]
    return AgentSummary(
        entity_id=agent_id,
        entity_type=EntityType.AGENT,
        **_summary_fields(flows),
        associated_tables=_counterparts(flows, EntityType.TABLE, agent_id),
        associated_clubs=_counterparts(flows, EntityType.CLUB, agent_id),
    )


def all_agent_summaries(items: Flows) -> tuple[AgentSummary, ...]:
    """One summary per agent named in a flow whose source is ``AGENT``."""
    flows = flows_of(items)
    agent_flows = [f for f in flows if f.source is FlowSource.AGENT]
    agent_ids = _counterparts(agent_flows, EntityType.AGENT, exclude="")
    return tuple(agent_summary(flows, agent_id) for agent_id in agent_ids)


def table_summary(items: Flows, links: Links, table_id: str) -> TableSummary:
    """Summary of ``table_id`` with its distinct players and linked sessions."""
    flows = [f for f in flows_of(items) if f.touches(table_id)]
    flow_ids = {f.flow_id for f in flows}
    sessions = {
        link.reference_id
        for link in links_of(links)
        if link.link_type is LinkType.SESSION and link.flow_id in flow_ids
    }
    return TableSummary(
        entity_id=table_id,
        entity_type=EntityType.TABLE,
        **_summary_fields(flows),
        player_count=len(_counterparts(flows, EntityType.PLAYER, table_id)),
        session_count=len(sessions),
    )


def club_summary(items: Flows, club_id: str) -> ClubSummary:
    flows = [f for f in flows_of(items) if f.touches(club_id)]
    return ClubSummary(
        entity_id=club_id,
        entity_type=EntityType.CLUB,
        **_summary_fields(flows),
        table_count=len(_counterparts(flows, EntityType.TABLE, club_id)),
        agent_count=len(_counterparts(flows, EntityType.AGENT, club_id)),
    )


def all_club_summaries(items: Flows) -> tuple[ClubSummary, ...]:
    """One summary per club named in a flow whose source is ``CLUB``."""
    flows = flows_of(items)
    club_flows = [f for f in flows if f.source is FlowSource.CLUB]
    club_ids = _counterparts(club_flows, EntityType.CLUB, exclude="")
    return tuple(club_summary(flows, club_id) for club_id in club_ids)


def entity_trace(items: Flows, entity_id: str) -> EntityTrace:
    ordered = sorted(
        (f for f in flows_of(items) if f.touches(entity_id)), key=lambda f: f.timestamp
    )
    steps = []
    running = 0
    for flow in ordered:
        if flow.direction is FlowDirection.INBOUND:
            signed = flow.unit_count
        elif flow.direction is FlowDirection.OUTBOUND:
            signed = -flow.unit_count
        else:
            signed = 0
        running += signed
        steps.append(TraceStep(flow=flow, signed_units=signed, running_net=running))
    span = ordered[-1].timestamp - ordered[0].timestamp if ordered else 0
    return EntityTrace(entity_id=entity_id, steps=tuple(steps), span_ms=span)


def flow_trace(items: Flows, links: Links, flow_id: str) -> FlowTrace | None:
    """The flow ``flow_id`` with its links, or ``None`` when no such flow exists."""
    flow = next((f for f in flows_of(items) if f.flow_id == flow_id), None)
    if flow is None:
        return None
    own = tuple(link for link in links_of(links) if link.flow_id == flow_id)

    def references(link_type: LinkType) -> tuple[str, ...]:
        return tuple(link.reference_id for link in own if link.link_type is link_type)

    return FlowTrace(
        flow=flow,
        links=own,
        linked_hands=references(LinkType.HAND),
        linked_sessions=references(LinkType.SESSION),
        linked_intents=references(LinkType.INTENT),
    )


def all_flow_traces(items: Flows, links: Links) -> tuple[FlowTrace, ...]:
    flows = flows_of(items)
    link_list = links_of(links)
    return tuple(
        trace
        for trace in (flow_trace(flows, link_list, f.flow_id) for f in flows)
        if trace is not None
    )


def overall_view(items: Flows) -> OverallFlowView:
    flows = flows_of(items)
    entities = {f.source_entity_id for f in flows}
    entities.update(f.target_entity_id for f in flows if f.target_entity_id is not None)
    timestamps = [f.timestamp for f in flows]
    return OverallFlowView(
        volume=volume(flows),
        frequency=frequency(flows),
        distribution=distribution(flows),
        ratios=ratios(flows),
        entity_count=len(entities),
        operator_count=len({f.operator_id for f in flows}),
        time_span_ms=max(timestamps) - min(timestamps) if timestamps else 0,
    )


def flows_by_direction(items: Flows, direction: FlowDirection) -> tuple[Flow, ...]:
    return tuple(f for f in flows_of(items) if f.direction is direction)


def flows_by_source(items: Flows, source: FlowSource) -> tuple[Flow, ...]:
    return tuple(f for f in flows_of(items) if f.source is source)


def flows_by_operator(items: Flows, operator_id: str) -> tuple[Flow, ...]:
    return tuple(f for f in flows_of(items) if f.operator_id == operator_id)
