"""Directional unit-flow records.

A flow record declares that some number of units moved from a source entity
(optionally to a target entity), as reported by an operator.  Records are
classification only: they carry no status and trigger nothing.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, model_validator

from tableside.core.ids import EntityId, NonBlankStr, OperatorId
from tableside.ledger.chain import PayloadCodec

FLOW_GENESIS_HASH = "FLOW_GENESIS_0000000000000000"


class FlowDirection(str, Enum):
    INBOUND = "INBOUND"
    OUTBOUND = "OUTBOUND"
    INTERNAL = "INTERNAL"


class FlowSource(str, Enum):
    TABLE = "TABLE"
    AGENT = "AGENT"
    CLUB = "CLUB"
    PLAYER = "PLAYER"
    EXTERNAL = "EXTERNAL"


class EntityType(str, Enum):
    AGENT = "AGENT"
    TABLE = "TABLE"
    CLUB = "CLUB"
    PLAYER = "PLAYER"


@dataclass(frozen=True)
class Flow:
    """One declared unit flow.

    Attributes:
        direction:          INBOUND, OUTBOUND or INTERNAL.
        source:             Kind of origin.
        source_entity_id:   Entity the units came from.
        source_entity_type: Type of the source entity.
        target_entity_id:   Receiving entity, when known.
        target_entity_type: Type of the receiving entity, when known.
        unit_count:         Non-negative whole number of units.
        operator_id:        Operator who declared the flow.
        timestamp:          Caller-supplied declaration time, ms since epoch.
        description:        Optional free-text note.
    """

    direction: FlowDirection
    source: FlowSource
    source_entity_id: EntityId
    source_entity_type: EntityType
    unit_count: int
    operator_id: OperatorId
    timestamp: int
    target_entity_id: EntityId | None = None
    target_entity_type: EntityType | None = None
    description: str | None = None

    @property
    def flow_id(self) -> str:
        return flow_id(self.source, self.source_entity_id, self.operator_id, self.timestamp)

    def touches(self, entity_id: str) -> bool:
        """``True`` when ``entity_id`` is the source or the target."""
        return self.source_entity_id == entity_id or self.target_entity_id == entity_id


class FlowInput(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    direction: FlowDirection
    source: FlowSource
    source_entity_id: NonBlankStr
    source_entity_type: EntityType
    target_entity_id: NonBlankStr | None = None
    target_entity_type: EntityType | None = None
    unit_count: StrictInt = Field(ge=0)
    operator_id: NonBlankStr
    timestamp: StrictInt = Field(gt=0)
    description: str | None = None

    @model_validator(mode="after")
    def _target_type_needs_target(self) -> FlowInput:
        if self.target_entity_type is not None and self.target_entity_id is None:
            raise ValueError("target_entity_type given without target_entity_id")
        return self


def flow_id(source: FlowSource | str, entity_id: str, operator_id: str, timestamp: int) -> str:
    source_value = source.value if isinstance(source, FlowSource) else source
    return f"flow-{source_value}-{entity_id}-{operator_id}-{timestamp}"


class FlowCodec(PayloadCodec[Flow]):
    input_model = FlowInput
    kind_type = FlowDirection
    genesis = FLOW_GENESIS_HASH
    name = "flows"

    def build(self, data: FlowInput) -> Flow:
        return Flow(
            direction=data.direction,
            source=data.source,
            source_entity_id=EntityId(data.source_entity_id),
            source_entity_type=data.source_entity_type,
            target_entity_id=(
                EntityId(data.target_entity_id) if data.target_entity_id is not None else None
            ),
            target_entity_type=data.target_entity_type,
            unit_count=data.unit_count,
            operator_id=OperatorId(data.operator_id),
            timestamp=data.timestamp,
            description=data.description,
        )

    def from_fields(self, fields: Mapping[str, Any]) -> Flow:
        target_id = fields.get("target_entity_id")
        target_type = fields.get("target_entity_type")
        return Flow(
            direction=FlowDirection(fields["direction"]),
            source=FlowSource(fields["source"]),
            source_entity_id=EntityId(fields["source_entity_id"]),
            source_entity_type=EntityType(fields["source_entity_type"]),
            target_entity_id=EntityId(target_id) if target_id is not None else None,
            target_entity_type=EntityType(target_type) if target_type is not None else None,
            unit_count=int(fields["unit_count"]),
            operator_id=OperatorId(fields["operator_id"]),
            timestamp=int(fields["timestamp"]),
            description=fields.get("description"),
        )

    def entry_id(self, payload: Flow, sequence: int) -> str:
        return payload.flow_id

    def idempotency_key(self, payload: Flow) -> str:
        return payload.flow_id

    def timestamp(self, payload: Flow) -> int:
        return payload.timestamp

    def kind(self, payload: Flow) -> FlowDirection:
        return payload.direction

    def subject(self, payload: Flow, role: str) -> str | None:
        if role == "actor":
            return payload.source_entity_id
        if role == "target":
            return payload.target_entity_id
        if role == "operator":
            return payload.operator_id
        return None
