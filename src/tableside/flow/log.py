"""Owner of the flow ledger."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from tableside.core.result import Err, Ok
from tableside.flow.types import Flow, FlowCodec, FlowDirection, FlowSource
from tableside.ledger.chain import Entry, Ledger
from tableside.ledger.hashing import Hasher, rolling_hash


class FlowLog:
    """Records declared unit flows.

    The flow id ``flow-<source>-<entity>-<operator>-<timestamp>`` is also the
    idempotency key: declaring the same flow twice is ``DUPLICATE_IDENTITY``.
    """

    def __init__(self, hasher: Hasher = rolling_hash, *, ledger: Ledger[Flow] | None = None) -> None:
        self.ledger: Ledger[Flow] = ledger if ledger is not None else Ledger(FlowCodec(), hasher)

    def record(self, raw: BaseModel | Mapping[str, Any]) -> Ok[Entry[Flow]] | Err:
        return self.ledger.append(raw)

    def get(self, flow_id: str) -> Entry[Flow] | None:
        return self.ledger.by_id(flow_id)

    def all(self) -> tuple[Entry[Flow], ...]:
        return self.ledger.all()

    def by_direction(self, direction: FlowDirection) -> tuple[Entry[Flow], ...]:
        return self.ledger.by_kind(direction)

    def by_source(self, source: FlowSource) -> tuple[Entry[Flow], ...]:
        return tuple(e for e in self.ledger.all() if e.payload.source is source)

    def by_source_entity(self, entity_id: str) -> tuple[Entry[Flow], ...]:
        return self.ledger.by_subject("actor", entity_id)

    def by_target_entity(self, entity_id: str) -> tuple[Entry[Flow], ...]:
        return self.ledger.by_subject("target", entity_id)

    def by_entity(self, entity_id: str) -> tuple[Entry[Flow], ...]:
        """Flows where ``entity_id`` is the source or the target."""
        return tuple(e for e in self.ledger.all() if e.payload.touches(entity_id))

    def by_operator(self, operator_id: str) -> tuple[Entry[Flow], ...]:
        return self.ledger.by_subject("operator", operator_id)

    def by_time_range(self, start: int, end: int) -> tuple[Entry[Flow], ...]:
        return self.ledger.by_time_range(start, end)

    def total_units(self) -> int:
        return sum(e.payload.unit_count for e in self.ledger.all())

    def verify_integrity(self) -> Ok[bool] | Err:
        return self.ledger.verify_integrity()

    def __len__(self) -> int:
        return len(self.ledger)
