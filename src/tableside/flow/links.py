"""Reference links from flow records to hands, sessions and intents.

A link only records that a flow belongs with some external reference.  The
reference is never fetched or checked for existence, and neither is the flow:
links live in their own hash-linked ledger and are never edited or removed.

The link id ``link-<flow>-<type>-<reference>-<timestamp>`` doubles as the
idempotency key, so recording the same link twice is ``DUPLICATE_IDENTITY``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt

from tableside.core.ids import NonBlankStr, OperatorId
from tableside.core.result import Err, Ok
from tableside.ledger.chain import Entry, Ledger, PayloadCodec
from tableside.ledger.hashing import Hasher, rolling_hash

LINK_GENESIS_HASH = "LINK_GENESIS_0000000000000000"


class LinkType(str, Enum):
    HAND = "HAND"
    SESSION = "SESSION"
    INTENT = "INTENT"


@dataclass(frozen=True)
class FlowLink:
    """Link ledger payload.

    Attributes:
        flow_id:      Flow the link belongs to.
        link_type:    Kind of reference.
        reference_id: Hand, session or intent id, stored as given.
        created_by:   Operator who recorded the link.
        timestamp:    Caller-supplied time, ms since epoch.
        description:  Optional free-text note.
    """

    flow_id: str
    link_type: LinkType
    reference_id: str
    created_by: OperatorId
    timestamp: int
    description: str | None = None

    @property
    def link_id(self) -> str:
        return f"link-{self.flow_id}-{self.link_type.value}-{self.reference_id}-{self.timestamp}"


class FlowLinkInput(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    flow_id: NonBlankStr
    link_type: LinkType
    reference_id: NonBlankStr
    created_by: NonBlankStr
    timestamp: StrictInt = Field(gt=0)
    description: str | None = None


class FlowLinkCodec(PayloadCodec[FlowLink]):
    input_model = FlowLinkInput
    kind_type = LinkType
    genesis = LINK_GENESIS_HASH
    name = "links"

    def build(self, data: FlowLinkInput) -> FlowLink:
        return FlowLink(
            flow_id=data.flow_id,
            link_type=data.link_type,
            reference_id=data.reference_id,
            created_by=OperatorId(data.created_by),
            timestamp=data.timestamp,
            description=data.description,
        )

    def from_fields(self, fields: Mapping[str, Any]) -> FlowLink:
        return FlowLink(
            flow_id=fields["flow_id"],
            link_type=LinkType(fields["link_type"]),
            reference_id=fields["reference_id"],
            created_by=OperatorId(fields["created_by"]),
            timestamp=int(fields["timestamp"]),
            description=fields.get("description"),
        )

    def entry_id(self, payload: FlowLink, sequence: int) -> str:
        return payload.link_id

    def idempotency_key(self, payload: FlowLink) -> str:
        return payload.link_id

    def timestamp(self, payload: FlowLink) -> int:
        return payload.timestamp

    def kind(self, payload: FlowLink) -> LinkType:
        return payload.link_type

    def subject(self, payload: FlowLink, role: str) -> str | None:
        if role == "target":
            return payload.flow_id
        if role == "operator":
            return payload.created_by
        return None


Links = Iterable[Entry[FlowLink] | FlowLink]


def links_of(items: Links) -> list[FlowLink]:
    """Unwrap ledger entries into their link payloads."""
    return [item.payload if isinstance(item, Entry) else item for item in items]


@dataclass(frozen=True)
class FlowLinksSummary:
    """Every link of one flow, also grouped by link type."""

    flow_id: str
    links: tuple[FlowLink, ...]
    by_type: Mapping[LinkType, tuple[FlowLink, ...]]
    total_links: int


@dataclass(frozen=True)
class ReferenceLinksSummary:
    """Flows linked to one reference, in link order."""

    reference_id: str
    link_type: LinkType
    flow_ids: tuple[str, ...]
    flow_count: int


def flow_links_summary(items: Links, flow_id: str) -> FlowLinksSummary:
    own = tuple(link for link in links_of(items) if link.flow_id == flow_id)
    return FlowLinksSummary(
        flow_id=flow_id,
        links=own,
        by_type=MappingProxyType(
            {kind: tuple(link for link in own if link.link_type is kind) for kind in LinkType}
        ),
        total_links=len(own),
    )


def reference_links_summary(
    items: Links, link_type: LinkType, reference_id: str
) -> ReferenceLinksSummary:
    flow_ids = tuple(
        link.flow_id
        for link in links_of(items)
        if link.link_type is link_type and link.reference_id == reference_id
    )
    return ReferenceLinksSummary(
        reference_id=reference_id,
        link_type=link_type,
        flow_ids=flow_ids,
        flow_count=len(flow_ids),
    )


class FlowLinkLog:
    """Records reference links between flows and hands, sessions or intents.

    Example::

        links = FlowLinkLog()
        links.link_to_session("flow-TABLE-t-1-op-1-1700000000000", "s-9", "op-1", 1_700_000_000_500)
        links.flows_by_session("s-9")
    """

    def __init__(
        self, hasher: Hasher = rolling_hash, *, ledger: Ledger[FlowLink] | None = None
    ) -> None:
        self.ledger: Ledger[FlowLink] = (
            ledger if ledger is not None else Ledger(FlowLinkCodec(), hasher)
        )

    def record(self, raw: BaseModel | Mapping[str, Any]) -> Ok[Entry[FlowLink]] | Err:
        """Append one link; see :class:`FlowLinkInput`."""
        return self.ledger.append(raw)

    def _link(
        self,
        link_type: LinkType,
        flow_id: str,
        reference_id: str,
        created_by: str,
        timestamp: int,
        description: str | None,
    ) -> Ok[Entry[FlowLink]] | Err:
        return self.record(
            {
                "flow_id": flow_id,
                "link_type": link_type,
                "reference_id": reference_id,
                "created_by": created_by,
                "timestamp": timestamp,
                "description": description,
            }
        )

    def link_to_hand(
        self, flow_id: str, hand_id: str, created_by: str, timestamp: int, description: str | None = None
    ) -> Ok[Entry[FlowLink]] | Err:
        return self._link(LinkType.HAND, flow_id, hand_id, created_by, timestamp, description)

    def link_to_session(
        self, flow_id: str, session_id: str, created_by: str, timestamp: int, description: str | None = None
    ) -> Ok[Entry[FlowLink]] | Err:
        return self._link(LinkType.SESSION, flow_id, session_id, created_by, timestamp, description)

    def link_to_intent(
        self, flow_id: str, intent_id: str, created_by: str, timestamp: int, description: str | None = None
    ) -> Ok[Entry[FlowLink]] | Err:
        return self._link(LinkType.INTENT, flow_id, intent_id, created_by, timestamp, description)

    # ── Queries ───────────────────────────────────────────────────────────────

    def get(self, link_id: str) -> Entry[FlowLink] | None:
        return self.ledger.by_id(link_id)

    def all(self) -> tuple[Entry[FlowLink], ...]:
        return self.ledger.all()

    def links_by_flow(self, flow_id: str) -> tuple[Entry[FlowLink], ...]:
        return self.ledger.by_subject("target", flow_id)

    def links_by_type(self, link_type: LinkType) -> tuple[Entry[FlowLink], ...]:
        return self.ledger.by_kind(link_type)

    def _flows_by_reference(self, link_type: LinkType, reference_id: str) -> tuple[str, ...]:
        return reference_links_summary(self.ledger.all(), link_type, reference_id).flow_ids

    def flows_by_hand(self, hand_id: str) -> tuple[str, ...]:
        return self._flows_by_reference(LinkType.HAND, hand_id)

    def flows_by_session(self, session_id: str) -> tuple[str, ...]:
        return self._flows_by_reference(LinkType.SESSION, session_id)

    def flows_by_intent(self, intent_id: str) -> tuple[str, ...]:
        return self._flows_by_reference(LinkType.INTENT, intent_id)

    def flow_summary(self, flow_id: str) -> FlowLinksSummary:
        return flow_links_summary(self.ledger.all(), flow_id)

    def reference_summary(self, link_type: LinkType, reference_id: str) -> ReferenceLinksSummary:
        return reference_links_summary(self.ledger.all(), link_type, reference_id)

    def verify_integrity(self) -> Ok[bool] | Err:
        return self.ledger.verify_integrity()

    def __len__(self) -> int:
        return len(self.ledger)
