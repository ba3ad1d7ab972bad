"""Directional unit flows: types, ledger owners, reference links, aggregations and views."""

from tableside.flow.links import FlowLink, FlowLinkCodec, FlowLinkInput, FlowLinkLog, LinkType
from tableside.flow.log import FlowLog
from tableside.flow.types import (
    EntityType,
    Flow,
    FlowCodec,
    FlowDirection,
    FlowInput,
    FlowSource,
    flow_id,
)

__all__ = [
    "EntityType",
    "Flow",
    "FlowCodec",
    "FlowDirection",
    "FlowInput",
    "FlowLink",
    "FlowLinkCodec",
    "FlowLinkInput",
    "FlowLinkLog",
    "FlowLog",
    "FlowSource",
    "LinkType",
    "flow_id",
]
