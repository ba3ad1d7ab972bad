"""Behaviour signal and correlation record types.

A *signal* records that an actor was observed in a context being exposed to
something (a promotion, a table assignment, an agent intervention, a UI
nudge).  Signals describe what was observed, never what should happen.

A *correlation record* snapshots the correlation metrics computed over a set
of signals at a point in time.  Both live in their own hash-linked ledger,
described to :class:`~tableside.ledger.chain.Ledger` by the codecs at the
bottom of this module.

Input schemas are pydantic models so that adapters can pass plain mappings
straight through; payloads are frozen dataclasses.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt

from tableside.core.ids import ActorId, ContextId, NonBlankStr, PeriodId
from tableside.ledger.chain import PayloadCodec


# ── Enums ─────────────────────────────────────────────────────────────────────


class SignalKind(str, Enum):
    """What kind of exposure was observed.  Declaration order is significant:
    it breaks ties in dominant-kind and ranking computations."""

    PROMOTION_EXPOSURE = "PROMOTION_EXPOSURE"
    TABLE_ASSIGNMENT = "TABLE_ASSIGNMENT"
    AGENT_INTERVENTION = "AGENT_INTERVENTION"
    UI_NUDGE = "UI_NUDGE"


class ActorType(str, Enum):
    PLAYER = "PLAYER"
    AGENT = "AGENT"
    CLUB = "CLUB"
    TABLE = "TABLE"
    SYSTEM = "SYSTEM"


class ContextType(str, Enum):
    SESSION = "SESSION"
    HAND = "HAND"
    TABLE = "TABLE"
    CLUB = "CLUB"
    PLATFORM = "PLATFORM"


class CorrelationMetricType(str, Enum):
    """Statistical correlation measures.  None of them imply causation."""

    LIFT = "LIFT"
    DELTA = "DELTA"
    SKEW = "SKEW"
    ELASTICITY = "ELASTICITY"
    INDEX = "INDEX"


SIGNAL_KINDS: tuple[SignalKind, ...] = tuple(SignalKind)

SIGNAL_GENESIS_HASH = "SIGNAL_GENESIS_0000000000000000"
CORRELATION_GENESIS_HASH = "CORRELATION_GENESIS_0000000000000000"


# ── Payloads ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Signal:
    """One observed behaviour signal.

    Attributes:
        kind:         Classification of the exposure.
        actor_id:     Who was observed.
        actor_type:   Actor classification at observation time.
        context_id:   Where the observation happened.
        context_type: Context classification.
        period_id:    Reporting period.
        timestamp:    Caller-supplied observation time, ms since epoch.
        intensity:    Normalised strength of the exposure in ``[0, 1]``.
        duration_ms:  Exposure duration, non-negative.
        external_ref: Optional caller reference; unique per ledger when set.
    """

    kind: SignalKind
    actor_id: ActorId
    actor_type: ActorType
    context_id: ContextId
    context_type: ContextType
    period_id: PeriodId
    timestamp: int
    intensity: float
    duration_ms: float
    external_ref: str | None = None


@dataclass(frozen=True)
class CorrelationMetric:
    metric_type: CorrelationMetricType
    value: float
    confidence: float
    sample_size: int


@dataclass(frozen=True)
class CorrelationRecord:
    """Correlation metrics computed over a signal set at ``calculated_at``."""

    signal_kind: SignalKind
    actor_id: ActorId | None
    context_id: ContextId | None
    period_id: PeriodId
    metrics: tuple[CorrelationMetric, ...]
    observation_count: int
    calculated_at: int


# ── Input schemas ─────────────────────────────────────────────────────────────


class SignalInput(BaseModel):
    """Validated append input for :class:`Signal`."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: SignalKind
    actor_id: NonBlankStr
    actor_type: ActorType
    context_id: NonBlankStr
    context_type: ContextType
    period_id: NonBlankStr
    timestamp: StrictInt = Field(gt=0)
    intensity: float = Field(ge=0.0, le=1.0, allow_inf_nan=False)
    duration_ms: float = Field(ge=0.0, allow_inf_nan=False)
    external_ref: NonBlankStr | None = None


class CorrelationMetricInput(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    metric_type: CorrelationMetricType
    value: float = Field(allow_inf_nan=False)
    confidence: float = Field(ge=0.0, le=1.0, allow_inf_nan=False)
    sample_size: StrictInt = Field(ge=0)


class CorrelationInput(BaseModel):
    """Validated append input for :class:`CorrelationRecord`."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    signal_kind: SignalKind
    actor_id: NonBlankStr | None = None
    context_id: NonBlankStr | None = None
    period_id: NonBlankStr
    metrics: tuple[CorrelationMetricInput, ...]
    observation_count: StrictInt = Field(gt=0)
    calculated_at: StrictInt = Field(gt=0)


# ── Codecs ────────────────────────────────────────────────────────────────────


class SignalCodec(PayloadCodec[Signal]):
    input_model = SignalInput
    kind_type = SignalKind
    genesis = SIGNAL_GENESIS_HASH
    name = "signals"

    def build(self, data: SignalInput) -> Signal:
        return Signal(
            kind=data.kind,
            actor_id=ActorId(data.actor_id),
            actor_type=data.actor_type,
            context_id=ContextId(data.context_id),
            context_type=data.context_type,
            period_id=PeriodId(data.period_id),
            timestamp=data.timestamp,
            intensity=float(data.intensity),
            duration_ms=float(data.duration_ms),
            external_ref=data.external_ref,
        )

    def from_fields(self, fields: Mapping[str, Any]) -> Signal:
        return Signal(
            kind=SignalKind(fields["kind"]),
            actor_id=ActorId(fields["actor_id"]),
            actor_type=ActorType(fields["actor_type"]),
            context_id=ContextId(fields["context_id"]),
            context_type=ContextType(fields["context_type"]),
            period_id=PeriodId(fields["period_id"]),
            timestamp=int(fields["timestamp"]),
            intensity=float(fields["intensity"]),
            duration_ms=float(fields["duration_ms"]),
            external_ref=fields.get("external_ref"),
        )

    def entry_id(self, payload: Signal, sequence: int) -> str:
        return f"sig_{sequence}_{payload.timestamp}"

    def timestamp(self, payload: Signal) -> int:
        return payload.timestamp

    def kind(self, payload: Signal) -> SignalKind:
        return payload.kind

    def subject(self, payload: Signal, role: str) -> str | None:
        if role == "actor":
            return payload.actor_id
        if role == "context":
            return payload.context_id
        if role == "period":
            return payload.period_id
        return None

    def idempotency_key(self, payload: Signal) -> str | None:
        return payload.external_ref


class CorrelationCodec(PayloadCodec[CorrelationRecord]):
    input_model = CorrelationInput
    kind_type = SignalKind
    genesis = CORRELATION_GENESIS_HASH
    name = "correlations"

    def build(self, data: CorrelationInput) -> CorrelationRecord:
        return CorrelationRecord(
            signal_kind=data.signal_kind,
            actor_id=ActorId(data.actor_id) if data.actor_id is not None else None,
            context_id=ContextId(data.context_id) if data.context_id is not None else None,
            period_id=PeriodId(data.period_id),
            metrics=tuple(
                CorrelationMetric(
                    metric_type=m.metric_type,
                    value=float(m.value),
                    confidence=float(m.confidence),
                    sample_size=m.sample_size,
                )
                for m in data.metrics
            ),
            observation_count=data.observation_count,
            calculated_at=data.calculated_at,
        )

    def from_fields(self, fields: Mapping[str, Any]) -> CorrelationRecord:
        actor_id = fields.get("actor_id")
        context_id = fields.get("context_id")
        return CorrelationRecord(
            signal_kind=SignalKind(fields["signal_kind"]),
            actor_id=ActorId(actor_id) if actor_id is not None else None,
            context_id=ContextId(context_id) if context_id is not None else None,
            period_id=PeriodId(fields["period_id"]),
            metrics=tuple(
                CorrelationMetric(
                    metric_type=CorrelationMetricType(m["metric_type"]),
                    value=float(m["value"]),
                    confidence=float(m["confidence"]),
                    sample_size=int(m["sample_size"]),
                )
                for m in fields["metrics"]
            ),
            observation_count=int(fields["observation_count"]),
            calculated_at=int(fields["calculated_at"]),
        )

    def entry_id(self, payload: CorrelationRecord, sequence: int) -> str:
        return f"cor_{sequence}_{payload.calculated_at}"

    def timestamp(self, payload: CorrelationRecord) -> int:
        return payload.calculated_at

    def kind(self, payload: CorrelationRecord) -> SignalKind:
        return payload.signal_kind

    def subject(self, payload: CorrelationRecord, role: str) -> str | None:
        if role == "actor":
            return payload.actor_id
        if role == "context":
            return payload.context_id
        if role == "period":
            return payload.period_id
        return None
