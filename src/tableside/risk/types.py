"""Risk rule, threshold and flag types.

Rules are advisory: a rule describes a pattern worth a human's attention,
and evaluating it produces a :class:`Flag`.  Nothing here blocks, limits, or
reverses anything.

Rules are stored in their own hash-linked ledger as :class:`RuleDefinition`
payloads.  A rule is never edited in place: retiring it appends a second
definition whose ``supersedes`` field names the retired rule id.  Flags are
ephemeral analysis output and are never stored.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, TypeAdapter

from tableside.core.ids import NonBlankStr, RuleId
from tableside.ledger.chain import Entry, PayloadCodec

RULE_GENESIS_HASH = "RISK_GENESIS_0000000000000000"


# ── Enums ─────────────────────────────────────────────────────────────────────


class RiskSeverity(str, Enum):
    INFO = "INFO"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class RiskCategory(str, Enum):
    FREQUENCY = "FREQUENCY"
    CONCENTRATION = "CONCENTRATION"
    VELOCITY = "VELOCITY"
    PATTERN = "PATTERN"
    SKEW = "SKEW"


class ThresholdType(str, Enum):
    COUNT = "COUNT"
    RATE = "RATE"
    WINDOW = "WINDOW"
    PERCENTAGE = "PERCENTAGE"


# ── Thresholds ────────────────────────────────────────────────────────────────


class _ThresholdBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def threshold_type(self) -> ThresholdType:
        return ThresholdType(self.type)  # type: ignore[attr-defined]


class CountThreshold(_ThresholdBase):
    """More than ``max_count`` events."""

    type: Literal["COUNT"] = "COUNT"
    max_count: StrictInt = Field(gt=0)


class RateThreshold(_ThresholdBase):
    """More than ``max_count`` events in the trailing ``window_ms``."""

    type: Literal["RATE"] = "RATE"
    max_count: StrictInt = Field(gt=0)
    window_ms: StrictInt = Field(gt=0)


class WindowThreshold(_ThresholdBase):
    """Two consecutive events closer together than ``min_gap_ms``."""

    type: Literal["WINDOW"] = "WINDOW"
    window_ms: StrictInt = Field(gt=0)
    min_gap_ms: StrictInt = Field(ge=0)


class PercentageThreshold(_ThresholdBase):
    """A share of events, in whole percent, above ``max_percentage``."""

    type: Literal["PERCENTAGE"] = "PERCENTAGE"
    max_percentage: StrictInt = Field(ge=0, le=100)


Threshold = Annotated[
    Union[CountThreshold, RateThreshold, WindowThreshold, PercentageThreshold],
    Field(discriminator="type"),
]

_THRESHOLD_ADAPTER: TypeAdapter[Threshold] = TypeAdapter(Threshold)


def parse_threshold(data: Mapping[str, Any]) -> Threshold:
    """Validate a threshold mapping into its model.

    Raises:
        pydantic.ValidationError: If the mapping is not a valid threshold.
    """
    return _THRESHOLD_ADAPTER.validate_python(dict(data))


# ── Rule payload & input ──────────────────────────────────────────────────────


class RuleInput(BaseModel):
    """Validated input for registering a rule."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: NonBlankStr
    description: NonBlankStr
    category: RiskCategory
    severity: RiskSeverity
    threshold: Threshold
    timestamp: StrictInt = Field(gt=0)


@dataclass(frozen=True)
class RuleDefinition:
    """Rule ledger payload.

    Attributes:
        name:        Unique rule name.
        description: What the rule looks for.
        category:    Evaluator family the rule belongs to.
        severity:    Severity copied onto every flag the rule raises.
        threshold:   Frozen threshold model.
        active:      ``False`` on retirement entries.
        timestamp:   Caller-supplied registration (or retirement) time.
        supersedes:  Rule id this entry retires, or ``None`` for a
                     registration.
    """

    name: str
    description: str
    category: RiskCategory
    severity: RiskSeverity
    threshold: Threshold
    active: bool
    timestamp: int
    supersedes: str | None = None


@dataclass(frozen=True)
class RiskRule:
    """An evaluable rule, as seen by the evaluators."""

    rule_id: RuleId
    name: str
    description: str
    category: RiskCategory
    severity: RiskSeverity
    threshold: Threshold
    active: bool
    created_at: int

    @classmethod
    def from_entry(cls, entry: Entry[RuleDefinition]) -> RiskRule:
        definition = entry.payload
        return cls(
            rule_id=RuleId(entry.entry_id),
            name=definition.name,
            description=definition.description,
            category=definition.category,
            severity=definition.severity,
            threshold=definition.threshold,
            active=definition.active,
            created_at=definition.timestamp,
        )


class RuleCodec(PayloadCodec[RuleDefinition]):
    input_model = RuleInput
    kind_type = RiskCategory
    genesis = RULE_GENESIS_HASH
    name = "rules"

    def build(self, data: RuleInput) -> RuleDefinition:
        return RuleDefinition(
            name=data.name,
            description=data.description,
            category=data.category,
            severity=data.severity,
            threshold=data.threshold,
            active=True,
            timestamp=data.timestamp,
        )

    def from_fields(self, fields: Mapping[str, Any]) -> RuleDefinition:
        return RuleDefinition(
            name=fields["name"],
            description=fields["description"],
            category=RiskCategory(fields["category"]),
            severity=RiskSeverity(fields["severity"]),
            threshold=parse_threshold(fields["threshold"]),
            active=bool(fields["active"]),
            timestamp=int(fields["timestamp"]),
            supersedes=fields.get("supersedes"),
        )

    def entry_id(self, payload: RuleDefinition, sequence: int) -> str:
        return f"rule-{sequence}-{payload.timestamp}"

    def timestamp(self, payload: RuleDefinition) -> int:
        return payload.timestamp

    def kind(self, payload: RuleDefinition) -> RiskCategory:
        return payload.category

    def input_fields(self, payload: RuleDefinition) -> dict[str, Any]:
        fields = self.to_fields(payload)
        del fields["active"], fields["supersedes"]
        return fields

    def idempotency_key(self, payload: RuleDefinition) -> str:
        if payload.supersedes is not None:
            return f"retire:{payload.supersedes}"
        return payload.name


# ── Analysis input & output ───────────────────────────────────────────────────


@dataclass(frozen=True)
class TimestampedEvent:
    timestamp: int
    subject_id: str


@dataclass(frozen=True)
class ConcentrationInput:
    """Events of one actor against the total event count."""

    actor_id: str
    events: tuple[TimestampedEvent, ...]
    total_events: int
    analyzed_at: int


@dataclass(frozen=True)
class SkewInput:
    subject_id: str
    subject_type: str
    subject_events: int
    total_events: int
    analyzed_at: int


@dataclass(frozen=True)
class PendingPatternInput:
    """Unresolved events of one actor."""

    actor_id: str
    pending_events: tuple[TimestampedEvent, ...]
    analyzed_at: int


@dataclass(frozen=True)
class Flag:
    """One advisory finding.

    Attributes:
        flag_id:         ``flag-<rule>-<subject type>-<subject id>-<analyzed at>``;
                         identical inputs always produce the same id.
        observed_value:  What was measured (count, gap, or whole percent).
        threshold_value: The limit it was compared against.
        context:         Extra measurements, read-only.
    """

    flag_id: str
    rule_id: RuleId
    category: RiskCategory
    severity: RiskSeverity
    description: str
    subject_type: str
    subject_id: str
    observed_value: float
    threshold_value: float
    analyzed_at: int
    context: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True)
class AnalysisResult:
    flags: tuple[Flag, ...]
    analyzed_at: int
    rules_evaluated: int
    has_high_severity: bool


def flag_id(rule_id: str, subject_type: str, subject_id: str, analyzed_at: int) -> str:
    return f"flag-{rule_id}-{subject_type}-{subject_id}-{analyzed_at}"
