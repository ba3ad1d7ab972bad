"""Behaviour signals: types, ledger owner, analyzer and views."""

from tableside.signals.log import SignalLog
from tableside.signals.types import (
    ActorType,
    ContextType,
    CorrelationCodec,
    CorrelationInput,
    CorrelationMetric,
    CorrelationMetricType,
    CorrelationRecord,
    Signal,
    SignalCodec,
    SignalInput,
    SignalKind,
)

__all__ = [
    "ActorType",
    "ContextType",
    "CorrelationCodec",
    "CorrelationInput",
    "CorrelationMetric",
    "CorrelationMetricType",
    "CorrelationRecord",
    "Signal",
    "SignalCodec",
    "SignalInput",
    "SignalKind",
    "SignalLog",
]
