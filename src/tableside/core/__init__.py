"""Shared scaffolding: typed ids, result values, error taxonomy, stats helpers."""

from tableside.core.errors import ErrorCode, InputRejected, LedgerError
from tableside.core.ids import (
    ActorId,
    ContextId,
    EntityId,
    Identifier,
    OperatorId,
    PeriodId,
    RuleId,
)
from tableside.core.result import Err, Ok, err

__all__ = [
    "ActorId",
    "ContextId",
    "EntityId",
    "Err",
    "ErrorCode",
    "Identifier",
    "InputRejected",
    "LedgerError",
    "Ok",
    "OperatorId",
    "PeriodId",
    "RuleId",
    "err",
]
