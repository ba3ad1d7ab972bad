"""Typed identifier value types.

Every subject reference stored in a ledger (actor, context, period, flow
entity, operator, rule) is an opaque string, but the kinds must never be
mixed up.  Each kind is its own ``str`` subclass so type checkers can tell an
:class:`ActorId` from a :class:`ContextId`, and each one rejects empty or
blank values at construction.

Because the classes subclass ``str`` they compare, hash, and serialise exactly
like the underlying string, which keeps canonical ledger serialisation
independent of the wrapper type.
"""

from __future__ import annotations

from typing import Annotated

from pydantic import AfterValidator


def _require_non_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must be a non-empty, non-blank string")
    return value


#: Pydantic field type for input schemas: a string that is not empty or blank.
NonBlankStr = Annotated[str, AfterValidator(_require_non_blank)]


class Identifier(str):
    """Base class for validated identifier value types."""

    __slots__ = ()

    def __new__(cls, value: str) -> Identifier:
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"{cls.__name__} must be a non-empty string, got {value!r}.")
        return super().__new__(cls, value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str.__repr__(self)})"


class ActorId(Identifier):
    """An observed actor: player, agent, club, table, or system."""

    __slots__ = ()


class ContextId(Identifier):
    """Where an observation happened (session, hand, table, club, platform)."""

    __slots__ = ()


class PeriodId(Identifier):
    """Reporting period an observation is attributed to."""

    __slots__ = ()


class EntityId(Identifier):
    """Source or target entity of a unit flow."""

    __slots__ = ()


class OperatorId(Identifier):
    """Operator who declared a flow record."""

    __slots__ = ()


class RuleId(Identifier):
    """Identifier of a registered risk rule."""

    __slots__ = ()
