"""Two-variant result values for fallible ledger operations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Literal, TypeVar

from tableside.core.errors import ErrorCode, LedgerError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome wrapping ``value``."""

    value: T
    ok: Literal[True] = True


@dataclass(frozen=True)
class Err:
    """Failed outcome wrapping a :class:`LedgerError`."""

    error: LedgerError
    ok: Literal[False] = False

    @property
    def code(self) -> ErrorCode:
        return self.error.code


def err(
    code: ErrorCode,
    message: str,
    *,
    index: int | None = None,
    sequence: int | None = None,
) -> Err:
    """Build an :class:`Err` in one call."""
    return Err(LedgerError(code=code, message=message, index=index, sequence=sequence))
