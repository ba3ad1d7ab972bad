"""Error taxonomy shared by every ledger.

Ledger operations never raise for expected outcomes.  A rejected append or a
broken chain is returned as an :class:`~tableside.core.result.Err` carrying a
:class:`LedgerError`, so callers (adapters, operational tooling) can branch on
``error.code`` without try/except.

:exc:`InputRejected` is the one internal exception: payload codecs raise it
while building a payload, and :meth:`~tableside.ledger.chain.Ledger.append`
converts it into an ``INVALID_INPUT`` result before it can escape.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorCode(str, Enum):
    """Closed set of ledger failure codes."""

    INVALID_INPUT = "INVALID_INPUT"
    DUPLICATE_IDENTITY = "DUPLICATE_IDENTITY"
    CHAIN_BROKEN = "CHAIN_BROKEN"
    HASH_MISMATCH = "HASH_MISMATCH"


@dataclass(frozen=True)
class LedgerError:
    """A single ledger failure.

    Attributes:
        code:     Failure category.
        message:  Human-readable description for logs and operators.
        index:    Zero-based position of the offending entry for chain
                  failures, ``None`` for append failures.
        sequence: Stored sequence number of the offending entry, when one
                  exists.
    """

    code: ErrorCode
    message: str
    index: int | None = None
    sequence: int | None = None

    def __str__(self) -> str:
        where = f" (index {self.index})" if self.index is not None else ""
        return f"{self.code.value}: {self.message}{where}"


class InputRejected(ValueError):
    """Raised by payload codecs when an input fails domain validation."""
