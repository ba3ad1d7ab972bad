"""Generic append-only, hash-linked ledger.

Overview
--------
One :class:`Ledger` implementation backs every record type in the package
(behaviour signals, correlation records, risk rules, unit flows).  What
differs between them is captured by a :class:`PayloadCodec`: how raw input is
validated into a payload, how the payload is serialised for hashing, how its
entry id and idempotency key are derived, and which subject ids it exposes to
the generic queries.

Append algorithm
----------------
1. Parse the raw input through the codec's pydantic ``input_model`` and build
   the frozen payload.  Any validation failure is ``INVALID_INPUT``.
2. If the codec yields an idempotency key that was already accepted, return
   ``DUPLICATE_IDENTITY``.  No sequence number is consumed.
3. ``sequence = last_sequence + 1``; derive the entry id; compute
   ``hash = H(canonical(entry) + "|" + previous_hash)``.
4. Store the entry and advance the head.

Steps 2–4 run under a per-ledger :class:`threading.Lock`, so the ledger
state never changes when an append fails.

Queries return tuples copied under the same lock, so a reader never observes
a half-written append.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, is_dataclass
from enum import Enum
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from tableside.core.errors import ErrorCode, InputRejected
from tableside.core.result import Err, Ok, err
from tableside.ledger.hashing import Hasher, compute_entry_hash, rolling_hash, to_plain

logger = logging.getLogger(__name__)

P = TypeVar("P")

#: Subject roles every codec may answer in :meth:`PayloadCodec.subject`.
SUBJECT_ROLES = ("actor", "context", "period", "target", "operator")


# ── Entry ─────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Entry(Generic[P]):
    """One immutable ledger entry.

    Attributes:
        sequence:      1-based position in the ledger.
        entry_id:      Identifier derived from the payload and sequence.
        payload:       Frozen, domain-specific payload dataclass.
        previous_hash: Hash of the preceding entry, or the ledger's genesis
                       constant for the first entry.
        entry_hash:    Hash of this entry chained onto ``previous_hash``.
    """

    sequence: int
    entry_id: str
    payload: P
    previous_hash: str
    entry_hash: str


# ── Codec ─────────────────────────────────────────────────────────────────────


class PayloadCodec(ABC, Generic[P]):
    """Describes one payload type to the generic ledger.

    Subclasses set :attr:`input_model`, :attr:`kind_type` and
    :attr:`genesis`, and implement the abstract methods.  ``build`` may raise
    :exc:`~tableside.core.errors.InputRejected` (or ``ValueError``) for
    domain checks that the input model cannot express.
    """

    #: Pydantic model that raw append input is validated against.
    input_model: ClassVar[type[BaseModel]]
    #: Closed classification enum of the payload.
    kind_type: ClassVar[type[Enum]]
    #: Previous-hash value of the first entry.
    genesis: ClassVar[str]
    #: Short name used in logs and snapshot headers.
    name: ClassVar[str] = "ledger"

    def parse(self, raw: BaseModel | Mapping[str, Any]) -> BaseModel:
        """Validate ``raw`` into an instance of :attr:`input_model`."""
        if isinstance(raw, self.input_model):
            return raw
        if isinstance(raw, BaseModel):
            raw = raw.model_dump()
        if not isinstance(raw, Mapping):
            raise InputRejected(
                f"{self.name} input must be a mapping or {self.input_model.__name__}, "
                f"got {type(raw).__name__}."
            )
        return self.input_model.model_validate(dict(raw))

    @abstractmethod
    def build(self, data: Any) -> P:
        """Turn validated input into a frozen payload."""

    @abstractmethod
    def from_fields(self, fields: Mapping[str, Any]) -> P:
        """Rebuild a payload from its serialised fields (snapshot load)."""

    @abstractmethod
    def entry_id(self, payload: P, sequence: int) -> str:
        """Derive the entry id for ``payload`` stored at ``sequence``."""

    @abstractmethod
    def timestamp(self, payload: P) -> int:
        """Caller-supplied timestamp (ms since epoch) of the payload."""

    @abstractmethod
    def kind(self, payload: P) -> Enum:
        """Classification of the payload."""

    def to_fields(self, payload: P) -> dict[str, Any]:
        """Serialise ``payload`` into JSON primitives."""
        return to_plain(payload)

    def input_fields(self, payload: P) -> dict[str, Any]:
        """Fields of ``payload`` shaped like :attr:`input_model` input."""
        return self.to_fields(payload)

    def check(self, payload: P) -> None:
        """Re-validate a built payload against :attr:`input_model`.

        Raises:
            pydantic.ValidationError: If a field is missing or out of range.
            InputRejected: If ``payload`` is not a dataclass payload.
        """
        if not is_dataclass(payload) or isinstance(payload, type):
            raise InputRejected(
                f"{self.name} payload must be a dataclass, got {type(payload).__name__}."
            )
        self.input_model.model_validate(self.input_fields(payload))

    def subject(self, payload: P, role: str) -> str | None:
        """Subject id the payload holds for ``role``, or ``None``."""
        return None

    def idempotency_key(self, payload: P) -> str | None:
        """Key that must be unique across the ledger, or ``None``."""
        return None


# ── Ledger ────────────────────────────────────────────────────────────────────


class Ledger(Generic[P]):
    """Append-only, hash-linked sequence of :class:`Entry` objects.

    Args:
        codec:  Payload codec for this ledger.
        hasher: Hash function from :mod:`tableside.ledger.hashing`.  Defaults
                to the rolling hash.

    Example::

        ledger = Ledger(SignalCodec())
        result = ledger.append({...})
        if result.ok:
            logger.info("stored %s", result.value.entry_id)
    """

    def __init__(self, codec: PayloadCodec[P], hasher: Hasher = rolling_hash) -> None:
        self._codec = codec
        self._hasher = hasher
        self._entries: list[Entry[P]] = []
        self._by_id: dict[str, Entry[P]] = {}
        self._keys: set[str] = set()
        self._lock = threading.Lock()

    @classmethod
    def from_entries(
        cls,
        codec: PayloadCodec[P],
        entries: Iterable[Entry[P]],
        hasher: Hasher = rolling_hash,
    ) -> Ledger[P]:
        """Rebuild a ledger from stored entries without re-validating them.

        The entries are taken as-is so that :meth:`verify_integrity` can
        report any corruption they carry.
        """
        ledger = cls(codec, hasher)
        for entry in entries:
            ledger._entries.append(entry)
            ledger._by_id[entry.entry_id] = entry
            key = codec.idempotency_key(entry.payload)
            if key is not None:
                ledger._keys.add(key)
        return ledger

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def codec(self) -> PayloadCodec[P]:
        return self._codec

    @property
    def hasher(self) -> Hasher:
        return self._hasher

    @property
    def genesis(self) -> str:
        return self._codec.genesis

    @property
    def last_sequence(self) -> int:
        with self._lock:
            return self._entries[-1].sequence if self._entries else 0

    @property
    def head_hash(self) -> str:
        """Hash of the newest entry, or the genesis constant when empty."""
        with self._lock:
            return self._entries[-1].entry_hash if self._entries else self._codec.genesis

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ── Writes ────────────────────────────────────────────────────────────────

    def append(self, raw: BaseModel | Mapping[str, Any]) -> Ok[Entry[P]] | Err:
        """Validate ``raw`` and append it as a new entry."""
        try:
            payload = self._codec.build(self._codec.parse(raw))
        except ValidationError as exc:
            return self._reject(ErrorCode.INVALID_INPUT, _validation_message(exc))
        except (InputRejected, ValueError) as exc:
            return self._reject(ErrorCode.INVALID_INPUT, str(exc))
        return self._store(payload)

    def append_payload(self, payload: P) -> Ok[Entry[P]] | Err:
        """Append a payload built outside :meth:`append` (rule retirement).

        The payload is first re-validated through the codec, so it meets the
        same field and range rules as raw input; duplicate and chain rules
        apply as usual.
        """
        try:
            self._codec.check(payload)
        except ValidationError as exc:
            return self._reject(ErrorCode.INVALID_INPUT, _validation_message(exc))
        except (InputRejected, ValueError) as exc:
            return self._reject(ErrorCode.INVALID_INPUT, str(exc))
        return self._store(payload)

    def _store(self, payload: P) -> Ok[Entry[P]] | Err:
        key = self._codec.idempotency_key(payload)
        with self._lock:
            if key is not None and key in self._keys:
                return self._reject(
                    ErrorCode.DUPLICATE_IDENTITY,
                    f"{self._codec.name} entry with key {key!r} already exists.",
                )

            sequence = len(self._entries) + 1
            previous_hash = (
                self._entries[-1].entry_hash if self._entries else self._codec.genesis
            )
            entry_id = self._codec.entry_id(payload, sequence)
            if entry_id in self._by_id:
                return self._reject(
                    ErrorCode.DUPLICATE_IDENTITY,
                    f"{self._codec.name} entry id {entry_id!r} already exists.",
                )
            entry_hash = compute_entry_hash(
                self._hasher,
                entry_id,
                sequence,
                self._codec.to_fields(payload),
                previous_hash,
            )
            entry = Entry(
                sequence=sequence,
                entry_id=entry_id,
                payload=payload,
                previous_hash=previous_hash,
                entry_hash=entry_hash,
            )
            self._entries.append(entry)
            self._by_id[entry_id] = entry
            if key is not None:
                self._keys.add(key)

        logger.debug("%s: appended %s at sequence %d", self._codec.name, entry_id, sequence)
        return Ok(entry)

    def _reject(self, code: ErrorCode, message: str) -> Err:
        logger.warning("%s: append rejected (%s): %s", self._codec.name, code.value, message)
        return err(code, message)

    # ── Integrity ─────────────────────────────────────────────────────────────

    def verify_integrity(self) -> Ok[bool] | Err:
        """Walk the whole chain; see :func:`tableside.ledger.verify.verify_chain`."""
        from tableside.ledger.verify import verify_chain

        return verify_chain(self.all(), self._codec, self._hasher)

    # ── Queries ───────────────────────────────────────────────────────────────

    def all(self) -> tuple[Entry[P], ...]:
        with self._lock:
            return tuple(self._entries)

    def by_id(self, entry_id: str) -> Entry[P] | None:
        with self._lock:
            return self._by_id.get(entry_id)

    def by_kind(self, kind: Enum) -> tuple[Entry[P], ...]:
        return tuple(e for e in self.all() if self._codec.kind(e.payload) == kind)

    def by_subject(self, role: str, subject_id: str) -> tuple[Entry[P], ...]:
        """Entries whose ``role`` subject equals ``subject_id``."""
        if role not in SUBJECT_ROLES:
            raise ValueError(f"Unknown subject role {role!r}; expected one of {SUBJECT_ROLES}.")
        return tuple(
            e for e in self.all() if self._codec.subject(e.payload, role) == subject_id
        )

    def by_actor(self, actor_id: str) -> tuple[Entry[P], ...]:
        return self.by_subject("actor", actor_id)

    def by_context(self, context_id: str) -> tuple[Entry[P], ...]:
        return self.by_subject("context", context_id)

    def by_period(self, period_id: str) -> tuple[Entry[P], ...]:
        return self.by_subject("period", period_id)

    def by_time_range(self, start: int, end: int) -> tuple[Entry[P], ...]:
        """Entries with ``start <= timestamp <= end``."""
        return tuple(
            e for e in self.all() if start <= self._codec.timestamp(e.payload) <= end
        )


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error["loc"]) or "input"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)
