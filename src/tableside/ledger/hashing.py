"""Canonical serialisation and entry hashing.

Every ledger entry hash is computed as::

    H(canonical_json(body) + "|" + previous_hash)

where ``body`` holds the entry id, sequence number and payload fields.
``canonical_json`` sorts keys and uses compact separators so the serialised
form, and therefore the hash, is independent of dict insertion order.

Hash algorithms
---------------
``rolling`` (default)
    A 32-bit shift-subtract rolling hash (``h = h * 31 + byte``, wrapped to a
    signed 32-bit integer) over the UTF-8 bytes, rendered as 16 hex digits.
    Integer-only and reproducible on any platform.  It detects accidental
    corruption and reordering; it is **not** tamper-resistant.

``sha256``
    A hashlib SHA-256 hex digest, for deployments that want much stronger
    accidental-corruption detection.  Still unkeyed, so it does not make the
    ledger tamper-proof against someone who can rewrite the whole chain.

Digests carry an algorithm prefix (``roll:`` / ``sha256:``) so a snapshot
records which algorithm produced it.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel

Hasher = Callable[[str], str]

_INT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000


def rolling_hash(data: str) -> str:
    """Return the ``roll:`` digest of ``data``."""
    h = 0
    for byte in data.encode("utf-8"):
        h = ((h << 5) - h + byte) & _INT32_MASK
    if h & _INT32_SIGN:
        h -= 1 << 32
    return f"roll:{abs(h):016x}"


def sha256_hash(data: str) -> str:
    """Return the ``sha256:`` digest of ``data``."""
    return "sha256:" + hashlib.sha256(data.encode("utf-8")).hexdigest()


HASHERS: dict[str, Hasher] = {
    "rolling": rolling_hash,
    "sha256": sha256_hash,
}


def get_hasher(name: str) -> Hasher:
    """Look up a hash function by its configuration name.

    Raises:
        ValueError: If ``name`` is not a known algorithm.
    """
    try:
        return HASHERS[name]
    except KeyError:
        raise ValueError(
            f"Unknown hash algorithm {name!r}; expected one of {sorted(HASHERS)}."
        ) from None


_PREFIXES = {"roll": "rolling", "sha256": "sha256"}


def hasher_for_digest(digest: str) -> Hasher:
    """Pick the hash function that produced ``digest`` from its prefix.

    Raises:
        ValueError: If the digest has no recognised prefix.
    """
    prefix, _, _ = digest.partition(":")
    if prefix not in _PREFIXES:
        raise ValueError(f"Digest {digest!r} has no recognised algorithm prefix.")
    return HASHERS[_PREFIXES[prefix]]


def to_plain(value: Any) -> Any:
    """Convert payload values into JSON-compatible primitives.

    Enums become their values, dataclasses and pydantic models become dicts,
    tuples become lists, and mappings are copied with string keys.
    """
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BaseModel):
        return to_plain(value.model_dump(mode="python"))
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return {str(to_plain(k)): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    if isinstance(value, str):
        return str(value)
    return value


def canonical_json(body: Mapping[str, Any]) -> str:
    """Deterministic JSON serialisation used for hashing and snapshots."""
    return json.dumps(
        to_plain(body),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def entry_body(entry_id: str, sequence: int, payload_fields: Mapping[str, Any]) -> dict[str, Any]:
    """Assemble the hashed portion of an entry."""
    return {
        "entry_id": entry_id,
        "sequence": sequence,
        "payload": payload_fields,
    }


def compute_entry_hash(
    hasher: Hasher,
    entry_id: str,
    sequence: int,
    payload_fields: Mapping[str, Any],
    previous_hash: str,
) -> str:
    """Hash an entry's fields chained onto ``previous_hash``."""
    serialised = canonical_json(entry_body(entry_id, sequence, payload_fields))
    return hasher(f"{serialised}|{previous_hash}")
