"""Generic hash-linked ledger, chain verification and JSONL snapshots."""

from tableside.ledger.chain import Entry, Ledger, PayloadCodec
from tableside.ledger.hashing import (
    HASHERS,
    canonical_json,
    get_hasher,
    rolling_hash,
    sha256_hash,
)
from tableside.ledger.jsonl import SnapshotError, load_ledger, read_snapshot, write_snapshot
from tableside.ledger.verify import verify_chain

__all__ = [
    "HASHERS",
    "Entry",
    "Ledger",
    "PayloadCodec",
    "SnapshotError",
    "canonical_json",
    "get_hasher",
    "load_ledger",
    "read_snapshot",
    "rolling_hash",
    "sha256_hash",
    "verify_chain",
    "write_snapshot",
]
