"""Full-replay chain verification.

The check walks every entry from the beginning:

1. entry 0's previous hash must equal the ledger's genesis constant;
2. each entry's sequence must equal its index + 1;
3. each entry's stored hash must equal the hash recomputed from its fields;
4. each later entry's previous hash must equal the prior entry's hash.

The first violation is returned as an ``Err`` carrying the offending index
and stored sequence.  Sequence and linkage problems are ``CHAIN_BROKEN``;
a recomputed hash that differs from the stored one is ``HASH_MISMATCH``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from tableside.core.errors import ErrorCode
from tableside.core.result import Err, Ok, err
from tableside.ledger.chain import Entry, PayloadCodec
from tableside.ledger.hashing import Hasher, compute_entry_hash

logger = logging.getLogger(__name__)


def verify_chain(
    entries: Sequence[Entry],
    codec: PayloadCodec,
    hasher: Hasher,
) -> Ok[bool] | Err:
    """Verify ``entries`` as one hash-linked chain.  Empty input succeeds."""
    if not entries:
        return Ok(True)

    first = entries[0]
    if first.previous_hash != codec.genesis:
        return _fail(
            codec,
            ErrorCode.CHAIN_BROKEN,
            "first entry does not link to the genesis hash",
            0,
            first.sequence,
        )

    for index, entry in enumerate(entries):
        if entry.sequence != index + 1:
            return _fail(
                codec,
                ErrorCode.CHAIN_BROKEN,
                f"expected sequence {index + 1}, found {entry.sequence}",
                index,
                entry.sequence,
            )

        expected = compute_entry_hash(
            hasher,
            entry.entry_id,
            entry.sequence,
            codec.to_fields(entry.payload),
            entry.previous_hash,
        )
        if expected != entry.entry_hash:
            return _fail(
                codec,
                ErrorCode.HASH_MISMATCH,
                f"stored hash {entry.entry_hash!r} does not match recomputed {expected!r}",
                index,
                entry.sequence,
            )

        if index > 0 and entry.previous_hash != entries[index - 1].entry_hash:
            return _fail(
                codec,
                ErrorCode.CHAIN_BROKEN,
                "previous hash does not match the prior entry's hash",
                index,
                entry.sequence,
            )

    return Ok(True)


def _fail(codec: PayloadCodec, code: ErrorCode, message: str, index: int, sequence: int) -> Err:
    logger.warning(
        "%s: integrity check failed at index %d (sequence %d): %s",
        codec.name,
        index,
        sequence,
        message,
    )
    return err(code, message, index=index, sequence=sequence)
