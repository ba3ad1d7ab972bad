"""JSONL snapshots of a ledger.

A snapshot is one canonical JSON object per line, in ledger order::

    {"entry_hash":"roll:...","entry_id":"sig_1_1700000000000",
     "payload":{...},"previous_hash":"roll:...","sequence":1}

Writes go to a sibling ``.tmp`` file that then replaces the target, so a
reader never sees a half-written snapshot.  Loading does **not** re-validate
payloads: entries are rebuilt as stored and handed to
:meth:`~tableside.ledger.chain.Ledger.from_entries`, which leaves
:meth:`~tableside.ledger.chain.Ledger.verify_integrity` to report any
corruption the file carries.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from tableside.ledger.chain import Entry, Ledger, PayloadCodec
from tableside.ledger.hashing import Hasher, canonical_json, hasher_for_digest, rolling_hash

logger = logging.getLogger(__name__)

_REQUIRED_KEYS = ("sequence", "entry_id", "payload", "previous_hash", "entry_hash")


class SnapshotError(Exception):
    """Raised when a snapshot cannot be written, read, or decoded."""


def write_snapshot(ledger: Ledger, path: Path | str) -> int:
    """Write every entry of ``ledger`` to ``path``.

    Returns:
        The number of entries written.

    Raises:
        SnapshotError: On any filesystem failure.
    """
    target = Path(path)
    temp = target.with_name(target.name + ".tmp")
    entries = ledger.all()
    codec = ledger.codec

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with temp.open("w", encoding="utf-8") as fh:
            for entry in entries:
                record = {
                    "sequence": entry.sequence,
                    "entry_id": entry.entry_id,
                    "previous_hash": entry.previous_hash,
                    "entry_hash": entry.entry_hash,
                    "payload": codec.to_fields(entry.payload),
                }
                fh.write(canonical_json(record) + "\n")
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(temp, target)
    except (OSError, ValueError) as exc:
        raise SnapshotError(f"Failed to write snapshot to {target}: {exc}") from exc

    logger.info("snapshot: wrote %d %s entries to %s", len(entries), codec.name, target)
    return len(entries)


def read_snapshot(path: Path | str, codec: PayloadCodec) -> list[Entry]:
    """Rebuild the entries stored in ``path``.

    Raises:
        SnapshotError: If the file is missing, unreadable, not valid JSONL,
            or a line lacks an entry field, holds a field of the wrong type, or
            holds an undecodable payload.
    """
    source = Path(path)
    try:
        lines = source.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise SnapshotError(f"Failed to read snapshot {source}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise SnapshotError(f"{source}: not UTF-8 text: {exc}") from exc

    entries: list[Entry] = []
    for number, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as exc:
            raise SnapshotError(f"{source}:{number}: invalid JSON: {exc}") from exc
        entries.append(_decode_entry(record, codec, f"{source}:{number}"))
    return entries


def load_ledger(
    path: Path | str,
    codec: PayloadCodec,
    hasher: Hasher | None = None,
) -> Ledger:
    """Load a snapshot into a fresh :class:`Ledger`.

    When ``hasher`` is omitted the algorithm is inferred from the first
    entry's hash prefix (rolling for an empty snapshot).
    """
    entries = read_snapshot(path, codec)
    if hasher is None:
        hasher = rolling_hash
        if entries:
            try:
                hasher = hasher_for_digest(entries[0].entry_hash)
            except ValueError as exc:
                raise SnapshotError(f"{path}: {exc}") from exc
    return Ledger.from_entries(codec, entries, hasher)


def _decode_entry(record: Any, codec: PayloadCodec, where: str) -> Entry:
    if not isinstance(record, dict):
        raise SnapshotError(f"{where}: expected a JSON object, got {type(record).__name__}.")
    missing = [key for key in _REQUIRED_KEYS if key not in record]
    if missing:
        raise SnapshotError(f"{where}: missing fields {missing}.")
    sequence = record["sequence"]
    if not isinstance(sequence, int) or isinstance(sequence, bool):
        raise SnapshotError(f"{where}: sequence must be an integer, got {sequence!r}.")
    for key in ("entry_id", "previous_hash", "entry_hash"):
        if not isinstance(record[key], str):
            raise SnapshotError(f"{where}: {key} must be a string, got {record[key]!r}.")
    payload_fields = record["payload"]
    if not isinstance(payload_fields, dict):
        raise SnapshotError(f"{where}: payload must be a JSON object.")
    try:
        payload = codec.from_fields(payload_fields)
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise SnapshotError(f"{where}: cannot decode {codec.name} payload: {exc}") from exc
    return Entry(
        sequence=sequence,
        entry_id=record["entry_id"],
        payload=payload,
        previous_hash=record["previous_hash"],
        entry_hash=record["entry_hash"],
    )
