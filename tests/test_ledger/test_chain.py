"""
Tests for the generic hash-linked ledger.

These tests verify the core ledger guarantees:

1. Entries are append-only and numbered 1..n without gaps
2. Each entry links to the previous entry's hash (genesis for the first)
3. Rejected appends leave the ledger untouched
4. Identical inputs produce identical chains in fresh ledgers
5. Queries return snapshots filtered by kind, subject and time
"""

import dataclasses
import threading

import pytest

from tableside.core.errors import ErrorCode
from tableside.ledger.chain import Entry, Ledger
from tableside.ledger.hashing import sha256_hash
from tableside.signals.types import SIGNAL_GENESIS_HASH, SignalCodec, SignalInput, SignalKind

BASE_TS = 1_700_000_000_000


class TestAppend:
    """Successful appends."""

    @pytest.mark.unit
    def test_first_entry_links_to_genesis(self, signal_ledger, signal_input):
        result = signal_ledger.append(signal_input())

        assert result.ok
        entry = result.value
        assert entry.sequence == 1
        assert entry.entry_id == f"sig_1_{BASE_TS}"
        assert entry.previous_hash == SIGNAL_GENESIS_HASH
        assert entry.entry_hash.startswith("roll:")

    @pytest.mark.unit
    def test_chain_linkage(self, populated_signal_ledger):
        entries = populated_signal_ledger.all()

        assert [e.sequence for e in entries] == [1, 2, 3, 4, 5]
        assert entries[4].previous_hash == entries[3].entry_hash
        for previous, current in zip(entries, entries[1:]):
            assert current.previous_hash == previous.entry_hash

    @pytest.mark.unit
    def test_head_and_last_sequence(self, populated_signal_ledger):
        assert populated_signal_ledger.last_sequence == 5
        assert populated_signal_ledger.head_hash == populated_signal_ledger.all()[-1].entry_hash
        assert Ledger(SignalCodec()).head_hash == SIGNAL_GENESIS_HASH
        assert Ledger(SignalCodec()).last_sequence == 0

    @pytest.mark.unit
    def test_accepts_pydantic_model(self, signal_ledger, signal_input):
        result = signal_ledger.append(SignalInput.model_validate(signal_input()))

        assert result.ok
        assert result.value.payload.kind is SignalKind.PROMOTION_EXPOSURE

    @pytest.mark.unit
    def test_payload_is_frozen(self, signal_ledger, signal_input):
        entry = signal_ledger.append(signal_input()).value

        with pytest.raises(dataclasses.FrozenInstanceError):
            entry.payload.intensity = 0.9  # type: ignore[misc]
        with pytest.raises(dataclasses.FrozenInstanceError):
            entry.entry_hash = "x"  # type: ignore[misc]

    @pytest.mark.unit
    def test_all_returns_snapshot(self, populated_signal_ledger, signal_input):
        snapshot = populated_signal_ledger.all()
        populated_signal_ledger.append(signal_input(timestamp=BASE_TS + 99_000))

        assert isinstance(snapshot, tuple)
        assert len(snapshot) == 5
        assert len(populated_signal_ledger) == 6

    @pytest.mark.unit
    def test_sha256_hasher(self, signal_input):
        ledger = Ledger(SignalCodec(), sha256_hash)
        entry = ledger.append(signal_input()).value

        assert entry.entry_hash.startswith("sha256:")
        assert ledger.verify_integrity().ok


class TestRejection:
    """Rejected appends return Err and leave state unchanged."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "overrides",
        [
            {"intensity": 1.5},
            {"intensity": -0.1},
            {"intensity": float("nan")},
            {"duration_ms": -1},
            {"timestamp": 0},
            {"timestamp": 1.5},
            {"timestamp": "1700000000000"},
            {"actor_id": "   "},
            {"context_id": ""},
            {"kind": "NOT_A_KIND"},
            {"unexpected": "field"},
        ],
    )
    def test_invalid_input(self, populated_signal_ledger, signal_input, overrides):
        head = populated_signal_ledger.head_hash

        result = populated_signal_ledger.append(signal_input(**overrides))

        assert not result.ok
        assert result.code is ErrorCode.INVALID_INPUT
        assert len(populated_signal_ledger) == 5
        assert populated_signal_ledger.head_hash == head

    @pytest.mark.unit
    def test_missing_field(self, signal_ledger, signal_input):
        raw = signal_input()
        del raw["period_id"]

        result = signal_ledger.append(raw)

        assert result.code is ErrorCode.INVALID_INPUT
        assert "period_id" in result.error.message

    @pytest.mark.unit
    def test_non_mapping_input(self, signal_ledger):
        result = signal_ledger.append("not a signal")  # type: ignore[arg-type]

        assert result.code is ErrorCode.INVALID_INPUT

    @pytest.mark.unit
    def test_duplicate_external_ref_does_not_consume_sequence(self, signal_ledger, signal_input):
        assert signal_ledger.append(signal_input(external_ref="ref-1")).ok

        duplicate = signal_ledger.append(signal_input(external_ref="ref-1", timestamp=BASE_TS + 5))

        assert duplicate.code is ErrorCode.DUPLICATE_IDENTITY
        assert signal_ledger.last_sequence == 1
        following = signal_ledger.append(signal_input(timestamp=BASE_TS + 10))
        assert following.value.sequence == 2

    @pytest.mark.unit
    def test_signals_without_external_ref_are_not_deduplicated(self, signal_ledger, signal_input):
        assert signal_ledger.append(signal_input()).ok
        assert signal_ledger.append(signal_input()).ok
        assert len(signal_ledger) == 2

    @pytest.mark.unit
    def test_rejection_is_logged(self, signal_ledger, signal_input, caplog):
        with caplog.at_level("WARNING", logger="tableside.ledger.chain"):
            signal_ledger.append(signal_input(intensity=3))

        assert "append rejected" in caplog.text


class TestAppendPayload:
    """Prebuilt payloads are held to the same rules as raw input."""

    @pytest.mark.unit
    def test_out_of_range_payload_is_rejected(self, signal_ledger, signal_input):
        built = signal_ledger.append(signal_input()).value.payload
        bad = dataclasses.replace(built, timestamp=-5, intensity=7.5, duration_ms=-100.0)

        result = signal_ledger.append_payload(bad)

        assert result.code is ErrorCode.INVALID_INPUT
        assert len(signal_ledger) == 1
        assert signal_ledger.last_sequence == 1

    @pytest.mark.unit
    def test_blank_identifier_is_rejected(self, signal_ledger, signal_input):
        built = signal_ledger.append(signal_input()).value.payload

        result = signal_ledger.append_payload(dataclasses.replace(built, actor_id="  "))

        assert result.code is ErrorCode.INVALID_INPUT
        assert len(signal_ledger) == 1

    @pytest.mark.unit
    def test_non_dataclass_payload_is_rejected(self, signal_ledger, signal_input):
        result = signal_ledger.append_payload(signal_input())  # type: ignore[arg-type]

        assert result.code is ErrorCode.INVALID_INPUT
        assert len(signal_ledger) == 0

    @pytest.mark.unit
    def test_valid_payload_is_chained(self, signal_ledger, signal_input):
        first = signal_ledger.append(signal_input()).value
        later = dataclasses.replace(first.payload, timestamp=BASE_TS + 500)

        result = signal_ledger.append_payload(later)

        assert result.ok
        assert result.value.sequence == 2
        assert result.value.previous_hash == first.entry_hash
        assert signal_ledger.verify_integrity().ok


class TestDeterminism:
    """Identical inputs give identical chains."""

    @pytest.mark.unit
    def test_fresh_ledgers_agree(self, signal_input):
        inputs = [
            signal_input(timestamp=BASE_TS + i, intensity=i / 10, kind=kind)
            for i, kind in enumerate(SignalKind)
        ]
        first = Ledger(SignalCodec())
        second = Ledger(SignalCodec())
        for raw in inputs:
            first.append(raw)
            second.append(raw)

        assert [e.entry_hash for e in first.all()] == [e.entry_hash for e in second.all()]
        assert first.all() == second.all()

    @pytest.mark.unit
    def test_field_order_does_not_matter(self, signal_input):
        raw = signal_input()
        reordered = dict(reversed(list(raw.items())))

        first = Ledger(SignalCodec()).append(raw).value
        second = Ledger(SignalCodec()).append(reordered).value

        assert first.entry_hash == second.entry_hash


class TestIntegrity:
    """Corruption detection through verify_integrity."""

    @pytest.mark.unit
    def test_empty_and_valid_chains_pass(self, signal_ledger, populated_signal_ledger):
        assert signal_ledger.verify_integrity().ok
        result = populated_signal_ledger.verify_integrity()
        assert result.ok
        assert result.value is True

    @pytest.mark.unit
    def test_modified_payload_is_hash_mismatch(self, populated_signal_ledger):
        entries = populated_signal_ledger._entries
        tampered = dataclasses.replace(entries[2].payload, intensity=0.99)
        entries[2] = dataclasses.replace(entries[2], payload=tampered)

        result = populated_signal_ledger.verify_integrity()

        assert result.code is ErrorCode.HASH_MISMATCH
        assert result.error.index == 2
        assert result.error.sequence == 3

    @pytest.mark.unit
    def test_modified_hash_is_detected(self, populated_signal_ledger):
        entries = populated_signal_ledger._entries
        entries[1] = dataclasses.replace(entries[1], entry_hash="roll:0000000000000000")

        result = populated_signal_ledger.verify_integrity()

        assert result.code is ErrorCode.HASH_MISMATCH
        assert result.error.index == 1

    @pytest.mark.unit
    def test_reordered_entries_break_chain(self, populated_signal_ledger):
        entries = populated_signal_ledger._entries
        entries[1], entries[2] = entries[2], entries[1]

        result = populated_signal_ledger.verify_integrity()

        assert result.code is ErrorCode.CHAIN_BROKEN
        assert result.error.index == 1

    @pytest.mark.unit
    def test_deleted_entry_breaks_chain(self, populated_signal_ledger):
        del populated_signal_ledger._entries[1]

        result = populated_signal_ledger.verify_integrity()

        assert result.code is ErrorCode.CHAIN_BROKEN
        assert result.error.index == 1
        assert result.error.sequence == 3

    @pytest.mark.unit
    def test_wrong_genesis_breaks_chain(self, populated_signal_ledger):
        entries = populated_signal_ledger._entries
        entries[0] = dataclasses.replace(entries[0], previous_hash="OTHER_GENESIS")

        result = populated_signal_ledger.verify_integrity()

        assert result.code is ErrorCode.CHAIN_BROKEN
        assert result.error.index == 0

    @pytest.mark.unit
    def test_relinked_entry_with_valid_own_hash_breaks_chain(self, populated_signal_ledger):
        from tableside.ledger.hashing import compute_entry_hash, rolling_hash

        codec = populated_signal_ledger.codec
        entries = populated_signal_ledger._entries
        original = entries[3]
        wrong_previous = "roll:ffffffffffffffff"
        entries[3] = Entry(
            sequence=original.sequence,
            entry_id=original.entry_id,
            payload=original.payload,
            previous_hash=wrong_previous,
            entry_hash=compute_entry_hash(
                rolling_hash,
                original.entry_id,
                original.sequence,
                codec.to_fields(original.payload),
                wrong_previous,
            ),
        )

        result = populated_signal_ledger.verify_integrity()

        assert result.code is ErrorCode.CHAIN_BROKEN
        assert result.error.index == 3

    @pytest.mark.unit
    def test_failure_is_logged(self, populated_signal_ledger, caplog):
        del populated_signal_ledger._entries[0]

        with caplog.at_level("WARNING", logger="tableside.ledger.verify"):
            populated_signal_ledger.verify_integrity()

        assert "integrity check failed" in caplog.text


class TestQueries:
    """Filtered snapshots."""

    @pytest.fixture
    def ledger(self, signal_ledger, signal_input):
        rows = [
            ("p-1", "t-1", "W1", "PROMOTION_EXPOSURE", BASE_TS),
            ("p-1", "t-2", "W1", "UI_NUDGE", BASE_TS + 1000),
            ("p-2", "t-1", "W2", "UI_NUDGE", BASE_TS + 2000),
            ("p-3", "t-3", "W2", "TABLE_ASSIGNMENT", BASE_TS + 3000),
        ]
        for actor, context, period, kind, ts in rows:
            signal_ledger.append(
                signal_input(
                    actor_id=actor, context_id=context, period_id=period, kind=kind, timestamp=ts
                )
            )
        return signal_ledger

    @pytest.mark.unit
    def test_by_subject_roles(self, ledger):
        assert [e.sequence for e in ledger.by_actor("p-1")] == [1, 2]
        assert [e.sequence for e in ledger.by_context("t-1")] == [1, 3]
        assert [e.sequence for e in ledger.by_period("W2")] == [3, 4]
        assert ledger.by_subject("operator", "anyone") == ()

    @pytest.mark.unit
    def test_unknown_role(self, ledger):
        with pytest.raises(ValueError, match="Unknown subject role"):
            ledger.by_subject("owner", "p-1")

    @pytest.mark.unit
    def test_by_kind(self, ledger):
        assert [e.sequence for e in ledger.by_kind(SignalKind.UI_NUDGE)] == [2, 3]
        assert ledger.by_kind(SignalKind.AGENT_INTERVENTION) == ()

    @pytest.mark.unit
    def test_by_time_range_is_inclusive(self, ledger):
        selected = ledger.by_time_range(BASE_TS + 1000, BASE_TS + 2000)

        assert [e.sequence for e in selected] == [2, 3]

    @pytest.mark.unit
    def test_by_id(self, ledger):
        assert ledger.by_id(f"sig_4_{BASE_TS + 3000}").sequence == 4
        assert ledger.by_id("sig_99_0") is None


class TestFromEntries:
    """Rebuilding a ledger from stored entries."""

    @pytest.mark.unit
    def test_rebuilt_ledger_keeps_idempotency_keys(self, signal_ledger, signal_input):
        signal_ledger.append(signal_input(external_ref="ref-1"))

        rebuilt = Ledger.from_entries(SignalCodec(), signal_ledger.all())

        assert rebuilt.verify_integrity().ok
        duplicate = rebuilt.append(signal_input(external_ref="ref-1", timestamp=BASE_TS + 1))
        assert duplicate.code is ErrorCode.DUPLICATE_IDENTITY

    @pytest.mark.unit
    def test_rebuilt_ledger_continues_chain(self, populated_signal_ledger, signal_input):
        rebuilt = Ledger.from_entries(SignalCodec(), populated_signal_ledger.all())

        entry = rebuilt.append(signal_input(timestamp=BASE_TS + 60_000)).value

        assert entry.sequence == 6
        assert entry.previous_hash == populated_signal_ledger.head_hash
        assert rebuilt.verify_integrity().ok


class TestConcurrency:
    """Appends from several threads keep one gapless chain."""

    @pytest.mark.unit
    def test_parallel_appends(self, signal_ledger, signal_input):
        def worker(offset: int) -> None:
            for i in range(50):
                signal_ledger.append(signal_input(timestamp=BASE_TS + offset * 1000 + i))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(signal_ledger) == 200
        assert [e.sequence for e in signal_ledger.all()] == list(range(1, 201))
        assert signal_ledger.verify_integrity().ok
