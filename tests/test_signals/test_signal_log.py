"""Tests for SignalLog, the owner of the signal and correlation ledgers."""

import pytest

from tableside.core.errors import ErrorCode
from tableside.ledger.chain import Ledger
from tableside.ledger.hashing import sha256_hash
from tableside.signals.log import SignalLog
from tableside.signals.types import (
    CORRELATION_GENESIS_HASH,
    CorrelationMetricType,
    SignalCodec,
    SignalKind,
)

BASE_TS = 1_700_000_000_000


@pytest.fixture
def recorded_log(signal_log, signal_input):
    """Two periods of signals for two actors in two contexts."""
    rows = [
        ("p-1", "t-1", "W1", "PROMOTION_EXPOSURE", 0.8),
        ("p-1", "t-2", "W1", "PROMOTION_EXPOSURE", 0.6),
        ("p-2", "t-1", "W1", "UI_NUDGE", 0.4),
        ("p-2", "t-1", "W1", "PROMOTION_EXPOSURE", 0.2),
        ("p-1", "t-1", "W2", "PROMOTION_EXPOSURE", 0.9),
    ]
    for i, (actor, context, period, kind, intensity) in enumerate(rows):
        result = signal_log.record(
            signal_input(
                actor_id=actor,
                context_id=context,
                period_id=period,
                kind=kind,
                intensity=intensity,
                timestamp=BASE_TS + i,
            )
        )
        assert result.ok
    return signal_log


class TestRecording:
    """Recording signals and correlation records."""

    @pytest.mark.unit
    def test_record_appends_to_signal_ledger(self, signal_log, signal_input):
        result = signal_log.record(signal_input())

        assert result.ok
        assert len(signal_log.signals) == 1
        assert len(signal_log.correlations) == 0

    @pytest.mark.unit
    def test_record_rejects_invalid_input(self, signal_log, signal_input):
        result = signal_log.record(signal_input(intensity=2))

        assert result.code is ErrorCode.INVALID_INPUT

    @pytest.mark.unit
    def test_record_correlation(self, signal_log):
        result = signal_log.record_correlation(
            {
                "signal_kind": "UI_NUDGE",
                "period_id": "W1",
                "metrics": [
                    {"metric_type": "LIFT", "value": 1.2, "confidence": 0.5, "sample_size": 15}
                ],
                "observation_count": 15,
                "calculated_at": BASE_TS,
            }
        )

        assert result.ok
        entry = result.value
        assert entry.entry_id == f"cor_1_{BASE_TS}"
        assert entry.previous_hash == CORRELATION_GENESIS_HASH
        assert entry.payload.metrics[0].metric_type is CorrelationMetricType.LIFT

    @pytest.mark.unit
    def test_correlation_needs_observations(self, signal_log):
        result = signal_log.record_correlation(
            {
                "signal_kind": "UI_NUDGE",
                "period_id": "W1",
                "metrics": [],
                "observation_count": 0,
                "calculated_at": BASE_TS,
            }
        )

        assert result.code is ErrorCode.INVALID_INPUT

    @pytest.mark.unit
    def test_injected_ledgers_are_used_even_when_empty(self):
        ledger = Ledger(SignalCodec(), sha256_hash)

        log = SignalLog(signals=ledger)

        assert log.signals is ledger

    @pytest.mark.unit
    def test_hasher_applies_to_both_ledgers(self):
        log = SignalLog(sha256_hash)

        assert log.signals.hasher is sha256_hash
        assert log.correlations.hasher is sha256_hash


class TestLogCorrelation:
    """Computing and storing correlation records."""

    @pytest.mark.unit
    def test_period_scope(self, recorded_log):
        result = recorded_log.log_correlation(
            SignalKind.PROMOTION_EXPOSURE, "W1", timestamp=BASE_TS + 100
        )

        assert result.ok
        record = result.value.payload
        assert record.observation_count == 3
        assert record.actor_id is None
        assert record.calculated_at == BASE_TS + 100
        assert [m.metric_type for m in record.metrics] == [
            CorrelationMetricType.LIFT,
            CorrelationMetricType.DELTA,
            CorrelationMetricType.SKEW,
            CorrelationMetricType.INDEX,
            CorrelationMetricType.ELASTICITY,
        ]
        assert record.metrics[0].value == pytest.approx((3 / 4) / 0.25)

    @pytest.mark.unit
    def test_actor_and_context_scope(self, recorded_log):
        result = recorded_log.log_correlation(
            SignalKind.PROMOTION_EXPOSURE,
            "W1",
            timestamp=BASE_TS + 100,
            actor_id="p-1",
            context_id="t-1",
        )

        record = result.value.payload
        assert record.observation_count == 1
        assert record.actor_id == "p-1"
        assert record.context_id == "t-1"

    @pytest.mark.unit
    def test_no_matching_signals(self, recorded_log):
        result = recorded_log.log_correlation(
            SignalKind.AGENT_INTERVENTION, "W1", timestamp=BASE_TS + 100
        )

        assert result.code is ErrorCode.INVALID_INPUT
        assert len(recorded_log.correlations) == 0

    @pytest.mark.unit
    def test_invalid_timestamp(self, recorded_log):
        result = recorded_log.log_correlation(SignalKind.UI_NUDGE, "W1", timestamp=0)

        assert result.code is ErrorCode.INVALID_INPUT


class TestIntegrity:
    """verify_integrity spans both ledgers."""

    @pytest.mark.unit
    def test_valid(self, recorded_log):
        recorded_log.log_correlation(SignalKind.UI_NUDGE, "W1", timestamp=BASE_TS + 100)

        assert recorded_log.verify_integrity().ok

    @pytest.mark.unit
    def test_broken_correlation_ledger(self, recorded_log):
        recorded_log.log_correlation(SignalKind.UI_NUDGE, "W1", timestamp=BASE_TS + 100)
        recorded_log.log_correlation(SignalKind.UI_NUDGE, "W1", timestamp=BASE_TS + 200)
        del recorded_log.correlations._entries[0]

        result = recorded_log.verify_integrity()

        assert result.code is ErrorCode.CHAIN_BROKEN
