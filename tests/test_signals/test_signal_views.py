"""Tests for the read-only signal views."""

import pytest

from tableside.core.ids import ActorId, ContextId, PeriodId
from tableside.signals import views
from tableside.signals.types import (
    ActorType,
    ContextType,
    CorrelationMetric,
    CorrelationMetricType,
    CorrelationRecord,
    Signal,
    SignalKind,
)

BASE_TS = 1_700_000_000_000

A = SignalKind.PROMOTION_EXPOSURE
B = SignalKind.TABLE_ASSIGNMENT
C = SignalKind.AGENT_INTERVENTION
D = SignalKind.UI_NUDGE


def sig(kind=A, actor="p-1", context="t-1", period="W1", ts=BASE_TS, intensity=0.5, duration=100.0):
    return Signal(
        kind=kind,
        actor_id=ActorId(actor),
        actor_type=ActorType.PLAYER,
        context_id=ContextId(context),
        context_type=ContextType.TABLE,
        period_id=PeriodId(period),
        timestamp=ts,
        intensity=intensity,
        duration_ms=duration,
    )


class TestKindView:
    """Per-kind views."""

    @pytest.mark.unit
    def test_kind_view(self):
        signals = [sig(actor="p-1"), sig(actor="p-2", intensity=0.7), sig(kind=D)]

        view = views.kind_view(signals, A)

        assert view.signal_count == 2
        assert view.average_intensity == pytest.approx(0.6)
        assert view.total_duration_ms == 200.0
        assert view.actor_count == 2
        assert view.context_count == 1
        assert len(view.metrics) == 4

    @pytest.mark.unit
    def test_all_kind_views(self):
        result = views.all_kind_views([sig(kind=C)])

        assert [v.kind for v in result] == [A, B, C, D]
        assert result[0].signal_count == 0
        assert result[0].metrics == ()


class TestActorView:
    """Actor views."""

    @pytest.mark.unit
    def test_actor_view(self):
        signals = [sig(kind=A), sig(kind=A, ts=BASE_TS + 1), sig(kind=D), sig(actor="p-2")]

        view = views.actor_view(signals, "p-1")

        assert view.total_observations == 3
        assert view.actor_type is ActorType.PLAYER
        assert view.profile.dominant_kind is A
        assert set(view.metrics_by_kind) == {A, B, C, D}
        assert view.metrics_by_kind[B] == ()
        assert view.metrics_by_kind[A][0].value == pytest.approx((2 / 3) / 0.25)
        assert view.trends_by_kind[A].entity_id == "p-1"

    @pytest.mark.unit
    def test_unknown_actor(self):
        view = views.actor_view([sig()], "ghost")

        assert view.total_observations == 0
        assert view.actor_type is None


class TestContextView:
    """Context views."""

    @pytest.mark.unit
    def test_ranked_kinds(self):
        signals = [sig(kind=D), sig(kind=D, actor="p-2"), sig(kind=B), sig(context="t-2")]

        view = views.context_view(signals, "t-1")

        assert [share.kind for share in view.ranked_kinds] == [D, B, A, C]
        assert view.ranked_kinds[0].share == pytest.approx(2 / 3)
        assert view.ranked_kinds[2].share == 0.0
        assert view.actor_count == 2
        assert view.distribution.total_observations == 3

    @pytest.mark.unit
    def test_intensity_variance(self):
        view = views.context_view([sig(intensity=0.2), sig(intensity=0.6)], "t-1")

        assert view.intensity_variance == pytest.approx(0.04)

    @pytest.mark.unit
    def test_empty_context(self):
        view = views.context_view([], "t-1")

        assert view.context_type is None
        assert [share.count for share in view.ranked_kinds] == [0, 0, 0, 0]
        assert view.intensity_variance == 0.0


class TestPeriodView:
    """Period views."""

    @pytest.mark.unit
    def test_period_view(self):
        signals = [
            sig(actor="p-2", context="t-2", ts=BASE_TS + 50),
            sig(actor="p-1", context="t-1", ts=BASE_TS + 10),
            sig(actor="p-2", context="t-1", ts=BASE_TS + 90, kind=D),
            sig(period="W2", ts=1),
        ]

        view = views.period_view(signals, "W1")

        assert view.active_actors == ("p-2", "p-1")
        assert view.active_contexts == ("t-2", "t-1")
        assert view.period_start == BASE_TS + 10
        assert view.period_end == BASE_TS + 90
        assert view.activity_by_kind[A].count == 2
        assert view.activity_by_kind[D].count == 1
        assert view.summary.total_observations == 3

    @pytest.mark.unit
    def test_empty_period(self):
        view = views.period_view([sig()], "W9")

        assert view.period_start is None
        assert view.period_end is None
        assert view.active_actors == ()


class TestTraceView:
    """Actor and context traces."""

    @pytest.mark.unit
    def test_trace_is_time_ordered(self):
        signals = [
            sig(kind=A, ts=BASE_TS + 3000, intensity=0.8),
            sig(kind=D, ts=BASE_TS + 1000, intensity=0.2),
            sig(kind=A, ts=BASE_TS + 2000, intensity=0.2),
            sig(kind=D, ts=BASE_TS + 4000, intensity=0.8),
        ]

        trace = views.trace_view(signals, "p-1", "actor")

        assert [o.timestamp for o in trace.observations] == [
            BASE_TS + 1000,
            BASE_TS + 2000,
            BASE_TS + 3000,
            BASE_TS + 4000,
        ]
        assert trace.direction == 1
        assert trace.span_ms == 3000
        assert trace.volatility == pytest.approx(0.6)

    @pytest.mark.unit
    def test_dominant_tie_goes_to_first_observed(self):
        signals = [sig(kind=B, ts=BASE_TS + 2), sig(kind=D, ts=BASE_TS + 1)]

        trace = views.trace_view(signals, "p-1", "actor")

        assert trace.dominant_kind is D

    @pytest.mark.unit
    def test_falling_and_stable(self):
        falling = [sig(ts=BASE_TS + i, intensity=v) for i, v in enumerate((0.9, 0.9, 0.1, 0.1))]
        stable = [sig(ts=BASE_TS + i, intensity=v) for i, v in enumerate((0.5, 0.5, 0.52, 0.52))]

        assert views.trace_view(falling, "t-1", "context").direction == -1
        assert views.trace_view(stable, "t-1", "context").direction == 0

    @pytest.mark.unit
    def test_empty_trace(self):
        trace = views.trace_view([], "p-1", "actor")

        assert trace.observations == ()
        assert trace.dominant_kind is None
        assert trace.direction == 0
        assert trace.span_ms == 0

    @pytest.mark.unit
    def test_invalid_entity_type(self):
        with pytest.raises(ValueError, match="entity_type"):
            views.trace_view([sig()], "p-1", "period")  # type: ignore[arg-type]


class TestRankings:
    """Top actors and contexts."""

    @pytest.fixture
    def signals(self):
        return [
            sig(actor="p-1", context="t-1"),
            sig(actor="p-2", context="t-2"),
            sig(actor="p-2", context="t-2", kind=D),
            sig(actor="p-3", context="t-3"),
            sig(actor="p-2", context="t-1"),
            sig(actor="p-1", context="t-3"),
            sig(actor="p-3", context="t-3"),
        ]

    @pytest.mark.unit
    def test_top_actors_order_and_ties(self, signals):
        ranks = views.top_actors(signals)

        assert [r.actor_id for r in ranks] == ["p-2", "p-1", "p-3"]
        assert ranks[0].signal_count == 3
        assert ranks[0].total_intensity == pytest.approx(1.5)
        assert ranks[0].total_duration_ms == 300.0

    @pytest.mark.unit
    def test_top_n_limits(self, signals):
        assert len(views.top_actors(signals, top_n=2)) == 2
        assert views.top_actors(signals, top_n=0) == ()

    @pytest.mark.unit
    def test_top_contexts(self, signals):
        ranks = views.top_contexts(signals)

        assert [r.context_id for r in ranks] == ["t-3", "t-1", "t-2"]
        assert ranks[0].actor_count == 2
        assert ranks[0].concentration_index == pytest.approx(1.0)
        assert ranks[2].concentration_index == pytest.approx(0.5)


class TestSummaryView:
    """Global summary."""

    @pytest.mark.unit
    def test_summary_view(self):
        signals = [sig(), sig(kind=D, actor="p-2", period="W2", intensity=0.9)]
        record = CorrelationRecord(
            signal_kind=A,
            actor_id=None,
            context_id=None,
            period_id=PeriodId("W1"),
            metrics=(
                CorrelationMetric(CorrelationMetricType.LIFT, 2.0, 0.4, 1),
                CorrelationMetric(CorrelationMetricType.DELTA, 0.1, 0.8, 1),
            ),
            observation_count=1,
            calculated_at=BASE_TS,
        )

        view = views.summary_view(signals, [record])

        assert view.total_signals == 2
        assert view.total_correlations == 1
        assert view.signals_by_kind[A] == 1
        assert view.signals_by_kind[D] == 1
        assert view.correlations_by_kind[A] == 1
        assert view.actor_count == 2
        assert view.context_count == 1
        assert view.period_count == 2
        assert view.average_intensity == pytest.approx(0.7)
        assert view.average_confidence == pytest.approx(0.6)

    @pytest.mark.unit
    def test_empty_summary(self):
        view = views.summary_view([])

        assert view.total_signals == 0
        assert view.average_intensity == 0.0
        assert view.average_confidence == 0.0
        assert all(count == 0 for count in view.signals_by_kind.values())
