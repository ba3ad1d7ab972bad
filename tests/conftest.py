"""
Shared pytest fixtures for the Tableside test suite.

This module provides fixtures that are automatically available to all test files:
- Raw input builders for signals, flows and risk rules
- Fresh ledgers and ledger owners (SignalLog, RuleBook, FlowLog)
- A rule book pre-loaded with one rule per evaluator family
- Four sample flows, as bare payloads and as a recorded FlowLog

Every fixture builds new objects, so no state leaks between tests.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from tableside.flow.log import FlowLog
from tableside.flow.types import Flow, FlowCodec, FlowInput
from tableside.ledger.chain import Ledger
from tableside.risk.rulebook import RuleBook
from tableside.signals.log import SignalLog
from tableside.signals.types import Signal, SignalCodec

BASE_TS = 1_700_000_000_000

# ============================================================================
# INPUT BUILDERS
# ============================================================================


def make_signal_input(**overrides: Any) -> dict[str, Any]:
    """Valid raw signal input; keyword arguments replace individual fields."""
    data: dict[str, Any] = {
        "kind": "PROMOTION_EXPOSURE",
        "actor_id": "player-1",
        "actor_type": "PLAYER",
        "context_id": "table-1",
        "context_type": "TABLE",
        "period_id": "2024-W01",
        "timestamp": BASE_TS,
        "intensity": 0.5,
        "duration_ms": 1000,
    }
    data.update(overrides)
    return data


def make_flow_input(**overrides: Any) -> dict[str, Any]:
    """Valid raw flow input; keyword arguments replace individual fields."""
    data: dict[str, Any] = {
        "direction": "INBOUND",
        "source": "TABLE",
        "source_entity_id": "table-1",
        "source_entity_type": "TABLE",
        "unit_count": 100,
        "operator_id": "op-1",
        "timestamp": BASE_TS,
    }
    data.update(overrides)
    return data


def make_rule_input(**overrides: Any) -> dict[str, Any]:
    """Valid raw rule input (FREQUENCY / COUNT 5); keyword arguments replace fields."""
    data: dict[str, Any] = {
        "name": "burst",
        "description": "More than five events",
        "category": "FREQUENCY",
        "severity": "MEDIUM",
        "threshold": {"type": "COUNT", "max_count": 5},
        "timestamp": BASE_TS,
    }
    data.update(overrides)
    return data


@pytest.fixture
def signal_input() -> Callable[..., dict[str, Any]]:
    return make_signal_input


@pytest.fixture
def flow_input() -> Callable[..., dict[str, Any]]:
    return make_flow_input


@pytest.fixture
def rule_input() -> Callable[..., dict[str, Any]]:
    return make_rule_input


# ============================================================================
# LEDGER FIXTURES
# ============================================================================


@pytest.fixture
def signal_ledger() -> Ledger[Signal]:
    """Empty signal ledger using the default rolling hash."""
    return Ledger(SignalCodec())


@pytest.fixture
def populated_signal_ledger(signal_ledger: Ledger[Signal]) -> Ledger[Signal]:
    """Signal ledger holding five signals one second apart."""
    for i in range(5):
        result = signal_ledger.append(
            make_signal_input(timestamp=BASE_TS + i * 1000, intensity=0.1 * (i + 1))
        )
        assert result.ok
    return signal_ledger


@pytest.fixture
def signal_log() -> SignalLog:
    return SignalLog()


@pytest.fixture
def flow_log() -> FlowLog:
    return FlowLog()


@pytest.fixture
def rulebook() -> RuleBook:
    return RuleBook()


@pytest.fixture
def loaded_rulebook(rulebook: RuleBook) -> RuleBook:
    """
    Rule book with one active rule per evaluator family.

    Rules (registration order):
        count-5        FREQUENCY      COUNT 5            MEDIUM
        rate-3-per-min FREQUENCY      RATE 3 / 60s       LOW
        rapid          VELOCITY       WINDOW gap 1000ms  HIGH
        concentration  CONCENTRATION  PERCENTAGE 40      MEDIUM
        skew           SKEW           PERCENTAGE 60      INFO
        pending        PATTERN        COUNT 2            HIGH
    """
    inputs = [
        make_rule_input(name="count-5"),
        make_rule_input(
            name="rate-3-per-min",
            severity="LOW",
            threshold={"type": "RATE", "max_count": 3, "window_ms": 60_000},
        ),
        make_rule_input(
            name="rapid",
            category="VELOCITY",
            severity="HIGH",
            threshold={"type": "WINDOW", "window_ms": 60_000, "min_gap_ms": 1000},
        ),
        make_rule_input(
            name="concentration",
            category="CONCENTRATION",
            threshold={"type": "PERCENTAGE", "max_percentage": 40},
        ),
        make_rule_input(
            name="skew",
            category="SKEW",
            severity="INFO",
            threshold={"type": "PERCENTAGE", "max_percentage": 60},
        ),
        make_rule_input(
            name="pending",
            category="PATTERN",
            severity="HIGH",
            threshold={"type": "COUNT", "max_count": 2},
        ),
    ]
    for result in rulebook.register_all(inputs):
        assert result.ok
    return rulebook


# ============================================================================
# FLOW FIXTURES
# ============================================================================

# direction, source, entity, entity type, target, target type, units, operator, offset
FLOW_ROWS = [
    ("INBOUND", "TABLE", "table-1", "TABLE", "player-1", "PLAYER", 100, "op-1", 0),
    ("OUTBOUND", "TABLE", "table-1", "TABLE", "player-2", "PLAYER", 40, "op-1", 1000),
    ("INTERNAL", "CLUB", "club-1", "CLUB", "table-1", "TABLE", 10, "op-2", 2000),
    ("INBOUND", "PLAYER", "player-1", "PLAYER", None, None, 50, "op-2", 3000),
]


def flow_row_input(row: tuple[Any, ...]) -> dict[str, Any]:
    direction, source, entity, entity_type, target, target_type, units, operator, offset = row
    data = make_flow_input(
        direction=direction,
        source=source,
        source_entity_id=entity,
        source_entity_type=entity_type,
        unit_count=units,
        operator_id=operator,
        timestamp=BASE_TS + offset,
    )
    if target is not None:
        data["target_entity_id"] = target
        data["target_entity_type"] = target_type
    return data


@pytest.fixture
def flows() -> list[Flow]:
    """Four sample flows as bare payloads, across four entities and two operators."""
    return [FlowCodec().build(FlowInput.model_validate(flow_row_input(row))) for row in FLOW_ROWS]


@pytest.fixture
def recorded_flow_log(flow_log: FlowLog) -> FlowLog:
    """FlowLog holding the same four flows as ``flows``."""
    for row in FLOW_ROWS:
        assert flow_log.record(flow_row_input(row)).ok
    return flow_log
