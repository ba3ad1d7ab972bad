"""Owner of the signal ledger and its correlation-record ledger."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from tableside.core.errors import ErrorCode
from tableside.core.result import Err, Ok, err
from tableside.ledger.chain import Entry, Ledger
from tableside.ledger.hashing import Hasher, rolling_hash
from tableside.signals.analyzer import correlation_metrics, elasticity
from tableside.signals.types import (
    CorrelationCodec,
    CorrelationRecord,
    Signal,
    SignalCodec,
    SignalKind,
)

logger = logging.getLogger(__name__)


class SignalLog:
    """Records behaviour signals and snapshots of their correlation metrics.

    Args:
        hasher: Hash function shared by both ledgers.

    Example::

        log = SignalLog()
        log.record({"kind": "UI_NUDGE", "actor_id": "p-1", ...})
        log.log_correlation(SignalKind.UI_NUDGE, "2024-W01", timestamp=1_700_000_000_000)
    """

    def __init__(
        self,
        hasher: Hasher = rolling_hash,
        *,
        signals: Ledger[Signal] | None = None,
        correlations: Ledger[CorrelationRecord] | None = None,
    ) -> None:
        # Ledger defines __len__, so an empty ledger is falsy: test for None.
        self.signals: Ledger[Signal] = (
            signals if signals is not None else Ledger(SignalCodec(), hasher)
        )
        self.correlations: Ledger[CorrelationRecord] = (
            correlations if correlations is not None else Ledger(CorrelationCodec(), hasher)
        )

    def record(self, raw: BaseModel | Mapping[str, Any]) -> Ok[Entry[Signal]] | Err:
        """Append one signal; see :class:`~tableside.signals.types.SignalInput`."""
        return self.signals.append(raw)

    def record_correlation(
        self, raw: BaseModel | Mapping[str, Any]
    ) -> Ok[Entry[CorrelationRecord]] | Err:
        """Append a pre-computed correlation record."""
        return self.correlations.append(raw)

    def log_correlation(
        self,
        kind: SignalKind,
        period_id: str,
        timestamp: int,
        actor_id: str | None = None,
        context_id: str | None = None,
    ) -> Ok[Entry[CorrelationRecord]] | Err:
        """Compute metrics for ``kind`` and append them as a correlation record.

        The metrics cover the signals of ``period_id``, narrowed to
        ``actor_id`` and ``context_id`` when given.  Fails with
        ``INVALID_INPUT`` when no signal of ``kind`` matches or the record
        itself does not validate (for example a non-positive ``timestamp``).
        """
        scope = [
            entry.payload
            for entry in self.signals.by_period(period_id)
            if (actor_id is None or entry.payload.actor_id == actor_id)
            and (context_id is None or entry.payload.context_id == context_id)
        ]
        observed = sum(1 for s in scope if s.kind == kind)
        if observed == 0:
            logger.warning(
                "correlations: no %s signals in period %s to correlate", kind, period_id
            )
            return err(
                ErrorCode.INVALID_INPUT,
                f"No {SignalKind(kind).value} signals match period {period_id!r}.",
            )

        metrics = correlation_metrics(scope, kind) + (elasticity(scope, kind),)
        return self.correlations.append(
            dict(
                signal_kind=kind,
                actor_id=actor_id,
                context_id=context_id,
                period_id=period_id,
                metrics=tuple(
                    {
                        "metric_type": m.metric_type,
                        "value": m.value,
                        "confidence": m.confidence,
                        "sample_size": m.sample_size,
                    }
                    for m in metrics
                ),
                observation_count=observed,
                calculated_at=timestamp,
            )
        )

    def verify_integrity(self) -> Ok[bool] | Err:
        """Verify both ledgers; the signal ledger is checked first."""
        result = self.signals.verify_integrity()
        if not result.ok:
            return result
        return self.correlations.verify_integrity()
