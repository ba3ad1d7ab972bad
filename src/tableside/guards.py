"""Advisory vocabulary guard.

The ledgers in this package observe; they never move value, run actions, or
drive workflows.  :class:`BoundaryGuard` checks free text and identifiers
against term groups that would suggest otherwise (money movement, revenue,
actions, lifecycle state, execution engines, incentive payouts), so tests and
operators can spot wording that drifts past that boundary.

The guard is advisory.  Nothing on the append path calls it, and a failing
report blocks nothing.

Matching is a case-insensitive substring test, so short terms match inside
longer words (``"run"`` matches ``"rerun"``).  That is deliberate for a
review aid and is why the guard is not used as an input filter.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

FINANCIAL_TERMS: tuple[str, ...] = (
    "money",
    "balance",
    "wallet",
    "payment",
    "transaction",
    "crypto",
    "currency",
    "dollar",
    "cent",
    "chip",
    "bank",
    "deposit",
    "withdraw",
    "transfer",
    "settlement",
    "payout",
    "cashout",
)

REVENUE_TERMS: tuple[str, ...] = (
    "revenue",
    "profit",
    "earnings",
    "income",
    "bonus",
    "reward",
    "commission",
    "fee",
    "rake",
    "cut",
    "margin",
    "return",
)

ACTION_TERMS: tuple[str, ...] = (
    "trigger",
    "execute",
    "dispatch",
    "action",
    "effect",
    "cause",
    "invoke",
    "call",
    "run",
    "start",
    "stop",
    "activate",
    "deactivate",
    "enable",
    "disable",
    "process",
    "handle",
)

STATE_TERMS: tuple[str, ...] = (
    "state machine",
    "workflow",
    "lifecycle",
    "status",
    "phase",
    "stage",
    "step",
    "progress",
    "pending",
    "processing",
    "completed",
    "failed",
    "cancelled",
)

ENGINE_TERMS: tuple[str, ...] = (
    "engine",
    "processor",
    "handler",
    "executor",
    "runner",
    "worker",
    "job",
    "queue",
    "pipeline",
    "orchestrator",
)

INCENTIVE_TERMS: tuple[str, ...] = (
    "give bonus",
    "award",
    "grant",
    "distribute",
    "allocate reward",
    "issue",
    "pay out",
    "compensate",
    "reimburse",
)

TERM_GROUPS: dict[str, tuple[str, ...]] = {
    "financial": FINANCIAL_TERMS,
    "revenue": REVENUE_TERMS,
    "action": ACTION_TERMS,
    "state": STATE_TERMS,
    "engine": ENGINE_TERMS,
    "incentive": INCENTIVE_TERMS,
}

DEFAULT_DENYLIST: tuple[str, ...] = tuple(
    dict.fromkeys(term for terms in TERM_GROUPS.values() for term in terms)
)


@dataclass(frozen=True)
class GuardReport:
    """Outcome of a guard check.

    Attributes:
        passed:  ``True`` when no denylisted term was found.
        matches: Denylisted terms found, in denylist order, each listed once.
    """

    passed: bool
    matches: tuple[str, ...]


class BoundaryGuard:
    """Case-insensitive substring denylist.

    Args:
        denylist: Terms to look for.  Defaults to every predefined group.

    Example::

        guard = BoundaryGuard.for_groups("financial", "engine")
        report = guard.check_text("exposure signal for the payout engine")
        # report.passed is False; report.matches == ("payout", "engine")
    """

    def __init__(self, denylist: Iterable[str] = DEFAULT_DENYLIST) -> None:
        terms = [term.strip().lower() for term in denylist]
        self._denylist: tuple[str, ...] = tuple(dict.fromkeys(t for t in terms if t))

    @classmethod
    def for_groups(cls, *groups: str) -> BoundaryGuard:
        """Build a guard from named term groups (see :data:`TERM_GROUPS`).

        Raises:
            ValueError: If a group name is unknown.
        """
        unknown = [g for g in groups if g not in TERM_GROUPS]
        if unknown:
            raise ValueError(f"Unknown term groups {unknown}; expected some of {sorted(TERM_GROUPS)}.")
        return cls(term for group in groups for term in TERM_GROUPS[group])

    @property
    def denylist(self) -> tuple[str, ...]:
        return self._denylist

    def check_text(self, text: str) -> GuardReport:
        lowered = text.lower()
        matches = tuple(term for term in self._denylist if term in lowered)
        if matches:
            logger.debug("guard: %d denylisted terms in text: %s", len(matches), matches)
        return GuardReport(passed=not matches, matches=matches)

    def check_identifiers(self, identifiers: Iterable[str]) -> GuardReport:
        """Check each identifier; matches from all of them are merged."""
        found: dict[str, None] = {}
        for identifier in identifiers:
            lowered = identifier.lower()
            for term in self._denylist:
                if term in lowered:
                    found[term] = None
        matches = tuple(term for term in self._denylist if term in found)
        return GuardReport(passed=not matches, matches=matches)
