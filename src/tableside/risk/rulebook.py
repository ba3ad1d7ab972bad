"""Owner of the risk rule ledger."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel

from tableside.core.errors import ErrorCode
from tableside.core.result import Err, Ok, err
from tableside.ledger.chain import Entry, Ledger
from tableside.ledger.hashing import Hasher, rolling_hash
from tableside.risk.types import RiskRule, RuleCodec, RuleDefinition

logger = logging.getLogger(__name__)


class RuleBook:
    """Registers and retires advisory risk rules.

    Every change is a new ledger entry.  Registration is keyed on the rule
    name, so a name can be registered once; retirement appends an inactive
    copy of the rule with ``supersedes`` set and is keyed on
    ``retire:<rule_id>``, so a rule can be retired once.
    """

    def __init__(
        self,
        hasher: Hasher = rolling_hash,
        *,
        ledger: Ledger[RuleDefinition] | None = None,
    ) -> None:
        self.ledger: Ledger[RuleDefinition] = (
            ledger if ledger is not None else Ledger(RuleCodec(), hasher)
        )

    def register(self, raw: BaseModel | Mapping[str, Any]) -> Ok[Entry[RuleDefinition]] | Err:
        result = self.ledger.append(raw)
        if result.ok:
            logger.info("rules: registered %r as %s", result.value.payload.name, result.value.entry_id)
        return result

    def register_all(
        self, inputs: Iterable[BaseModel | Mapping[str, Any]]
    ) -> tuple[Ok[Entry[RuleDefinition]] | Err, ...]:
        """Register ``inputs`` in order; one result per input."""
        return tuple(self.register(raw) for raw in inputs)

    def retire(self, rule_id: str, timestamp: int) -> Ok[Entry[RuleDefinition]] | Err:
        """Append an entry that supersedes ``rule_id``.

        Unknown rule ids, retirement entries, and non-positive timestamps are
        ``INVALID_INPUT``; a second retirement of the same rule is
        ``DUPLICATE_IDENTITY``.
        """
        if not isinstance(timestamp, int) or isinstance(timestamp, bool) or timestamp <= 0:
            return err(ErrorCode.INVALID_INPUT, f"timestamp must be a positive integer, got {timestamp!r}.")

        target = self.ledger.by_id(rule_id)
        if target is None or target.payload.supersedes is not None:
            logger.warning("rules: cannot retire unknown rule %s", rule_id)
            return err(ErrorCode.INVALID_INPUT, f"No registered rule with id {rule_id!r}.")

        original = target.payload
        result = self.ledger.append_payload(
            RuleDefinition(
                name=original.name,
                description=original.description,
                category=original.category,
                severity=original.severity,
                threshold=original.threshold,
                active=False,
                timestamp=timestamp,
                supersedes=rule_id,
            )
        )
        if result.ok:
            logger.info("rules: retired %s", rule_id)
        return result

    # ── Queries ───────────────────────────────────────────────────────────────

    def get(self, rule_id: str) -> RiskRule | None:
        entry = self.ledger.by_id(rule_id)
        if entry is None or entry.payload.supersedes is not None:
            return None
        return RiskRule.from_entry(entry)

    def get_by_name(self, name: str) -> RiskRule | None:
        for entry in self.ledger.all():
            if entry.payload.supersedes is None and entry.payload.name == name:
                return RiskRule.from_entry(entry)
        return None

    def is_retired(self, rule_id: str) -> bool:
        return any(entry.payload.supersedes == rule_id for entry in self.ledger.all())

    def all_rules(self) -> tuple[RiskRule, ...]:
        """Every registered rule in registration order, retired ones included."""
        return tuple(
            RiskRule.from_entry(entry)
            for entry in self.ledger.all()
            if entry.payload.supersedes is None
        )

    def active_rules(self) -> tuple[RiskRule, ...]:
        """Registered rules that are active and have not been superseded."""
        entries = self.ledger.all()
        retired = {e.payload.supersedes for e in entries if e.payload.supersedes is not None}
        return tuple(
            RiskRule.from_entry(entry)
            for entry in entries
            if entry.payload.supersedes is None
            and entry.payload.active
            and entry.entry_id not in retired
        )

    def verify_integrity(self) -> Ok[bool] | Err:
        return self.ledger.verify_integrity()

    def __len__(self) -> int:
        return len(self.ledger)
