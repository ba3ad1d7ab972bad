"""YAML rule files.

A rule file declares the advisory rules a deployment starts with::

    version: "1.0"
    timestamp: 1700000000000       # default registration time for every rule
    rules:
      - name: burst-of-recharges
        description: More than five recharges for one subject
        category: FREQUENCY
        severity: MEDIUM
        threshold: {type: COUNT, max_count: 5}

A rule may carry its own ``timestamp`` to override the file default.

:func:`load_rule_inputs` only parses and validates; registering the rules is
left to :meth:`~tableside.risk.rulebook.RuleBook.register_all`, so a file can
be checked without touching any ledger.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from tableside.risk.types import RuleInput

logger = logging.getLogger(__name__)


def load_rule_inputs(path: Path | str) -> tuple[RuleInput, ...]:
    """Load and validate a YAML rule file.

    Args:
        path: Location of the rule file.

    Returns:
        The validated rules in file order.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError:        On malformed YAML, a missing ``version`` or
                           ``rules`` field, duplicate rule names, or any rule
                           that fails validation.  The message names the
                           offending rule by position.
    """
    rules_path = Path(path)
    if not rules_path.exists():
        raise FileNotFoundError(f"Risk rule file not found: {rules_path}")

    try:
        with rules_path.open(encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise ValueError(f"{rules_path.name}: invalid YAML: {exc}") from exc

    if not isinstance(raw, dict):
        raise ValueError(f"{rules_path.name} must be a YAML mapping at the top level.")

    if not raw.get("version"):
        raise ValueError(f"{rules_path.name}: missing required field 'version'.")

    rules_raw = raw.get("rules")
    if not isinstance(rules_raw, list):
        raise ValueError(f"{rules_path.name}: missing required field 'rules' (must be a list).")

    default_timestamp = raw.get("timestamp")
    inputs = tuple(
        _parse_rule(rule_raw, index, default_timestamp, rules_path.name)
        for index, rule_raw in enumerate(rules_raw)
    )

    names = [rule.name for rule in inputs]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ValueError(f"{rules_path.name}: duplicate rule names: {duplicates}")

    logger.info("rules file: loaded %d rules from %s", len(inputs), rules_path)
    return inputs


def _parse_rule(raw: object, index: int, default_timestamp: object, filename: str) -> RuleInput:
    if not isinstance(raw, dict):
        raise ValueError(f"{filename}: rules[{index}] must be a mapping.")

    data = dict(raw)
    if "timestamp" not in data and default_timestamp is not None:
        data["timestamp"] = default_timestamp

    try:
        return RuleInput.model_validate(data)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        raise ValueError(f"{filename}: rules[{index}] is invalid: {problems}") from exc
