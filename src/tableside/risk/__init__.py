"""Advisory risk rules: rule ledger, evaluators, flag views and rule files."""

from tableside.risk.rulebook import RuleBook
from tableside.risk.rules_file import load_rule_inputs
from tableside.risk.types import (
    AnalysisResult,
    ConcentrationInput,
    CountThreshold,
    Flag,
    PendingPatternInput,
    PercentageThreshold,
    RateThreshold,
    RiskCategory,
    RiskRule,
    RiskSeverity,
    RuleCodec,
    RuleDefinition,
    RuleInput,
    SkewInput,
    ThresholdType,
    TimestampedEvent,
    WindowThreshold,
)

__all__ = [
    "AnalysisResult",
    "ConcentrationInput",
    "CountThreshold",
    "Flag",
    "PendingPatternInput",
    "PercentageThreshold",
    "RateThreshold",
    "RiskCategory",
    "RiskRule",
    "RiskSeverity",
    "RuleBook",
    "RuleCodec",
    "RuleDefinition",
    "RuleInput",
    "SkewInput",
    "ThresholdType",
    "TimestampedEvent",
    "WindowThreshold",
    "load_rule_inputs",
]
