"""
Tableside configuration management.

Settings are layered from several sources with a clear priority order:

    1. Environment variables (highest priority) - for containerized deployments
    2. Config file (config/tableside.ini) - for static deployments
    3. Example config (config/tableside.example.ini) - development fallback
    4. Built-in defaults (lowest priority)

Configuration is loaded once at module import time and cached.  Library code
never reads it: ledgers, analyzers and evaluators take every setting as an
argument.  Only the CLI consults ``config`` to pick defaults.

Usage:
    from tableside.config import config

    print(config.ledger.hash_algorithm)
    print(config.analysis.top_n)

Environment Variable Mapping:
    TABLESIDE_HASH_ALGORITHM  -> ledger.hash_algorithm
    TABLESIDE_SNAPSHOT_DIR    -> ledger.snapshot_dir
    TABLESIDE_TREND_WINDOW_MS -> analysis.trend_window_ms
    TABLESIDE_TOP_N           -> analysis.top_n
    TABLESIDE_TRACE_DEADBAND  -> analysis.trace_deadband
    TABLESIDE_RULES_FILE      -> risk.rules_file
    TABLESIDE_LOG_LEVEL       -> logging.level
    TABLESIDE_LOG_FORMAT      -> logging.format
"""

from __future__ import annotations

import configparser
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from tableside.ledger.hashing import HASHERS
from tableside.signals.analyzer import DEFAULT_TREND_WINDOW_MS
from tableside.signals.views import DEFAULT_TOP_N, DEFAULT_TRACE_DEADBAND

# =============================================================================
# PATH CONFIGURATION
# =============================================================================

# Project root directory (contains src/, config/)
PROJECT_ROOT = Path(__file__).parent.parent.parent

CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_FILE = CONFIG_DIR / "tableside.ini"
CONFIG_EXAMPLE = CONFIG_DIR / "tableside.example.ini"

LOG_FORMATS = {
    "simple": "%(levelname)s %(message)s",
    "detailed": "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
}


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================


def _resolve(path: str) -> Path:
    p = Path(path)
    if p.is_absolute():
        return p
    return PROJECT_ROOT / p


@dataclass
class LedgerSettings:
    """Ledger hashing and snapshot location."""

    hash_algorithm: str = "rolling"
    snapshot_dir: str = "data/snapshots"

    @property
    def absolute_snapshot_dir(self) -> Path:
        return _resolve(self.snapshot_dir)


@dataclass
class AnalysisSettings:
    """Defaults for analyzer and view parameters."""

    trend_window_ms: int = DEFAULT_TREND_WINDOW_MS
    top_n: int = DEFAULT_TOP_N
    trace_deadband: float = DEFAULT_TRACE_DEADBAND


@dataclass
class RiskSettings:
    """Risk rule file location (empty = none)."""

    rules_file: str = ""

    @property
    def absolute_rules_file(self) -> Path | None:
        if not self.rules_file:
            return None
        return _resolve(self.rules_file)


@dataclass
class LoggingSettings:
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["simple", "detailed"] = "detailed"


@dataclass
class TablesideConfig:
    """
    Complete configuration.

    Aggregates all settings sections.  Access via the module-level ``config``
    singleton.
    """

    ledger: LedgerSettings = field(default_factory=LedgerSettings)
    analysis: AnalysisSettings = field(default_factory=AnalysisSettings)
    risk: RiskSettings = field(default_factory=RiskSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


# =============================================================================
# CONFIGURATION LOADING
# =============================================================================


def _set_hash_algorithm(cfg: TablesideConfig, value: str) -> None:
    name = value.strip().lower()
    if name not in HASHERS:
        raise ValueError(f"Unknown hash_algorithm {value!r}; expected one of {sorted(HASHERS)}.")
    cfg.ledger.hash_algorithm = name


def _set_log_format(cfg: TablesideConfig, value: str) -> None:
    val = value.strip().lower()
    if val in LOG_FORMATS:
        cfg.logging.format = val  # type: ignore[assignment]


def _load_from_ini(parser: configparser.ConfigParser, cfg: TablesideConfig) -> None:
    """Load configuration from a parsed INI file into ``cfg``."""
    # Ledger section
    if parser.has_section("ledger"):
        if parser.has_option("ledger", "hash_algorithm"):
            _set_hash_algorithm(cfg, parser.get("ledger", "hash_algorithm"))
        if parser.has_option("ledger", "snapshot_dir"):
            cfg.ledger.snapshot_dir = parser.get("ledger", "snapshot_dir")

    # Analysis section
    if parser.has_section("analysis"):
        if parser.has_option("analysis", "trend_window_ms"):
            cfg.analysis.trend_window_ms = parser.getint("analysis", "trend_window_ms")
        if parser.has_option("analysis", "top_n"):
            cfg.analysis.top_n = parser.getint("analysis", "top_n")
        if parser.has_option("analysis", "trace_deadband"):
            cfg.analysis.trace_deadband = parser.getfloat("analysis", "trace_deadband")

    # Risk section
    if parser.has_section("risk"):
        if parser.has_option("risk", "rules_file"):
            cfg.risk.rules_file = parser.get("risk", "rules_file")

    # Logging section
    if parser.has_section("logging"):
        if parser.has_option("logging", "level"):
            cfg.logging.level = parser.get("logging", "level").upper()
        if parser.has_option("logging", "format"):
            _set_log_format(cfg, parser.get("logging", "format"))


def _apply_env_overrides(cfg: TablesideConfig) -> None:
    """Apply environment variable overrides to configuration."""
    if env_hash := os.getenv("TABLESIDE_HASH_ALGORITHM"):
        _set_hash_algorithm(cfg, env_hash)
    if env_snapshots := os.getenv("TABLESIDE_SNAPSHOT_DIR"):
        cfg.ledger.snapshot_dir = env_snapshots

    if env_window := os.getenv("TABLESIDE_TREND_WINDOW_MS"):
        cfg.analysis.trend_window_ms = int(env_window)
    if env_top := os.getenv("TABLESIDE_TOP_N"):
        cfg.analysis.top_n = int(env_top)
    if env_deadband := os.getenv("TABLESIDE_TRACE_DEADBAND"):
        cfg.analysis.trace_deadband = float(env_deadband)

    if env_rules := os.getenv("TABLESIDE_RULES_FILE"):
        cfg.risk.rules_file = env_rules

    if env_log := os.getenv("TABLESIDE_LOG_LEVEL"):
        cfg.logging.level = env_log.upper()
    if env_format := os.getenv("TABLESIDE_LOG_FORMAT"):
        _set_log_format(cfg, env_format)


def load_config(config_file: Path | None = None) -> TablesideConfig:
    """
    Load configuration from all sources with proper priority.

    Args:
        config_file: Explicit INI file to read instead of the
            ``config/tableside.ini`` / ``config/tableside.example.ini`` lookup.

    Returns:
        TablesideConfig: Fully populated configuration object.

    Raises:
        ValueError: If a setting has an unusable value (unknown hash
            algorithm, non-numeric window).
    """
    cfg = TablesideConfig()

    if config_file is None:
        if CONFIG_FILE.exists():
            config_file = CONFIG_FILE
        elif CONFIG_EXAMPLE.exists():
            config_file = CONFIG_EXAMPLE

    if config_file is not None and Path(config_file).exists():
        parser = configparser.ConfigParser()
        parser.read(config_file)
        _load_from_ini(parser, cfg)

    _apply_env_overrides(cfg)

    return cfg


def reload_config(config_file: Path | None = None) -> TablesideConfig:
    """
    Reload configuration from disk and environment.

    Updates the module-level ``config`` singleton.
    """
    global config
    config = load_config(config_file)
    return config


def configure_logging(settings: LoggingSettings) -> None:
    """Apply level and format to the root logger (CLI use only)."""
    level = logging.getLevelName(settings.level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format=LOG_FORMATS.get(settings.format, LOG_FORMATS["detailed"]),
        force=True,
    )


# =============================================================================
# MODULE-LEVEL SINGLETON
# =============================================================================

config = load_config()


def get_config_status() -> dict:
    """Configuration source information for diagnostics."""
    return {
        "config_file_exists": CONFIG_FILE.exists(),
        "config_file_path": str(CONFIG_FILE),
        "using_example": not CONFIG_FILE.exists() and CONFIG_EXAMPLE.exists(),
        "hash_algorithm": config.ledger.hash_algorithm,
        "snapshot_dir": str(config.ledger.absolute_snapshot_dir),
        "rules_file": str(config.risk.absolute_rules_file or ""),
        "log_level": config.logging.level,
    }
