"""
Command-line interface for Tableside.

Provides read-only operational commands:
- verify: Check the hash chain of a JSONL ledger snapshot
- summary: Print a JSON summary of a signal or flow snapshot
- trace: Print the trace and trend of one actor or context in a signal snapshot
- config: Print where the configuration came from and its key settings
- rules-check: Validate a YAML risk rule file
- guard: Run the advisory vocabulary guard over some text

Usage:
    tableside verify data/snapshots/signals.jsonl --ledger signals
    tableside summary flows.jsonl --ledger flows
    tableside trace signals.jsonl player-17
    tableside config
    tableside rules-check config/risk_rules.yaml
    tableside guard "exposure signal for table 4"

Exit codes:
    0  success
    1  check failed (broken chain, invalid rule file, guard matches)
    2  input could not be read

Snapshot paths that are relative and not found from the working directory are
looked up in ``ledger.snapshot_dir``.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

import tableside.config as tableside_config
from tableside.flow import views as flow_views
from tableside.flow.links import FlowLinkCodec
from tableside.flow.types import FlowCodec
from tableside.guards import TERM_GROUPS, BoundaryGuard
from tableside.ledger.chain import PayloadCodec
from tableside.ledger.hashing import get_hasher, to_plain
from tableside.ledger.jsonl import SnapshotError, load_ledger
from tableside.risk.rulebook import RuleBook
from tableside.risk.rules_file import load_rule_inputs
from tableside.risk.types import RuleCodec
from tableside.signals import views as signal_views
from tableside.signals.types import CorrelationCodec, SignalCodec

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_UNREADABLE = 2

CODECS: dict[str, type[PayloadCodec]] = {
    "signals": SignalCodec,
    "correlations": CorrelationCodec,
    "rules": RuleCodec,
    "flows": FlowCodec,
    "links": FlowLinkCodec,
}


def _dump(data: object) -> None:
    print(json.dumps(to_plain(data), indent=2, sort_keys=True))


def _snapshot_path(path: Path) -> Path:
    """Resolve a snapshot argument, falling back to the configured snapshot directory."""
    if path.is_absolute() or path.exists():
        return path
    return tableside_config.config.ledger.absolute_snapshot_dir / path


def cmd_verify(args: argparse.Namespace) -> int:
    """Load a snapshot and run the chain check over it."""
    hasher = get_hasher(args.hash_algorithm) if args.hash_algorithm else None
    try:
        ledger = load_ledger(_snapshot_path(args.snapshot), CODECS[args.ledger](), hasher)
    except SnapshotError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_UNREADABLE

    result = ledger.verify_integrity()
    if result.ok:
        print(f"OK: {len(ledger)} {args.ledger} entries, chain intact")
        return EXIT_OK

    print(f"FAILED: {result.error}", file=sys.stderr)
    return EXIT_FAILED


def cmd_summary(args: argparse.Namespace) -> int:
    """
    Print a JSON summary of a snapshot.

    Signal snapshots report the overall summary view plus the top actors and
    contexts; flow snapshots report the overall flow view.  The summary also
    states whether the chain verified, without failing on a broken one.
    """
    try:
        ledger = load_ledger(_snapshot_path(args.snapshot), CODECS[args.ledger]())
    except SnapshotError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_UNREADABLE

    entries = ledger.all()
    integrity = ledger.verify_integrity()
    summary: dict[str, object] = {
        "ledger": args.ledger,
        "entries": len(entries),
        "chain_intact": integrity.ok,
    }

    if args.ledger == "signals":
        top_n = args.top if args.top is not None else tableside_config.config.analysis.top_n
        summary["summary"] = signal_views.summary_view(entries)
        summary["top_actors"] = signal_views.top_actors(entries, top_n)
        summary["top_contexts"] = signal_views.top_contexts(entries, top_n)
    else:
        summary["summary"] = flow_views.overall_view(entries)

    _dump(summary)
    return EXIT_OK


def cmd_trace(args: argparse.Namespace) -> int:
    """
    Print the trace of one actor or context in a signal snapshot.

    Actors also get their per-kind profile view, whose trends use
    ``analysis.trend_window_ms`` unless ``--window-ms`` is given.  The trace
    direction uses ``analysis.trace_deadband`` unless ``--deadband`` is given.
    """
    try:
        ledger = load_ledger(_snapshot_path(args.snapshot), SignalCodec())
    except SnapshotError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_UNREADABLE

    analysis = tableside_config.config.analysis
    deadband = args.deadband if args.deadband is not None else analysis.trace_deadband
    window_ms = args.window_ms if args.window_ms is not None else analysis.trend_window_ms

    entries = ledger.all()
    entity_type = "context" if args.context else "actor"
    output: dict[str, object] = {
        "trace": signal_views.trace_view(entries, args.entity_id, entity_type, deadband),
    }
    if entity_type == "actor":
        output["actor"] = signal_views.actor_view(entries, args.entity_id, window_ms)

    _dump(output)
    return EXIT_OK


def cmd_config(args: argparse.Namespace) -> int:
    """Print the configuration source and the settings the commands will use."""
    _dump(tableside_config.get_config_status())
    return EXIT_OK


def cmd_rules_check(args: argparse.Namespace) -> int:
    """Validate a rule file and dry-run its registration into a fresh rule book."""
    path = args.rules_file or tableside_config.config.risk.absolute_rules_file
    if path is None:
        print("Error: no rule file given and risk.rules_file is not configured", file=sys.stderr)
        return EXIT_UNREADABLE

    try:
        inputs = load_rule_inputs(path)
    except FileNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_UNREADABLE
    except ValueError as exc:
        print(f"Invalid rule file: {exc}", file=sys.stderr)
        return EXIT_FAILED

    rulebook = RuleBook(get_hasher(tableside_config.config.ledger.hash_algorithm))
    failures = [r for r in rulebook.register_all(inputs) if not r.ok]
    for failure in failures:
        print(f"Rejected: {failure.error}", file=sys.stderr)
    if failures:
        return EXIT_FAILED

    print(f"OK: {len(inputs)} rules in {path}")
    for rule in rulebook.all_rules():
        print(f"  {rule.rule_id}  {rule.category.value:<13} {rule.severity.value:<6} {rule.name}")
    return EXIT_OK


def cmd_guard(args: argparse.Namespace) -> int:
    """Advisory denylist check; exit 1 when any term matches."""
    try:
        guard = BoundaryGuard.for_groups(*args.group) if args.group else BoundaryGuard()
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_UNREADABLE

    report = guard.check_text(" ".join(args.text))
    if report.passed:
        print("OK: no denylisted terms")
        return EXIT_OK

    print(f"Matched {len(report.matches)} denylisted terms: {', '.join(report.matches)}")
    return EXIT_FAILED


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tableside",
        description="Tableside - passive observability ledgers",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="INI file to load instead of config/tableside.ini",
    )
    parser.add_argument(
        "--log-level",
        help="Override the configured log level (DEBUG, INFO, WARNING, ...)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # verify command
    verify_parser = subparsers.add_parser(
        "verify",
        help="Verify the hash chain of a JSONL snapshot",
        description=(
            "Load a snapshot and recompute every hash link. "
            "Exits 1 if the chain is broken, 2 if the snapshot cannot be read."
        ),
    )
    verify_parser.add_argument("snapshot", type=Path, help="JSONL snapshot file")
    verify_parser.add_argument(
        "--ledger",
        choices=sorted(CODECS),
        default="signals",
        help="Which ledger the snapshot holds (default: signals)",
    )
    verify_parser.add_argument(
        "--hash-algorithm",
        choices=("rolling", "sha256"),
        help="Hash algorithm to verify with (default: inferred from the snapshot)",
    )
    verify_parser.set_defaults(func=cmd_verify)

    # summary command
    summary_parser = subparsers.add_parser(
        "summary",
        help="Print a JSON summary of a signal or flow snapshot",
    )
    summary_parser.add_argument("snapshot", type=Path, help="JSONL snapshot file")
    summary_parser.add_argument(
        "--ledger",
        choices=("signals", "flows"),
        default="signals",
        help="Which ledger the snapshot holds (default: signals)",
    )
    summary_parser.add_argument(
        "--top",
        type=int,
        help="Number of top actors/contexts to list (default: analysis.top_n)",
    )
    summary_parser.set_defaults(func=cmd_summary)

    # trace command
    trace_parser = subparsers.add_parser(
        "trace",
        help="Print the trace and trend of one actor or context in a signal snapshot",
    )
    trace_parser.add_argument("snapshot", type=Path, help="JSONL signal snapshot file")
    trace_parser.add_argument("entity_id", help="Actor id (or context id with --context)")
    trace_parser.add_argument(
        "--context",
        action="store_true",
        help="Treat entity_id as a context id",
    )
    trace_parser.add_argument(
        "--window-ms",
        type=int,
        help="Trend window in ms (default: analysis.trend_window_ms)",
    )
    trace_parser.add_argument(
        "--deadband",
        type=float,
        help="Trace direction deadband (default: analysis.trace_deadband)",
    )
    trace_parser.set_defaults(func=cmd_trace)

    # config command
    config_parser = subparsers.add_parser(
        "config",
        help="Print where the configuration came from and its key settings",
    )
    config_parser.set_defaults(func=cmd_config)

    # rules-check command
    rules_parser = subparsers.add_parser(
        "rules-check",
        help="Validate a YAML risk rule file",
    )
    rules_parser.add_argument(
        "rules_file",
        type=Path,
        nargs="?",
        help="Rule file (default: risk.rules_file from config)",
    )
    rules_parser.set_defaults(func=cmd_rules_check)

    # guard command
    guard_parser = subparsers.add_parser(
        "guard",
        help="Check text against the advisory vocabulary denylist",
    )
    guard_parser.add_argument("text", nargs="+", help="Text to check")
    guard_parser.add_argument(
        "--group",
        action="append",
        choices=sorted(TERM_GROUPS),
        help="Restrict to a term group (repeatable; default: all groups)",
    )
    guard_parser.set_defaults(func=cmd_guard)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.config is not None:
        try:
            tableside_config.reload_config(args.config)
        except ValueError as exc:
            print(f"Error: invalid configuration: {exc}", file=sys.stderr)
            return EXIT_UNREADABLE

    settings = tableside_config.config.logging
    if args.log_level:
        settings = dataclasses.replace(settings, level=args.log_level.upper())
    tableside_config.configure_logging(settings)

    if args.command is None:
        parser.print_help()
        return EXIT_OK

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
