"""Tableside: passive observability ledgers for card-game operations.

Tableside records classified observations (behaviour exposure signals,
advisory risk rules, directional unit flows) into append-only, hash-linked
ledgers and derives read-only statistical views from them for human review.
Nothing in this package executes, blocks, or mutates anything outside its own
ledgers.

Version Management
------------------
``__version__`` is read from the installed package metadata at import time.
The single source of truth is the ``version`` field in ``pyproject.toml``.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__: str = version("tableside")
except PackageNotFoundError:
    __version__ = "0.1.0"
