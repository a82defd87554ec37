"""Utility functions for mysqlit."""

from __future__ import annotations

import os
from pathlib import Path

# Settings and logs live here; tests point it at a temporary directory
CONFIG_DIR = Path(os.environ.get("MYSQLIT_CONFIG_DIR", Path.home() / ".mysqlit"))

_ASCII_FOLD = str.maketrans("ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz")


def fold(text: str) -> str:
    """Lower-case ASCII letters only.

    Identifier comparison ignores locale and server collation rules:
    ``"Users"`` and ``"users"`` compare equal, ``"Ä"`` and ``"ä"`` do not.
    """
    return text.translate(_ASCII_FOLD)


def starts_with_folded(text: str, prefix: str) -> bool:
    """Case-insensitive (ASCII) prefix test."""
    return fold(text).startswith(fold(prefix))


def quote_identifier(name: str) -> str:
    """Quote a MySQL identifier with backticks."""
    return "`" + name.replace("`", "``") + "`"
