"""
Generic, format-agnostic parsing utilities.

Upstream JSON is loosely typed: amounts arrive as strings, numbers or
nulls, and free text can be arbitrarily long. These helpers coerce without
raising.
"""

from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"\s+")


def parse_int(value: str | int | float | None) -> int | None:
    """Parse a value to an integer, handling common edge cases.

    Accepts strings, ints, floats, or None. Returns None for empty strings or "-".
    """
    if value in (None, "", "-"):
        return None
    try:
        return int(float(value))
    except (ValueError, TypeError):
        return None


def parse_float(value: str | int | float | None) -> float | None:
    """Parse a value to a float; None when missing or unparseable."""
    if value in (None, "", "-"):
        return None
    try:
        return float(str(value).replace(",", "").replace("$", ""))
    except (ValueError, TypeError):
        return None


def parse_amount(value: str | int | float | None) -> float:
    """Parse a monetary amount, defaulting to 0.0 like the upstream totals do."""
    parsed = parse_float(value)
    return parsed if parsed is not None else 0.0


def clean_str(value: object) -> str | None:
    """Strip a string value; None for missing or blank values."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def as_dict(value: object) -> dict:
    """Return ``value`` when it is a JSON object, else an empty dict."""
    return value if isinstance(value, dict) else {}


def truncate(value: str | None, limit: int) -> str | None:
    if value is None:
        return None
    return value[:limit]


def normalize_name(value: str | None) -> str | None:
    """Collapse whitespace and upper-case an organization name for matching."""
    if not value:
        return None
    collapsed = _WHITESPACE_RE.sub(" ", value).strip()
    return collapsed.upper() or None


_NON_ALNUM_RE = re.compile(r"[^A-Z0-9]+")
LEGAL_SUFFIXES = frozenset(
    {
        "CO",
        "COMPANY",
        "CORP",
        "CORPORATION",
        "INC",
        "INCORPORATED",
        "LLC",
        "LLP",
        "LP",
        "LTD",
        "LIMITED",
        "PC",
        "PLLC",
    }
)


def match_name(value: str | None) -> str | None:
    """Key for fuzzy matching: punctuation dropped, trailing legal suffixes removed.

    ``"Lockheed Martin Corp."`` and ``"LOCKHEED MARTIN CORPORATION"`` both
    become ``"LOCKHEED MARTIN"``.
    """
    normalized = normalize_name(value)
    if not normalized:
        return None
    tokens = _NON_ALNUM_RE.sub(" ", normalized).split()
    while len(tokens) > 1 and tokens[-1] in LEGAL_SUFFIXES:
        tokens.pop()
    return " ".join(tokens) or None
