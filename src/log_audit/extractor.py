"""Field extraction from free-text bot log messages.

Every extractor returns None when nothing matches; none of them raise.
"""

from __future__ import annotations

import re

_NUMBER = r"[-+]?\d+(?:\.\d+)?"

_PAIR_TOKEN = r"[A-Za-z0-9]{2,}/[A-Za-z][A-Za-z0-9]+(?::[A-Za-z0-9]+)?"
_PAIR_AFTER_FOR_RE = re.compile(rf"\bfor\s+['\"]?({_PAIR_TOKEN})", re.IGNORECASE)
_PAIR_BARE_RE = re.compile(rf"(?<![A-Za-z0-9/])({_PAIR_TOKEN})(?![A-Za-z0-9/])")

_TRADE_ID_RE = re.compile(r"\btrade_id['\"]?\s*[:=]\s*['\"]?(\d+)", re.IGNORECASE)

_DURATION_RE = re.compile(
    rf"\bduration['\"]?\s*[:=]\s*({_NUMBER})\s*"
    r"(seconds|second|secs|sec|s|minutes|minute|mins|min|m|hours|hour|hrs|hr|h)?\b",
    re.IGNORECASE,
)

_UNIT_MINUTES = {
    "s": 1 / 60,
    "sec": 1 / 60,
    "secs": 1 / 60,
    "second": 1 / 60,
    "seconds": 1 / 60,
    "m": 1.0,
    "min": 1.0,
    "mins": 1.0,
    "minute": 1.0,
    "minutes": 1.0,
    "h": 60.0,
    "hr": 60.0,
    "hrs": 60.0,
    "hour": 60.0,
    "hours": 60.0,
}

_label_cache: dict[str, re.Pattern[str]] = {}


def _label_pattern(label: str) -> re.Pattern[str]:
    pattern = _label_cache.get(label)
    if pattern is None:
        # "low limit" also matches "low_limit" and "LowLimit"
        words = [re.escape(w) for w in label.split()]
        body = r"[\s_]*".join(words)
        pattern = re.compile(
            rf"(?<![A-Za-z0-9_]){body}['\"]?\s*[:=]\s*({_NUMBER})\s*%?",
            re.IGNORECASE,
        )
        _label_cache[label] = pattern
    return pattern


def extract_pair(text: str) -> str | None:
    """Pair after "for <PAIR>", else the first bare BASE/QUOTE[:SETTLE] token."""
    if not text:
        return None
    match = _PAIR_AFTER_FOR_RE.search(text)
    if match is None:
        match = _PAIR_BARE_RE.search(text)
    return match.group(1) if match else None


def extract_number(text: str, *labels: str) -> float | None:
    """Value of the first label found as `Label[:=] number[%]` (case-insensitive)."""
    if not text:
        return None
    for label in labels:
        match = _label_pattern(label).search(text)
        if match is None:
            continue
        try:
            return float(match.group(1))
        except ValueError:
            return None
    return None


def extract_duration_minutes(text: str) -> float | None:
    """`duration: N [unit]` converted to minutes; a missing unit means minutes."""
    if not text:
        return None
    match = _DURATION_RE.search(text)
    if match is None:
        return None
    value = float(match.group(1))
    unit = (match.group(2) or "min").lower()
    return value * _UNIT_MINUTES.get(unit, 1.0)


def extract_trade_id(text: str) -> int | None:
    if not text:
        return None
    match = _TRADE_ID_RE.search(text)
    return int(match.group(1)) if match else None


def normalize_pair(pair: str | None) -> str:
    return (pair or "").strip().lower()


def simplify_pair(pair: str | None) -> str:
    """Normalized pair without its `:SETTLE` suffix (futures vs spot naming)."""
    return normalize_pair(pair).split(":", 1)[0]
