"""Missed-trade reason classification: ordered rule table + detail templates."""

from __future__ import annotations

import re

import structlog

from log_audit.extractor import extract_number, extract_pair
from log_audit.models.events import MissedTradeEvent, ReasonCode
from log_audit.models.log_sample import LogSample

logger = structlog.get_logger()

_NUMBER = r"[-+]?\d+(?:\.\d+)?"
_COMPARISON_RE = re.compile(rf"({_NUMBER})\s*%?\s*([<>]=?)\s*({_NUMBER})\s*%?")
_HOUR_RE = re.compile(r"\bhour\s*[:=]?\s*(\d{1,2})\b")

_MANUAL_DENIAL_MARKERS = (
    "user denied",
    "denied by user",
    "user_deny",
    "user-deny",
)


class ReasonRule:
    """One row of the cascade: matches when any substring or any pattern hits."""

    def __init__(
        self,
        code: ReasonCode,
        label: str,
        contains: tuple[str, ...] = (),
        patterns: tuple[str, ...] = (),
    ) -> None:
        self.code = code
        self.label = label
        self.contains = contains
        self.patterns = tuple(re.compile(p) for p in patterns)

    def matches(self, text: str) -> bool:
        if any(s in text for s in self.contains):
            return True
        return any(p.search(text) for p in self.patterns)

    def __repr__(self) -> str:
        return f"ReasonRule({self.code.value})"


# Evaluated top to bottom, first match wins. Specific funding-rate rules must
# stay above the generic funding guard.
RULES: tuple[ReasonRule, ...] = (
    ReasonRule(
        ReasonCode.DEEP_DCA_BLOCK,
        "Deep DCA block",
        contains=("blocking new entry", "blocking new trades:", "deep dca"),
    ),
    ReasonRule(
        ReasonCode.LONG_DISABLED,
        "Long entries disabled",
        contains=("long disabled", "longs disabled", "long entries disabled", "longs are disabled"),
        patterns=(r"\bcan_long\b.*\bfalse\b",),
    ),
    ReasonRule(
        ReasonCode.TIME_FILTER,
        "Time filter",
        contains=("time filter", "time_filter", "outside trading hours", "blocked hour"),
    ),
    ReasonRule(
        ReasonCode.ETH_VOLATILITY_BLOCK,
        "ETH volatility block",
        contains=("eth volatility", "eth_volatility", "eth vol "),
        patterns=(r"\beth\b.*\bvolatil",),
    ),
    ReasonRule(
        ReasonCode.FUNDING_RATE_UNFAVORABLE,
        "Funding rate unfavorable",
        contains=("funding rate unfavorable", "unfavorable funding"),
    ),
    ReasonRule(
        ReasonCode.FUNDING_RATE_TOO_HIGH,
        "Funding rate too high",
        contains=("funding rate too high", "funding too high"),
    ),
    ReasonRule(
        ReasonCode.FUNDING_RATE_TOO_LOW,
        "Funding rate too low",
        contains=("funding rate too low", "funding too low"),
    ),
    ReasonRule(
        ReasonCode.FUNDING_RATE_GUARD,
        "Funding rate guard",
        contains=("funding rate", "funding_rate", "funding guard"),
    ),
    ReasonRule(
        ReasonCode.MOMENTUM,
        "Momentum filter",
        contains=("momentum",),
    ),
    ReasonRule(
        ReasonCode.SLIPPAGE,
        "Slippage",
        contains=("slippage",),
    ),
    ReasonRule(
        ReasonCode.TRAILING_ENTRY_CONDITION,
        "Trailing entry condition",
        contains=("trailing entry", "trailing_entry", "trailing buy", "trailing sell"),
    ),
    ReasonRule(
        ReasonCode.INSUFFICIENT_DATA,
        "Insufficient data",
        contains=("insufficient data", "not enough data", "empty candle", "no data for", "missing data"),
    ),
    ReasonRule(
        ReasonCode.ENTRY_ERROR,
        "Entry error",
        contains=(
            "unable to create trade",
            "unable to enter",
            "failed to enter",
            "error entering",
            "entry error",
            "could not place",
        ),
    ),
    ReasonRule(
        ReasonCode.TRADE_REJECTED,
        "Trade rejected",
        contains=("rejected", "refused", "not entering"),
    ),
)

REASON_LABELS: dict[ReasonCode, str] = {rule.code: rule.label for rule in RULES}
REASON_LABELS[ReasonCode.UNCLASSIFIED] = "Unclassified"


def is_manual_denial(message: str) -> bool:
    """Manual/strategy denials are not missed trades; they are dropped, not classified."""
    text = (message or "").lower()
    return any(marker in text for marker in _MANUAL_DENIAL_MARKERS)


def classify(message: str) -> ReasonCode:
    """Map a message to exactly one reason code. Total: falls back to UNCLASSIFIED."""
    text = (message or "").lower()
    for rule in RULES:
        if rule.matches(text):
            return rule.code
    return ReasonCode.UNCLASSIFIED


def _fmt(value: float) -> str:
    return f"{value:g}"


def _comparison(text: str) -> tuple[float, str, float] | None:
    match = _COMPARISON_RE.search(text)
    if match is None:
        return None
    return float(match.group(1)), match.group(2), float(match.group(3))


def _funding_details(text: str) -> str | None:
    cmp = _comparison(text)
    if cmp is not None:
        value, op, limit = cmp
        direction = "below" if op.startswith("<") else "above"
        return f"Funding rate {_fmt(value)}% {direction} limit {_fmt(limit)}%"
    value = extract_number(text, "funding rate", "funding")
    if value is not None:
        return f"Funding rate {_fmt(value)}%"
    return None


def _slippage_details(text: str) -> str | None:
    cmp = _comparison(text)
    if cmp is not None:
        value, _, limit = cmp
        return f"Slippage {_fmt(value)}% exceeds limit {_fmt(limit)}%"
    value = extract_number(text, "slippage")
    return f"Slippage {_fmt(value)}%" if value is not None else None


def _momentum_details(text: str) -> str | None:
    cmp = _comparison(text)
    if cmp is not None:
        value, op, limit = cmp
        direction = "below" if op.startswith("<") else "above"
        return f"Momentum {_fmt(value)} {direction} threshold {_fmt(limit)}"
    value = extract_number(text, "momentum")
    return f"Momentum {_fmt(value)}" if value is not None else None


def _deep_dca_details(text: str) -> str | None:
    for marker in ("blocking new trades:", "blocking new entry:"):
        idx = text.find(marker)
        if idx >= 0:
            rest = text[idx + len(marker):].strip().rstrip(".")
            if rest:
                return f"Deep DCA: {rest[:120]}"
    return None


def _time_filter_details(text: str) -> str | None:
    match = _HOUR_RE.search(text)
    return f"Blocked at hour {int(match.group(1))}" if match else None


def _eth_volatility_details(text: str) -> str | None:
    value = extract_number(text, "eth volatility", "volatility")
    return f"ETH volatility {_fmt(value)}%" if value is not None else None


_DETAIL_TEMPLATES = {
    ReasonCode.DEEP_DCA_BLOCK: _deep_dca_details,
    ReasonCode.TIME_FILTER: _time_filter_details,
    ReasonCode.ETH_VOLATILITY_BLOCK: _eth_volatility_details,
    ReasonCode.FUNDING_RATE_UNFAVORABLE: _funding_details,
    ReasonCode.FUNDING_RATE_TOO_HIGH: _funding_details,
    ReasonCode.FUNDING_RATE_TOO_LOW: _funding_details,
    ReasonCode.FUNDING_RATE_GUARD: _funding_details,
    ReasonCode.MOMENTUM: _momentum_details,
    ReasonCode.SLIPPAGE: _slippage_details,
}


def extract_details(code: ReasonCode, message: str) -> str | None:
    """Short explanation for codes that have a template; None otherwise."""
    template = _DETAIL_TEMPLATES.get(code)
    if template is None:
        return None
    return template((message or "").lower())


def classify_sample(sample: LogSample) -> MissedTradeEvent | None:
    """Build a MissedTradeEvent, or None when the sample is a manual denial."""
    if is_manual_denial(sample.message):
        logger.debug("missed_trade_denial_skipped", bot_id=sample.bot_id)
        return None
    code = classify(sample.message)
    return MissedTradeEvent(
        event_ts=sample.event_ts,
        bot_id=sample.bot_id,
        logger=sample.logger,
        level=sample.level,
        message=sample.message,
        pair=extract_pair(sample.message),
        reason_code=code,
        reason_label=REASON_LABELS[code],
        details=extract_details(code, sample.message),
    )
