"""LogSample -> TriggerEvent parsing for trailing-entry log lines."""

from __future__ import annotations

import re
from collections.abc import Iterable

from log_audit.extractor import (
    extract_duration_minutes,
    extract_number,
    extract_pair,
)
from log_audit.models.events import Side, TriggerEvent, TriggerPhase
from log_audit.models.log_sample import LogSample

_TRIGGERING_RE = re.compile(r"^\s*triggering\b", re.IGNORECASE)
_TRAILING_VERB_RE = re.compile(
    r"\b(start(?:ing|ed)?|stop(?:ping|ped)?|updat(?:e|ed|ing)|trigger(?:ing|ed)?)\b",
    re.IGNORECASE,
)
_STOPLOSS_RE = re.compile(r"trailing[\s_]*stop[\s_]*loss", re.IGNORECASE)
_SIDE_RE = re.compile(r"\b(long|short)\b", re.IGNORECASE)

_PHASES = (
    (re.compile(r"\btrigger(?:ing|ed)?\b", re.IGNORECASE), TriggerPhase.TRIGGER),
    (re.compile(r"\bstart(?:ing|ed)?\b", re.IGNORECASE), TriggerPhase.START),
    (re.compile(r"\bstop(?:ping|ped)?\b", re.IGNORECASE), TriggerPhase.STOP),
    (re.compile(r"\bupdat(?:e|ed|ing)\b", re.IGNORECASE), TriggerPhase.UPDATE),
)


def is_trailing_trigger(message: str) -> bool:
    """True for trailing-entry state transitions (start/stop/update/triggering)."""
    if not message:
        return False
    if _TRIGGERING_RE.search(message):
        return True
    if "trailing" not in message.lower() or _STOPLOSS_RE.search(message):
        return False
    return _TRAILING_VERB_RE.search(message) is not None


def parse_side(message: str) -> Side:
    match = _SIDE_RE.search(message or "")
    if match is None:
        return Side.UNKNOWN
    return Side(match.group(1).lower())


def parse_phase(message: str) -> TriggerPhase:
    for pattern, phase in _PHASES:
        if pattern.search(message or ""):
            return phase
    return TriggerPhase.UNKNOWN


def parse_trigger_event(sample: LogSample) -> TriggerEvent | None:
    """Parse one sample; None when it is not a trailing trigger message."""
    text = sample.message
    if not is_trailing_trigger(text):
        return None
    return TriggerEvent(
        event_ts=sample.event_ts,
        bot_id=sample.bot_id,
        logger=sample.logger,
        level=sample.level,
        message=text,
        pair=extract_pair(text),
        side=parse_side(text),
        phase=parse_phase(text),
        profit_pct=extract_number(text, "profit"),
        offset_pct=extract_number(text, "offset"),
        duration_minutes=extract_duration_minutes(text),
        start_value=extract_number(text, "start value", "start"),
        current_value=extract_number(text, "current value", "current"),
        low_limit=extract_number(text, "low limit", "lower limit"),
        up_limit=extract_number(text, "up limit", "upper limit"),
    )


def parse_trigger_events(samples: Iterable[LogSample]) -> list[TriggerEvent]:
    events = []
    for sample in samples:
        event = parse_trigger_event(sample)
        if event is not None:
            events.append(event)
    return events
