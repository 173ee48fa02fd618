"""Unit tests for event_parser — trailing trigger predicate and field parsing."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from log_audit.event_parser import (
    is_trailing_trigger,
    parse_phase,
    parse_side,
    parse_trigger_event,
    parse_trigger_events,
)
from log_audit.models.events import MatchSource, Side, TriggerPhase
from log_audit.models.log_sample import LogSample

T0 = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)
TRIGGER = "Triggering long for BTC/USDT:USDT. Profit: 0.45%, Offset: 0.20%, duration: 12 min"


def _sample(message: str, bot_id: int = 1) -> LogSample:
    return LogSample(event_ts=T0, bot_id=bot_id, logger="strategy", level="INFO", message=message)


class TestIsTrailingTrigger:
    @pytest.mark.parametrize(
        "message",
        [
            TRIGGER,
            "Start trailing short for ETH/USDT, start: 3100.5",
            "Trailing long stopped for SOL/USDT",
            "Update trailing long for ADA/USDT: current: 0.51, low limit: 0.49",
        ],
    )
    def test_trigger_messages(self, message):
        assert is_trailing_trigger(message) is True

    @pytest.mark.parametrize(
        "message",
        [
            "",
            "Trailing stop loss hit",  # no state verb
            "Entry for BTC/USDT filled",
            "Bot triggering rebalance",  # not at start of line, no 'trailing'
        ],
    )
    def test_other_messages(self, message):
        assert is_trailing_trigger(message) is False


class TestParseSideAndPhase:
    def test_side_long(self):
        assert parse_side(TRIGGER) is Side.LONG

    def test_side_short(self):
        assert parse_side("Start trailing SHORT for X/USDT") is Side.SHORT

    def test_side_unknown(self):
        assert parse_side("Update trailing for X/USDT") is Side.UNKNOWN

    def test_phases(self):
        assert parse_phase(TRIGGER) is TriggerPhase.TRIGGER
        assert parse_phase("Start trailing long") is TriggerPhase.START
        assert parse_phase("Trailing long stopped") is TriggerPhase.STOP
        assert parse_phase("Updated trailing long") is TriggerPhase.UPDATE
        assert parse_phase("trailing long") is TriggerPhase.UNKNOWN


class TestParseTriggerEvent:
    def test_scenario_message(self):
        event = parse_trigger_event(_sample(TRIGGER))
        assert event is not None
        assert event.pair == "BTC/USDT:USDT"
        assert event.side is Side.LONG
        assert event.phase is TriggerPhase.TRIGGER
        assert event.profit_pct == pytest.approx(0.45)
        assert event.offset_pct == pytest.approx(0.20)
        assert event.duration_minutes == pytest.approx(12.0)
        assert event.start_value is None
        assert event.event_ts == T0

    def test_unresolved_by_default(self):
        event = parse_trigger_event(_sample(TRIGGER))
        assert event.match_source is MatchSource.NONE
        assert event.trade_id is None
        assert event.entered_at is None

    def test_limits_and_values(self):
        msg = "Update trailing long for ADA/USDT: start value: 0.50, current: 0.51, low limit: 0.49, up limit: 0.53"
        event = parse_trigger_event(_sample(msg))
        assert event.start_value == pytest.approx(0.50)
        assert event.current_value == pytest.approx(0.51)
        assert event.low_limit == pytest.approx(0.49)
        assert event.up_limit == pytest.approx(0.53)

    def test_unparseable_numbers_are_none(self):
        event = parse_trigger_event(_sample("Triggering long for BTC/USDT. Profit: n/a"))
        assert event.profit_pct is None
        assert event.duration_minutes is None

    def test_non_trigger_returns_none(self):
        assert parse_trigger_event(_sample("Funding rate too low")) is None

    def test_sample_is_not_mutated(self):
        sample = _sample(TRIGGER)
        parse_trigger_event(sample)
        assert sample.message == TRIGGER


class TestParseTriggerEvents:
    def test_filters_non_triggers(self):
        samples = [_sample(TRIGGER), _sample("heartbeat"), _sample("Start trailing long for X/USDT")]
        events = parse_trigger_events(samples)
        assert len(events) == 2
