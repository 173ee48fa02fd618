"""Unit tests for reason_classifier — rule order, totality, details, denials."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from log_audit.models.events import ReasonCode
from log_audit.models.log_sample import LogSample
from log_audit.reason_classifier import (
    REASON_LABELS,
    RULES,
    classify,
    classify_sample,
    extract_details,
    is_manual_denial,
)


def _sample(message: str) -> LogSample:
    return LogSample(
        event_ts=datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc),
        bot_id=3,
        logger="freqtrade.strategy",
        level="INFO",
        message=message,
    )


# ---------------------------------------------------------------------------
# classify(): one example per rule
# ---------------------------------------------------------------------------


class TestClassifyRules:
    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            ("Blocking new entry: 5 open DCA positions", ReasonCode.DEEP_DCA_BLOCK),
            ("Blocking new trades: BTC/USDT at DCA level 4", ReasonCode.DEEP_DCA_BLOCK),
            ("deep DCA active on ETH/USDT", ReasonCode.DEEP_DCA_BLOCK),
            ("Long disabled for SOL/USDT by config", ReasonCode.LONG_DISABLED),
            ("Time filter active, hour 3 blocked", ReasonCode.TIME_FILTER),
            ("ETH volatility too high: 4.2%", ReasonCode.ETH_VOLATILITY_BLOCK),
            ("Funding rate unfavorable for short", ReasonCode.FUNDING_RATE_UNFAVORABLE),
            ("Funding rate too high: 0.09% > 0.05%", ReasonCode.FUNDING_RATE_TOO_HIGH),
            ("funding rate too low: 0.01% < 0.05%", ReasonCode.FUNDING_RATE_TOO_LOW),
            ("Funding rate check failed for XRP/USDT", ReasonCode.FUNDING_RATE_GUARD),
            ("Momentum -0.4 < 0.1, skipping", ReasonCode.MOMENTUM),
            ("Slippage 0.8% > 0.5%", ReasonCode.SLIPPAGE),
            ("Trailing entry condition not met", ReasonCode.TRAILING_ENTRY_CONDITION),
            ("Insufficient data for ADA/USDT", ReasonCode.INSUFFICIENT_DATA),
            ("Unable to create trade for BTC/USDT: not enough balance", ReasonCode.ENTRY_ERROR),
            ("Order rejected by exchange", ReasonCode.TRADE_REJECTED),
        ],
    )
    def test_rule(self, message, expected):
        assert classify(message) is expected


class TestClassifyTotality:
    def test_empty_string(self):
        assert classify("") is ReasonCode.UNCLASSIFIED

    def test_none(self):
        assert classify(None) is ReasonCode.UNCLASSIFIED

    def test_unmatched_text(self):
        assert classify("Bot heartbeat ok") is ReasonCode.UNCLASSIFIED

    def test_every_code_has_a_label(self):
        for code in ReasonCode:
            assert REASON_LABELS[code]

    def test_deterministic(self):
        msg = "funding rate too low: 0.01% < 0.05%"
        assert {classify(msg) for _ in range(20)} == {ReasonCode.FUNDING_RATE_TOO_LOW}


class TestClassifyPriority:
    def test_specific_funding_beats_generic(self):
        """Also contains 'funding rate', so the generic guard would match too."""
        assert classify("funding rate too low: 0.01% < 0.05%") is ReasonCode.FUNDING_RATE_TOO_LOW

    def test_too_high_beats_generic(self):
        assert classify("FUNDING RATE TOO HIGH") is ReasonCode.FUNDING_RATE_TOO_HIGH

    def test_deep_dca_beats_rejected(self):
        assert classify("Blocking new entry, trade rejected") is ReasonCode.DEEP_DCA_BLOCK

    def test_entry_error_beats_rejected(self):
        assert classify("Unable to create trade: order rejected") is ReasonCode.ENTRY_ERROR

    def test_generic_funding_rule_is_after_specific_ones(self):
        order = [rule.code for rule in RULES]
        generic = order.index(ReasonCode.FUNDING_RATE_GUARD)
        for code in (
            ReasonCode.FUNDING_RATE_UNFAVORABLE,
            ReasonCode.FUNDING_RATE_TOO_HIGH,
            ReasonCode.FUNDING_RATE_TOO_LOW,
        ):
            assert order.index(code) < generic


# ---------------------------------------------------------------------------
# extract_details()
# ---------------------------------------------------------------------------


class TestExtractDetails:
    def test_funding_too_low(self):
        msg = "funding rate too low: 0.01% < 0.05%"
        assert extract_details(ReasonCode.FUNDING_RATE_TOO_LOW, msg) == "Funding rate 0.01% below limit 0.05%"

    def test_funding_too_high(self):
        msg = "Funding rate too high: 0.09% > 0.05%"
        assert extract_details(ReasonCode.FUNDING_RATE_TOO_HIGH, msg) == "Funding rate 0.09% above limit 0.05%"

    def test_funding_guard_labeled_value(self):
        msg = "Funding guard: funding rate: 0.03%"
        assert extract_details(ReasonCode.FUNDING_RATE_GUARD, msg) == "Funding rate 0.03%"

    def test_slippage(self):
        assert extract_details(ReasonCode.SLIPPAGE, "Slippage 0.8% > 0.5%") == "Slippage 0.8% exceeds limit 0.5%"

    def test_momentum(self):
        assert extract_details(ReasonCode.MOMENTUM, "Momentum -0.4 < 0.1") == "Momentum -0.4 below threshold 0.1"

    def test_deep_dca(self):
        msg = "Blocking new trades: 4 positions in deep DCA."
        assert extract_details(ReasonCode.DEEP_DCA_BLOCK, msg) == "Deep DCA: 4 positions in deep dca"

    def test_time_filter_hour(self):
        assert extract_details(ReasonCode.TIME_FILTER, "time filter: hour 3 blocked") == "Blocked at hour 3"

    def test_template_without_values_is_none(self):
        assert extract_details(ReasonCode.SLIPPAGE, "slippage guard") is None

    def test_code_without_template_is_none(self):
        assert extract_details(ReasonCode.LONG_DISABLED, "long disabled") is None

    def test_unclassified_is_none(self):
        assert extract_details(ReasonCode.UNCLASSIFIED, "anything") is None


# ---------------------------------------------------------------------------
# Manual denials + classify_sample()
# ---------------------------------------------------------------------------


class TestManualDenial:
    @pytest.mark.parametrize(
        "message",
        ["User denied entry for BTC/USDT.", "entry denied by user", "strategy/user-deny hit"],
    )
    def test_denial_detected(self, message):
        assert is_manual_denial(message) is True

    def test_regular_message_not_denial(self):
        assert is_manual_denial("Funding rate too low") is False

    def test_denial_excluded_from_stream(self):
        assert classify_sample(_sample("User denied entry for BTC/USDT.")) is None


class TestClassifySample:
    def test_builds_event(self):
        event = classify_sample(_sample("funding rate too low for BTC/USDT:USDT: 0.01% < 0.05%"))
        assert event is not None
        assert event.reason_code is ReasonCode.FUNDING_RATE_TOO_LOW
        assert event.reason_label == "Funding rate too low"
        assert event.pair == "BTC/USDT:USDT"
        assert event.details == "Funding rate 0.01% below limit 0.05%"
        assert event.bot_id == 3

    def test_unclassified_event_kept(self):
        event = classify_sample(_sample("something odd happened"))
        assert event.reason_code is ReasonCode.UNCLASSIFIED
        assert event.details is None
        assert event.pair is None
