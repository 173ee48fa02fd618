"""Unit tests for TradeIndex — bucketing, simplified-pair fallback, window boundaries."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from log_audit.models.trade import Trade
from log_audit.trade_index import TradeIndex, pick_closest_trade

T0 = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def _make_trade(
    id: int,
    open_offset: timedelta | None = timedelta(0),
    pair: str = "BTC/USDT:USDT",
    bot_id: int = 1,
    **kwargs,
) -> Trade:
    return Trade(
        id=id,
        bot_id=bot_id,
        source_trade_id=kwargs.pop("source_trade_id", id),
        pair=pair,
        open_date=T0 + open_offset if open_offset is not None else None,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# pick_closest_trade(): window boundaries
# ---------------------------------------------------------------------------


class TestForwardWindow:
    def test_just_inside_forward_window_matches(self):
        trade = _make_trade(1, timedelta(hours=11, minutes=59, seconds=59))
        assert pick_closest_trade([trade], T0) is trade

    def test_just_outside_forward_window_does_not_match(self):
        trade = _make_trade(1, timedelta(hours=12, seconds=1))
        assert pick_closest_trade([trade], T0) is None

    def test_exact_event_time_matches_forward(self):
        trade = _make_trade(1, timedelta(0))
        assert pick_closest_trade([trade], T0) is trade

    def test_earliest_future_trade_wins(self):
        near = _make_trade(1, timedelta(minutes=3))
        far = _make_trade(2, timedelta(hours=2))
        assert pick_closest_trade([near, far], T0) is near


class TestBackwardWindow:
    def test_just_inside_backward_window_matches(self):
        trade = _make_trade(1, -timedelta(minutes=9, seconds=59))
        assert pick_closest_trade([trade], T0) is trade

    def test_just_outside_backward_window_does_not_match(self):
        trade = _make_trade(1, -timedelta(minutes=10, seconds=1))
        assert pick_closest_trade([trade], T0) is None

    def test_most_recent_past_trade_wins(self):
        older = _make_trade(1, -timedelta(minutes=8))
        newer = _make_trade(2, -timedelta(minutes=2))
        assert pick_closest_trade([older, newer], T0) is newer

    def test_forward_preferred_over_closer_past(self):
        past = _make_trade(1, -timedelta(seconds=30))
        future = _make_trade(2, timedelta(hours=5))
        assert pick_closest_trade([past, future], T0) is future

    def test_past_used_when_future_out_of_window(self):
        past = _make_trade(1, -timedelta(minutes=1))
        future = _make_trade(2, timedelta(hours=13))
        assert pick_closest_trade([past, future], T0) is past

    def test_custom_windows(self):
        trade = _make_trade(1, timedelta(hours=2))
        assert pick_closest_trade([trade], T0, forward=timedelta(hours=1)) is None


class TestNullOpenDates:
    def test_trades_without_open_date_never_match(self):
        assert pick_closest_trade([_make_trade(1, None)], T0) is None

    def test_null_dates_sort_last(self):
        index = TradeIndex.build([_make_trade(1, None), _make_trade(2, timedelta(minutes=5))])
        ids = [t.id for t in index.candidates(1, "BTC/USDT:USDT")]
        assert ids == [2, 1]


# ---------------------------------------------------------------------------
# TradeIndex lookups
# ---------------------------------------------------------------------------


class TestTradeIndexLookup:
    def test_exact_pair_bucket(self):
        index = TradeIndex.build([_make_trade(1, timedelta(minutes=3))])
        assert index.find(1, "btc/usdt:usdt", T0).id == 1

    def test_other_bot_not_matched(self):
        index = TradeIndex.build([_make_trade(1, timedelta(minutes=3), bot_id=2)])
        assert index.find(1, "BTC/USDT:USDT", T0) is None

    def test_simplified_pair_fallback(self):
        """Futures-named event, spot-named trade."""
        index = TradeIndex.build([_make_trade(1, timedelta(minutes=3), pair="BTC/USDT")])
        assert index.find(1, "BTC/USDT:USDT", T0).id == 1

    def test_simplified_fallback_only_when_exact_bucket_empty(self):
        exact_far = _make_trade(1, timedelta(hours=20), pair="BTC/USDT:USDT")
        spot_near = _make_trade(2, timedelta(minutes=3), pair="BTC/USDT")
        index = TradeIndex.build([exact_far, spot_near])
        assert index.find(1, "BTC/USDT:USDT", T0) is None

    def test_no_pair_no_match(self):
        index = TradeIndex.build([_make_trade(1, timedelta(minutes=3))])
        assert index.find(1, None, T0) is None

    def test_predicate_subset(self):
        trail = _make_trade(1, timedelta(minutes=3), enter_tag="dca_trail")
        plain = _make_trade(2, timedelta(minutes=1), enter_tag="rsi")
        index = TradeIndex.build([trail, plain], predicate=lambda t: t.is_trailing)
        assert len(index) == 1
        assert index.find(1, "BTC/USDT:USDT", T0).id == 1

    def test_duplicate_ledger_ids_stored_once(self):
        index = TradeIndex.build([_make_trade(1), _make_trade(1)])
        assert len(index) == 1

    def test_get_by_bot_trade(self):
        index = TradeIndex.build([_make_trade(10, source_trade_id=55)])
        assert index.get_by_bot_trade(1, 55).id == 10
        assert index.get_by_bot_trade(2, 55) is None

    def test_unsorted_input_is_sorted(self):
        late = _make_trade(1, timedelta(hours=3))
        early = _make_trade(2, timedelta(minutes=10))
        index = TradeIndex.build([late, early])
        assert index.find(1, "BTC/USDT:USDT", T0).id == 2
