"""Per-batch trade lookup keyed by (bot, pair), with nearest-open-date selection."""

from __future__ import annotations

from bisect import bisect_left
from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timedelta

from log_audit.extractor import normalize_pair, simplify_pair
from log_audit.models.trade import Trade

DEFAULT_FORWARD_WINDOW = timedelta(hours=12)
DEFAULT_BACKWARD_WINDOW = timedelta(minutes=10)

_FAR_FUTURE = datetime.max


def _sort_key(trade: Trade) -> tuple:
    # Trades without an open date sort last, ties broken by ledger id.
    if trade.open_date is None:
        return (1, _FAR_FUTURE, trade.id)
    return (0, trade.open_date.replace(tzinfo=None), trade.id)


def pick_closest_trade(
    trades: Sequence[Trade],
    at: datetime,
    forward: timedelta = DEFAULT_FORWARD_WINDOW,
    backward: timedelta = DEFAULT_BACKWARD_WINDOW,
) -> Trade | None:
    """Earliest trade opening at/after `at` within `forward`, else the latest
    trade opening before `at` within `backward`. `trades` must be open-date sorted."""
    dated = [t for t in trades if t.open_date is not None]
    dates = [t.open_date for t in dated]
    idx = bisect_left(dates, at)
    if idx < len(dated) and dates[idx] - at <= forward:
        return dated[idx]
    if idx > 0 and at - dates[idx - 1] <= backward:
        return dated[idx - 1]
    return None


class TradeIndex:
    """Trades stored once by ledger id; two secondary indexes point into it:
    (bot_id, normalized pair) and (bot_id, simplified pair)."""

    def __init__(
        self,
        forward: timedelta = DEFAULT_FORWARD_WINDOW,
        backward: timedelta = DEFAULT_BACKWARD_WINDOW,
    ) -> None:
        self.forward = forward
        self.backward = backward
        self._trades: dict[int, Trade] = {}
        self._by_pair: dict[tuple[int, str], list[Trade]] = {}
        self._by_simple: dict[tuple[int, str], list[Trade]] = {}
        self._by_bot_trade: dict[tuple[int, int], int] = {}

    @classmethod
    def build(
        cls,
        trades: Iterable[Trade],
        predicate: Callable[[Trade], bool] | None = None,
        forward: timedelta = DEFAULT_FORWARD_WINDOW,
        backward: timedelta = DEFAULT_BACKWARD_WINDOW,
    ) -> TradeIndex:
        index = cls(forward=forward, backward=backward)
        exact: dict[tuple[int, str], list[int]] = defaultdict(list)
        simple: dict[tuple[int, str], list[int]] = defaultdict(list)
        for trade in trades:
            if trade.id in index._trades:
                continue
            if predicate is not None and not predicate(trade):
                continue
            index._trades[trade.id] = trade
            index._by_bot_trade.setdefault((trade.bot_id, trade.bot_trade_id), trade.id)
            exact[(trade.bot_id, normalize_pair(trade.pair))].append(trade.id)
            simple[(trade.bot_id, simplify_pair(trade.pair))].append(trade.id)
        index._by_pair = {k: index._bucket(ids) for k, ids in exact.items()}
        index._by_simple = {k: index._bucket(ids) for k, ids in simple.items()}
        return index

    def _bucket(self, ids: list[int]) -> list[Trade]:
        return sorted((self._trades[i] for i in ids), key=_sort_key)

    def __len__(self) -> int:
        return len(self._trades)

    def __iter__(self):
        return iter(self._trades.values())

    def get(self, trade_id: int) -> Trade | None:
        return self._trades.get(trade_id)

    def get_by_bot_trade(self, bot_id: int, bot_trade_id: int) -> Trade | None:
        ledger_id = self._by_bot_trade.get((bot_id, bot_trade_id))
        return self._trades.get(ledger_id) if ledger_id is not None else None

    def candidates(self, bot_id: int, pair: str | None) -> list[Trade]:
        """Exact-pair bucket, or the simplified-pair bucket when that is empty."""
        if not pair:
            return []
        bucket = self._by_pair.get((bot_id, normalize_pair(pair)))
        if not bucket:
            bucket = self._by_simple.get((bot_id, simplify_pair(pair)))
        return bucket or []

    def find(self, bot_id: int, pair: str | None, at: datetime) -> Trade | None:
        return pick_closest_trade(
            self.candidates(bot_id, pair),
            at,
            forward=self.forward,
            backward=self.backward,
        )
