"""TrailingTradeRow assembly: matched-event rows plus trade-only placeholder rows."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable

import structlog

from log_audit.models.events import MATCH_SOURCE_PRIORITY, MatchSource, Side, TriggerEvent
from log_audit.models.report import TrailingTradeRow
from log_audit.models.trade import Trade
from log_audit.trade_index import TradeIndex

logger = structlog.get_logger()


def _event_order(event: TriggerEvent) -> tuple:
    return (event.event_ts, event.logger, event.message)


def best_match_source(sources: Iterable[MatchSource]) -> MatchSource:
    present = set(sources)
    for source in MATCH_SOURCE_PRIORITY:
        if source in present:
            return source
    return MatchSource.NONE


def pick_snapshot(entries: list[TriggerEvent], opened_at=None) -> TriggerEvent | None:
    """Latest entry at/before the trade opened; else the earliest entry."""
    if not entries:
        return None
    if opened_at is not None:
        before = [e for e in entries if e.event_ts <= opened_at]
        if before:
            return before[-1]
    return entries[0]


def _trade_side(trade: Trade) -> Side:
    return Side.SHORT if trade.is_short else Side.LONG


def build_matched_rows(events: Iterable[TriggerEvent], trades: TradeIndex) -> list[TrailingTradeRow]:
    """One row per closed trailing-tagged trade that at least one resolved event points at.

    Events resolved to an open or untagged trade, or to a hinted trade id that
    is not in the batch, stay in the event list but produce no row.
    """
    groups: dict[tuple[int, int], list[TriggerEvent]] = defaultdict(list)
    for event in events:
        if event.is_matched and event.trade_id is not None:
            groups[(event.bot_id, event.trade_id)].append(event)

    rows = []
    skipped = 0
    for (bot_id, trade_id), entries in groups.items():
        trade = None
        ledger_ids = [e.ledger_trade_id for e in entries if e.ledger_trade_id is not None]
        if ledger_ids:
            trade = trades.get(ledger_ids[0])
        if trade is None:
            trade = trades.get_by_bot_trade(bot_id, trade_id)
        if trade is None or not trade.is_closed_trailing:
            skipped += 1
            continue

        entries.sort(key=_event_order)
        snapshot = pick_snapshot(entries, trade.open_date)
        rows.append(
            TrailingTradeRow(
                bot_id=bot_id,
                trade_id=trade_id,
                ledger_trade_id=trade.id,
                pair=trade.pair,
                side=_trade_side(trade),
                enter_tag=trade.enter_tag,
                is_open=trade.is_open,
                open_date=trade.open_date,
                close_date=trade.close_date,
                match_source=best_match_source(e.match_source for e in entries),
                profit_pct=snapshot.profit_pct,
                offset_pct=snapshot.offset_pct,
                duration_minutes=snapshot.duration_minutes,
                start_value=snapshot.start_value,
                current_value=snapshot.current_value,
                low_limit=snapshot.low_limit,
                up_limit=snapshot.up_limit,
                snapshot=snapshot,
                log_entries=entries,
            )
        )
    if skipped:
        logger.debug("matched_trades_without_row", skipped=skipped)
    return rows


def build_trade_only_rows(
    trades: Iterable[Trade],
    matched: set[tuple[int, int]],
) -> list[TrailingTradeRow]:
    """Placeholder rows for closed trailing trades with no log evidence.

    Trailing metrics stay None: trade P&L and the trailing-log profit are
    different quantities and are never substituted for one another.
    """
    rows = []
    seen: set[tuple[int, int]] = set()
    for trade in trades:
        if not trade.is_closed_trailing:
            continue
        key = (trade.bot_id, trade.bot_trade_id)
        if key in matched or key in seen:
            continue
        seen.add(key)
        rows.append(
            TrailingTradeRow(
                bot_id=trade.bot_id,
                trade_id=trade.bot_trade_id,
                ledger_trade_id=trade.id,
                pair=trade.pair,
                side=_trade_side(trade),
                enter_tag=trade.enter_tag,
                is_open=trade.is_open,
                open_date=trade.open_date,
                close_date=trade.close_date,
                match_source=MatchSource.TRADE_ONLY,
            )
        )
    return rows


def build_trailing_rows(events: list[TriggerEvent], trades: TradeIndex) -> list[TrailingTradeRow]:
    matched_rows = build_matched_rows(events, trades)
    matched = {row.key for row in matched_rows}
    trade_only = build_trade_only_rows(trades, matched)
    logger.info("trailing_rows_built", matched=len(matched_rows), trade_only=len(trade_only))
    return matched_rows + trade_only
