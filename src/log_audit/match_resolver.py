"""Evidence cascade linking a trigger event to the trade it caused.

| Step | Evidence                              | match_source   |
|------|---------------------------------------|----------------|
| 1    | closed + trailing-tagged trade nearby | closed_trail   |
| 2    | any trade nearby                      | trade_fallback |
| 3    | RPC entry broadcast nearby            | rpc_hint       |
| -    | nothing                               | none           |

Each step returns a Match or None; the first Match wins.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime

import structlog
from pydantic import BaseModel

from log_audit.models.events import MatchSource, TriggerEvent
from log_audit.models.trade import Trade
from log_audit.rpc_hints import RpcHintIndex
from log_audit.trade_index import TradeIndex

logger = structlog.get_logger()


class Match(BaseModel):
    source: MatchSource
    trade_id: int
    ledger_trade_id: int | None = None
    entered_at: datetime | None = None


def _trade_match(trade: Trade, source: MatchSource) -> Match:
    return Match(
        source=source,
        trade_id=trade.bot_trade_id,
        ledger_trade_id=trade.id,
        entered_at=trade.open_date,
    )


class MatchResolver:
    def __init__(
        self,
        closed_trail: TradeIndex,
        all_trades: TradeIndex,
        hints: RpcHintIndex | None = None,
    ) -> None:
        self.closed_trail = closed_trail
        self.all_trades = all_trades
        self.hints = hints or RpcHintIndex()
        self.steps: tuple[Callable[[TriggerEvent], Match | None], ...] = (
            self._match_closed_trail,
            self._match_any_trade,
            self._match_rpc_hint,
        )

    @classmethod
    def from_trades(
        cls,
        trades: Iterable[Trade],
        hints: RpcHintIndex | None = None,
        **windows,
    ) -> MatchResolver:
        """Build both trade indexes from one batch."""
        trades = list(trades)
        return cls(
            closed_trail=TradeIndex.build(trades, predicate=lambda t: t.is_closed_trailing, **windows),
            all_trades=TradeIndex.build(trades, **windows),
            hints=hints,
        )

    def _match_closed_trail(self, event: TriggerEvent) -> Match | None:
        trade = self.closed_trail.find(event.bot_id, event.pair, event.event_ts)
        return _trade_match(trade, MatchSource.CLOSED_TRAIL) if trade else None

    def _match_any_trade(self, event: TriggerEvent) -> Match | None:
        trade = self.all_trades.find(event.bot_id, event.pair, event.event_ts)
        return _trade_match(trade, MatchSource.TRADE_FALLBACK) if trade else None

    def _match_rpc_hint(self, event: TriggerEvent) -> Match | None:
        hint = self.hints.find(event)
        if hint is None:
            return None
        trade = self.all_trades.get_by_bot_trade(event.bot_id, hint.trade_id)
        return Match(
            source=MatchSource.RPC_HINT,
            trade_id=hint.trade_id,
            ledger_trade_id=trade.id if trade else None,
            entered_at=trade.open_date if trade and trade.open_date else hint.event_ts,
        )

    def match(self, event: TriggerEvent) -> Match | None:
        for step in self.steps:
            found = step(event)
            if found is not None:
                return found
        return None

    def resolve(self, event: TriggerEvent) -> TriggerEvent:
        """Annotated copy of `event`; the input is never mutated."""
        found = self.match(event)
        if found is None:
            return event.model_copy(
                update={
                    "trade_id": None,
                    "ledger_trade_id": None,
                    "entered_at": None,
                    "match_source": MatchSource.NONE,
                }
            )
        return event.model_copy(
            update={
                "trade_id": found.trade_id,
                "ledger_trade_id": found.ledger_trade_id,
                "entered_at": found.entered_at,
                "match_source": found.source,
            }
        )

    def resolve_all(self, events: Iterable[TriggerEvent]) -> list[TriggerEvent]:
        resolved = [self.resolve(e) for e in events]
        counts: dict[str, int] = {}
        for event in resolved:
            counts[event.match_source.value] = counts.get(event.match_source.value, 0) + 1
        logger.info("trigger_events_resolved", total=len(resolved), **counts)
        return resolved
