"""Report rows, filters, summaries and section status models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from log_audit.models.events import (
    MatchSource,
    MissedTradeEvent,
    ReasonCode,
    Side,
    TriggerEvent,
)


class BotLabel(BaseModel):
    bot_id: int
    vps_id: int | None = None
    vps_name: str = ""
    container_name: str = ""


class ReportFilters(BaseModel):
    bot_id: int | None = None
    trade_id: int | None = None
    pair: str | None = None  # case-insensitive substring
    vps: str | None = None  # substring of VPS or container name
    side: Side | None = None
    match_source: MatchSource | None = None
    reason_code: ReasonCode | None = None


class SectionStatus(BaseModel):
    name: str
    ok: bool = True
    error: str | None = None
    rows: int = 0


class TrailingTradeRow(BaseModel):
    bot_id: int
    trade_id: int
    ledger_trade_id: int | None = None
    pair: str = ""
    side: Side = Side.UNKNOWN
    enter_tag: str | None = None
    is_open: bool = False
    open_date: datetime | None = None
    close_date: datetime | None = None
    match_source: MatchSource = MatchSource.NONE

    # Copied from the snapshot event; always None for trade_only rows.
    profit_pct: float | None = None
    offset_pct: float | None = None
    duration_minutes: float | None = None
    start_value: float | None = None
    current_value: float | None = None
    low_limit: float | None = None
    up_limit: float | None = None

    snapshot: TriggerEvent | None = None
    log_entries: list[TriggerEvent] = []

    @property
    def key(self) -> tuple[int, int]:
        return (self.bot_id, self.trade_id)


class ProfitBuckets(BaseModel):
    negative: int = 0  # < 0%
    low: int = 0  # 0% .. threshold
    high: int = 0  # > threshold
    unknown: int = 0


class TrailingSummary(BaseModel):
    trade_count: int = 0
    trigger_count: int = 0
    mean_profit_pct: float | None = None
    positive_share: float | None = None
    mean_duration_minutes: float | None = None
    buckets: ProfitBuckets = ProfitBuckets()
    by_match_source: dict[str, int] = {}


class MissedTradeSummary(BaseModel):
    event_count: int = 0
    by_reason: dict[str, int] = {}
    by_pair: dict[str, int] = {}
    by_bot: dict[int, int] = {}


class TrailingView(BaseModel):
    filters: ReportFilters = ReportFilters()
    rows: list[TrailingTradeRow] = []
    events: list[TriggerEvent] = []
    summary: TrailingSummary = TrailingSummary()


class MissedTradeView(BaseModel):
    filters: ReportFilters = ReportFilters()
    events: list[MissedTradeEvent] = []
    summary: MissedTradeSummary = MissedTradeSummary()


class TrailingReport(BaseModel):
    generated_at: datetime
    events: list[TriggerEvent] = []
    rows: list[TrailingTradeRow] = []
    labels: dict[int, BotLabel] = {}
    view: TrailingView = TrailingView()
    sections: list[SectionStatus] = []

    @property
    def ok(self) -> bool:
        return all(s.ok for s in self.sections)


class MissedTradeReport(BaseModel):
    generated_at: datetime
    events: list[MissedTradeEvent] = []
    labels: dict[int, BotLabel] = {}
    view: MissedTradeView = MissedTradeView()
    sections: list[SectionStatus] = []

    @property
    def ok(self) -> bool:
        return all(s.ok for s in self.sections)
