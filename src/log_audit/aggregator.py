"""Deduplication, filtering and summary statistics for report views.

Filtering and summarizing always happen together in build_*_view so a view's
summary describes exactly the rows and trigger events it carries.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from typing import TypeVar

from log_audit.models.events import MissedTradeEvent, TriggerEvent
from log_audit.models.report import (
    BotLabel,
    MissedTradeSummary,
    MissedTradeView,
    ProfitBuckets,
    ReportFilters,
    TrailingSummary,
    TrailingTradeRow,
    TrailingView,
)

DEFAULT_BUCKET_THRESHOLD_PCT = 0.2

E = TypeVar("E", TriggerEvent, MissedTradeEvent)


def dedupe_events(events: Iterable[E]) -> list[E]:
    """Unique on (event_ts, logger, message), first occurrence kept, time-ordered."""
    unique: dict[tuple, E] = {}
    for event in events:
        unique.setdefault(event.dedupe_key, event)
    return sorted(unique.values(), key=lambda e: e.dedupe_key)


def dedupe_rows(rows: Iterable[TrailingTradeRow]) -> list[TrailingTradeRow]:
    """Unique on (bot_id, trade_id); log entries of duplicates are merged."""
    merged: dict[tuple[int, int], TrailingTradeRow] = {}
    for row in rows:
        existing = merged.get(row.key)
        if existing is None:
            merged[row.key] = row
            continue
        entries = dedupe_events([*existing.log_entries, *row.log_entries])
        merged[row.key] = existing.model_copy(update={"log_entries": entries})
    return sorted(
        merged.values(),
        key=lambda r: (r.open_date is None, r.open_date.timestamp() if r.open_date else 0.0, r.bot_id, r.trade_id),
    )


def _mean(values: list[float]) -> float | None:
    return sum(values) / len(values) if values else None


def _label_matches(bot_id: int, needle: str, labels: Mapping[int, BotLabel]) -> bool:
    label = labels.get(bot_id)
    if label is None:
        return False
    needle = needle.lower()
    return needle in label.vps_name.lower() or needle in label.container_name.lower()


def row_matches(row: TrailingTradeRow, filters: ReportFilters, labels: Mapping[int, BotLabel]) -> bool:
    if filters.bot_id is not None and row.bot_id != filters.bot_id:
        return False
    if filters.trade_id is not None and filters.trade_id not in (row.trade_id, row.ledger_trade_id):
        return False
    if filters.pair and filters.pair.strip().lower() not in row.pair.lower():
        return False
    if filters.vps and not _label_matches(row.bot_id, filters.vps, labels):
        return False
    if filters.side is not None and row.side is not filters.side:
        return False
    if filters.match_source is not None and row.match_source is not filters.match_source:
        return False
    return True


def trigger_matches(event: TriggerEvent, filters: ReportFilters, labels: Mapping[int, BotLabel]) -> bool:
    if filters.bot_id is not None and event.bot_id != filters.bot_id:
        return False
    if filters.trade_id is not None and filters.trade_id not in (event.trade_id, event.ledger_trade_id):
        return False
    if filters.pair and filters.pair.strip().lower() not in (event.pair or "").lower():
        return False
    if filters.vps and not _label_matches(event.bot_id, filters.vps, labels):
        return False
    if filters.side is not None and event.side is not filters.side:
        return False
    if filters.match_source is not None and event.match_source is not filters.match_source:
        return False
    return True


def event_matches(event: MissedTradeEvent, filters: ReportFilters, labels: Mapping[int, BotLabel]) -> bool:
    if filters.bot_id is not None and event.bot_id != filters.bot_id:
        return False
    if filters.pair and filters.pair.strip().lower() not in (event.pair or "").lower():
        return False
    if filters.vps and not _label_matches(event.bot_id, filters.vps, labels):
        return False
    if filters.reason_code is not None and event.reason_code is not filters.reason_code:
        return False
    return True


def summarize_trailing(
    rows: list[TrailingTradeRow],
    events: list[TriggerEvent],
    threshold_pct: float = DEFAULT_BUCKET_THRESHOLD_PCT,
) -> TrailingSummary:
    profits = [r.profit_pct for r in rows if r.profit_pct is not None]
    durations = [r.duration_minutes for r in rows if r.duration_minutes is not None]

    buckets = ProfitBuckets(unknown=len(rows) - len(profits))
    for p in profits:
        if p < 0:
            buckets.negative += 1
        elif p <= threshold_pct:
            buckets.low += 1
        else:
            buckets.high += 1

    return TrailingSummary(
        trade_count=len(rows),
        trigger_count=len(events),
        mean_profit_pct=_mean(profits),
        positive_share=(sum(1 for p in profits if p > 0) / len(profits)) if profits else None,
        mean_duration_minutes=_mean(durations),
        buckets=buckets,
        by_match_source=dict(Counter(r.match_source.value for r in rows)),
    )


def summarize_missed(events: list[MissedTradeEvent]) -> MissedTradeSummary:
    return MissedTradeSummary(
        event_count=len(events),
        by_reason=dict(Counter(e.reason_code.value for e in events)),
        by_pair=dict(Counter(e.pair for e in events if e.pair)),
        by_bot=dict(Counter(e.bot_id for e in events)),
    )


def build_trailing_view(
    rows: list[TrailingTradeRow],
    events: list[TriggerEvent],
    filters: ReportFilters | None = None,
    labels: Mapping[int, BotLabel] | None = None,
    threshold_pct: float = DEFAULT_BUCKET_THRESHOLD_PCT,
) -> TrailingView:
    filters = filters or ReportFilters()
    labels = labels or {}
    selected = [r for r in rows if row_matches(r, filters, labels)]
    triggers = [e for e in events if trigger_matches(e, filters, labels)]
    return TrailingView(
        filters=filters,
        rows=selected,
        events=triggers,
        summary=summarize_trailing(selected, triggers, threshold_pct),
    )


def build_missed_view(
    events: list[MissedTradeEvent],
    filters: ReportFilters | None = None,
    labels: Mapping[int, BotLabel] | None = None,
) -> MissedTradeView:
    filters = filters or ReportFilters()
    selected = [e for e in events if event_matches(e, filters, labels or {})]
    return MissedTradeView(filters=filters, events=selected, summary=summarize_missed(selected))
