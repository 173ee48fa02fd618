"""Report assembly: concurrent fetches, then parse -> resolve -> synthesize -> aggregate."""

from __future__ import annotations

import asyncio
import math
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import structlog

from log_audit.aggregator import build_missed_view, build_trailing_view, dedupe_events, dedupe_rows
from log_audit.errors import FetchError
from log_audit.event_parser import is_trailing_trigger, parse_trigger_events
from log_audit.match_resolver import MatchResolver
from log_audit.models.events import MissedTradeEvent
from log_audit.models.log_sample import LogSample
from log_audit.models.query import AuditQuery, ReportQuery
from log_audit.models.report import (
    BotLabel,
    MissedTradeReport,
    ReportFilters,
    SectionStatus,
    TrailingReport,
)
from log_audit.reason_classifier import classify_sample
from log_audit.row_builder import build_trailing_rows
from log_audit.rpc_hints import RpcHintIndex

if TYPE_CHECKING:
    from log_audit.config import Settings
    from log_audit.control_plane_client import ControlPlaneClient

logger = structlog.get_logger()


def _section(name: str, result, rows: int = 0) -> SectionStatus:
    if isinstance(result, BaseException):
        if isinstance(result, FetchError):
            error = result.message
        else:
            logger.error("report_section_error", section=name, error=str(result), exc_info=result)
            error = f"{result.__class__.__name__}: {result}"
        return SectionStatus(name=name, ok=False, error=error)
    return SectionStatus(name=name, rows=rows)


class ReportService:
    def __init__(self, client: ControlPlaneClient, settings: Settings) -> None:
        self.client = client
        self.settings = settings

    # --- Time scope helpers ---

    def _lookback_hours(self, query: ReportQuery, now: datetime) -> int:
        """Hours back from `now` that cover the whole query window."""
        if query.has_range:
            return max(1, math.ceil((now - query.date_from).total_seconds() / 3600))
        return query.days * 24

    def _in_scope(self, sample: LogSample, query: ReportQuery, now: datetime) -> bool:
        if query.bot_id is not None and sample.bot_id != query.bot_id:
            return False
        if query.has_range:
            return query.date_from <= sample.event_ts < query.date_to
        return sample.event_ts >= now - timedelta(days=query.days)

    # --- Fetches ---

    async def _fetch_trigger_samples(self, query: ReportQuery, now: datetime) -> list[LogSample]:
        """Samples of the anomaly signatures whose text is a trailing trigger."""
        days = max(1, math.ceil(self._lookback_hours(query, now) / 24))
        signatures = await self.client.list_anomalous_signatures(
            days=days, limit=self.settings.SIGNATURE_LIMIT, bot_id=query.bot_id
        )
        signatures = [s for s in signatures if is_trailing_trigger(s.signature)]
        batches = await asyncio.gather(
            *(self.client.list_samples(s.signature_hash, self.settings.SAMPLE_LIMIT) for s in signatures)
        )
        samples = [s for batch in batches for s in batch if self._in_scope(s, query, now)]
        logger.info("signature_samples_fetched", signatures=len(signatures), samples=len(samples))
        return samples

    async def _fetch_missed_samples(self, query: ReportQuery, now: datetime) -> list[LogSample]:
        """Entry-blocking samples from the missed-trades endpoint; a `days` query becomes [now - days, now)."""
        if query.has_range:
            date_from, date_to = query.date_from, query.date_to
        else:
            date_from, date_to = now - timedelta(days=query.days), now
        return await self.client.list_missed_trade_samples(
            date_from.isoformat(),
            date_to.isoformat(),
            limit=self.settings.SAMPLE_LIMIT,
            bot_id=query.bot_id,
        )

    async def _fetch_trades(self, query: ReportQuery):
        return await self.client.fetch_all_trades(
            query.trade_query(limit=self.settings.TRADE_PAGE_SIZE),
            page_size=self.settings.TRADE_PAGE_SIZE,
            row_cap=self.settings.TRADE_ROW_CAP,
        )

    async def _fetch_rpc_messages(self, query: ReportQuery, now: datetime) -> list[LogSample]:
        audit = AuditQuery(
            hours=self._lookback_hours(query, now),
            bot_id=query.bot_id,
            logger=self.settings.RPC_LOGGER_NAME,
            text_query=self.settings.RPC_TEXT_QUERY,
        )
        return await self.client.fetch_audit_messages(
            audit,
            page_size=self.settings.AUDIT_PAGE_SIZE,
            row_cap=self.settings.RPC_HINT_ROW_CAP,
        )

    # --- Reports ---

    async def missed_trade_report(
        self,
        query: ReportQuery,
        filters: ReportFilters | None = None,
        labels: dict[int, BotLabel] | None = None,
    ) -> MissedTradeReport:
        query.check()
        now = datetime.now(timezone.utc)
        labels = labels or {}

        try:
            samples = await self._fetch_missed_samples(query, now)
        except Exception as e:
            samples = e

        events: list[MissedTradeEvent] = []
        if not isinstance(samples, BaseException):
            for sample in samples:
                event = classify_sample(sample)
                if event is not None:
                    events.append(event)
            events = dedupe_events(events)
        section = _section("missed_trades", samples, rows=len(events))

        logger.info("missed_trade_report_built", events=len(events), ok=section.ok)
        return MissedTradeReport(
            generated_at=now,
            events=events,
            labels=labels,
            view=build_missed_view(events, filters, labels),
            sections=[section],
        )

    async def trailing_report(
        self,
        query: ReportQuery,
        filters: ReportFilters | None = None,
        labels: dict[int, BotLabel] | None = None,
    ) -> TrailingReport:
        query.check()
        now = datetime.now(timezone.utc)
        labels = labels or {}

        trades, trigger_samples, rpc_samples = await asyncio.gather(
            self._fetch_trades(query),
            self._fetch_trigger_samples(query, now),
            self._fetch_rpc_messages(query, now),
            return_exceptions=True,
        )
        trades_ok = not isinstance(trades, BaseException)
        triggers_ok = not isinstance(trigger_samples, BaseException)
        hints_ok = not isinstance(rpc_samples, BaseException)

        hints = RpcHintIndex.build(
            rpc_samples if hints_ok else [],
            before=timedelta(seconds=self.settings.RPC_HINT_BEFORE_SECONDS),
            after=timedelta(seconds=self.settings.RPC_HINT_AFTER_SECONDS),
            early_penalty_ms=self.settings.RPC_HINT_EARLY_PENALTY_MS,
        )
        resolver = MatchResolver.from_trades(
            trades if trades_ok else [],
            hints=hints,
            forward=timedelta(seconds=self.settings.FORWARD_MATCH_WINDOW_SECONDS),
            backward=timedelta(seconds=self.settings.BACKWARD_MATCH_WINDOW_SECONDS),
        )

        events = []
        if triggers_ok:
            events = resolver.resolve_all(dedupe_events(parse_trigger_events(trigger_samples)))

        # Rows are built only when both trades and trigger logs were fetched.
        rows = []
        if trades_ok and triggers_ok:
            rows = dedupe_rows(build_trailing_rows(events, resolver.all_trades))

        sections = [
            _section("trades", trades, rows=len(trades) if trades_ok else 0),
            _section("trigger_logs", trigger_samples, rows=len(events)),
            _section("rpc_hints", rpc_samples, rows=len(hints)),
        ]
        for section in sections:
            if not section.ok:
                logger.warning("report_section_failed", section=section.name, error=section.error)

        logger.info("trailing_report_built", events=len(events), rows=len(rows))
        return TrailingReport(
            generated_at=now,
            events=events,
            rows=rows,
            labels=labels,
            view=build_trailing_view(
                rows, events, filters, labels, threshold_pct=self.settings.PROFIT_BUCKET_THRESHOLD_PCT
            ),
            sections=sections,
        )
