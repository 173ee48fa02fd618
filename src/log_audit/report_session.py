"""One interactive report session: cached bot labels, latest reports, stale-result guard."""

from __future__ import annotations

import itertools
from typing import TYPE_CHECKING

import structlog

from log_audit.aggregator import build_missed_view, build_trailing_view
from log_audit.bot_directory import BotDirectory
from log_audit.models.query import ReportQuery
from log_audit.models.report import (
    MissedTradeReport,
    MissedTradeView,
    ReportFilters,
    TrailingReport,
    TrailingView,
)

if TYPE_CHECKING:
    from log_audit.report_service import ReportService

logger = structlog.get_logger()

TRAILING = "trailing"
MISSED = "missed"


class ReportSession:
    """Each refresh takes a new token; a result whose token is no longer the
    latest for its report kind is dropped instead of applied."""

    def __init__(self, service: ReportService, directory: BotDirectory | None = None) -> None:
        self.service = service
        self.directory = directory or BotDirectory(service.client)
        self._tokens = itertools.count(1)
        self._latest: dict[str, int] = {}
        self.trailing: TrailingReport | None = None
        self.missed: MissedTradeReport | None = None

    def _issue(self, kind: str) -> int:
        token = next(self._tokens)
        self._latest[kind] = token
        return token

    def _is_current(self, kind: str, token: int) -> bool:
        if self._latest.get(kind) == token:
            return True
        logger.info("stale_report_dropped", kind=kind, token=token, latest=self._latest.get(kind))
        return False

    async def refresh_trailing(
        self, query: ReportQuery, filters: ReportFilters | None = None
    ) -> TrailingReport | None:
        token = self._issue(TRAILING)
        labels, directory_status = await self.directory.load()
        report = await self.service.trailing_report(query, filters, labels)
        if not self._is_current(TRAILING, token):
            return None
        report = report.model_copy(update={"sections": [*report.sections, directory_status]})
        self.trailing = report
        return report

    async def refresh_missed(
        self, query: ReportQuery, filters: ReportFilters | None = None
    ) -> MissedTradeReport | None:
        token = self._issue(MISSED)
        labels, directory_status = await self.directory.load()
        report = await self.service.missed_trade_report(query, filters, labels)
        if not self._is_current(MISSED, token):
            return None
        report = report.model_copy(update={"sections": [*report.sections, directory_status]})
        self.missed = report
        return report

    def apply_trailing_filters(self, filters: ReportFilters) -> TrailingView | None:
        """Re-filter the current trailing report; rows, trigger events and summary are rebuilt together."""
        if self.trailing is None:
            return None
        view = build_trailing_view(
            self.trailing.rows,
            self.trailing.events,
            filters,
            self.trailing.labels,
            threshold_pct=self.service.settings.PROFIT_BUCKET_THRESHOLD_PCT,
        )
        self.trailing = self.trailing.model_copy(update={"view": view})
        return view

    def apply_missed_filters(self, filters: ReportFilters) -> MissedTradeView | None:
        if self.missed is None:
            return None
        view = build_missed_view(self.missed.events, filters, self.missed.labels)
        self.missed = self.missed.model_copy(update={"view": view})
        return view

    def invalidate(self) -> None:
        """Drop cached bot labels; the next refresh reloads them."""
        self.directory.invalidate()
