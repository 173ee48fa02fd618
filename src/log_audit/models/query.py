"""Query models for control-plane reads and report requests."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, field_validator

from log_audit.errors import InvalidFilterError
from log_audit.models.log_sample import as_utc

MAX_TRADE_PAGE_SIZE = 1000


class TradeQuery(BaseModel):
    days: int | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    bot_id: int | None = None
    pair: str | None = None
    limit: int = 500
    offset: int = 0

    def to_params(self) -> dict:
        params: dict = {"limit": min(self.limit, MAX_TRADE_PAGE_SIZE), "offset": self.offset}
        if self.date_from is not None and self.date_to is not None:
            params["date_from"] = self.date_from.isoformat()
            params["date_to"] = self.date_to.isoformat()
        elif self.days is not None:
            params["days"] = self.days
        if self.bot_id is not None:
            params["bot_id"] = self.bot_id
        if self.pair:
            params["pair"] = self.pair
        return params


class AuditQuery(BaseModel):
    hours: int = 24
    bot_id: int | None = None
    logger: str | None = None
    level: str | None = None
    text_query: str | None = None
    limit: int = 500
    offset: int = 0

    def to_params(self) -> dict:
        params: dict = {"hours": self.hours, "limit": self.limit, "offset": self.offset}
        if self.bot_id is not None:
            params["bot_id"] = self.bot_id
        if self.logger:
            params["logger"] = self.logger
        if self.level:
            params["level"] = self.level
        if self.text_query:
            params["q"] = self.text_query
        return params


class ReportQuery(BaseModel):
    """Time scope of one report refresh: either the last `days`, or an explicit range."""

    days: int = 7
    date_from: datetime | None = None
    date_to: datetime | None = None
    bot_id: int | None = None

    @field_validator("date_from", "date_to")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)

    @property
    def has_range(self) -> bool:
        return self.date_from is not None and self.date_to is not None

    @property
    def span_hours(self) -> int:
        if self.has_range:
            seconds = (self.date_to - self.date_from).total_seconds()
            return max(1, int(-(-seconds // 3600)))
        return self.days * 24

    @property
    def span_days(self) -> int:
        return max(1, -(-self.span_hours // 24))

    def check(self) -> None:
        """Reject malformed input before anything is queried."""
        if (self.date_from is None) != (self.date_to is None):
            raise InvalidFilterError("date_from and date_to must be given together")
        if self.has_range and self.date_from >= self.date_to:
            raise InvalidFilterError(
                f"date_from {self.date_from.isoformat()} must be before date_to {self.date_to.isoformat()}"
            )
        if not self.has_range and self.days < 1:
            raise InvalidFilterError(f"days must be >= 1, got {self.days}")
        if self.bot_id is not None and self.bot_id < 0:
            raise InvalidFilterError(f"bot_id must be >= 0, got {self.bot_id}")

    def trade_query(self, limit: int, offset: int = 0) -> TradeQuery:
        if self.has_range:
            return TradeQuery(
                date_from=self.date_from,
                date_to=self.date_to,
                bot_id=self.bot_id,
                limit=limit,
                offset=offset,
            )
        return TradeQuery(days=self.days, bot_id=self.bot_id, limit=limit, offset=offset)
