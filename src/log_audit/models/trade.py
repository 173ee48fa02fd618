"""Trade, TradePage Pydantic models (read-only trade ledger records)."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator

from log_audit.models.log_sample import as_utc


class Trade(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int
    bot_id: int
    source_trade_id: int | None = None
    pair: str = ""
    is_short: bool = False
    enter_tag: str | None = None
    is_open: bool = False
    open_date: datetime | None = None
    close_date: datetime | None = None
    open_rate: float | None = None
    close_rate: float | None = None
    profit_abs: float | None = None
    profit_ratio: float | None = None

    @field_validator("open_date", "close_date")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)

    @property
    def bot_trade_id(self) -> int:
        """Bot-scoped trade id (what the bot itself logs), ledger id as fallback."""
        return self.source_trade_id if self.source_trade_id is not None else self.id

    @property
    def is_trailing(self) -> bool:
        return "trail" in (self.enter_tag or "").lower()

    @property
    def is_closed_trailing(self) -> bool:
        return not self.is_open and self.is_trailing


class TradePage(BaseModel):
    total: int = 0
    items: list[Trade] = []
