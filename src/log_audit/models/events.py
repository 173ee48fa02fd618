"""TriggerEvent, MissedTradeEvent, RpcTradeHint models + their enums."""

from __future__ import annotations

import enum
from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator

from log_audit.models.log_sample import as_utc


class Side(enum.Enum):
    LONG = "long"
    SHORT = "short"
    UNKNOWN = "unknown"


class TriggerPhase(enum.Enum):
    START = "start"
    UPDATE = "update"
    STOP = "stop"
    TRIGGER = "trigger"
    UNKNOWN = "unknown"


class MatchSource(enum.Enum):
    NONE = "none"
    CLOSED_TRAIL = "closed_trail"
    TRADE_FALLBACK = "trade_fallback"
    RPC_HINT = "rpc_hint"
    TRADE_ONLY = "trade_only"


# Strongest evidence first.
MATCH_SOURCE_PRIORITY = (
    MatchSource.CLOSED_TRAIL,
    MatchSource.TRADE_FALLBACK,
    MatchSource.RPC_HINT,
    MatchSource.TRADE_ONLY,
    MatchSource.NONE,
)


class ReasonCode(enum.Enum):
    DEEP_DCA_BLOCK = "deep_dca_block"
    LONG_DISABLED = "long_disabled"
    TIME_FILTER = "time_filter"
    ETH_VOLATILITY_BLOCK = "eth_volatility_block"
    FUNDING_RATE_UNFAVORABLE = "funding_rate_unfavorable"
    FUNDING_RATE_TOO_HIGH = "funding_rate_too_high"
    FUNDING_RATE_TOO_LOW = "funding_rate_too_low"
    FUNDING_RATE_GUARD = "funding_rate_guard"
    MOMENTUM = "momentum"
    SLIPPAGE = "slippage"
    TRAILING_ENTRY_CONDITION = "trailing_entry_condition"
    INSUFFICIENT_DATA = "insufficient_data"
    ENTRY_ERROR = "entry_error"
    TRADE_REJECTED = "trade_rejected"
    UNCLASSIFIED = "unclassified"


class TriggerEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_ts: datetime
    bot_id: int
    logger: str = ""
    level: str = ""
    message: str = ""

    pair: str | None = None
    side: Side = Side.UNKNOWN
    phase: TriggerPhase = TriggerPhase.UNKNOWN
    profit_pct: float | None = None
    offset_pct: float | None = None
    duration_minutes: float | None = None
    start_value: float | None = None
    current_value: float | None = None
    low_limit: float | None = None
    up_limit: float | None = None

    trade_id: int | None = None
    ledger_trade_id: int | None = None
    entered_at: datetime | None = None
    match_source: MatchSource = MatchSource.NONE

    @field_validator("event_ts", "entered_at")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)

    @property
    def dedupe_key(self) -> tuple[datetime, str, str]:
        return (self.event_ts, self.logger, self.message)

    @property
    def is_matched(self) -> bool:
        return self.match_source is not MatchSource.NONE


class MissedTradeEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_ts: datetime
    bot_id: int
    logger: str = ""
    level: str = ""
    message: str = ""

    pair: str | None = None
    reason_code: ReasonCode = ReasonCode.UNCLASSIFIED
    reason_label: str = ""
    details: str | None = None

    @field_validator("event_ts")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def dedupe_key(self) -> tuple[datetime, str, str]:
        return (self.event_ts, self.logger, self.message)


class RpcTradeHint(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_ts: datetime
    bot_id: int
    pair: str
    trade_id: int

    @field_validator("event_ts")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)
