"""LogSample, AnomalySignature Pydantic models (read-only log store records)."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, field_validator


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive timestamps from the log store as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class LogSample(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_ts: datetime
    bot_id: int
    logger: str = ""
    level: str = ""
    message: str = ""

    @field_validator("event_ts")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def dedupe_key(self) -> tuple[datetime, str, str]:
        return (self.event_ts, self.logger, self.message)


class AnomalySignature(BaseModel):
    signature_hash: str
    signature: str = ""
    logger: str = ""
    level: str = ""
    occurrences: int = 0


class SamplePage(BaseModel):
    total: int = 0
    items: list[LogSample] = []
