"""Shared fixtures for log_audit tests."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from log_audit.config import Settings

T0 = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def settings() -> Settings:
    return Settings(
        CONTROL_PLANE_BASE_URL="http://control-plane.test",
        CONTROL_PLANE_ACTOR="operator",
        TRADE_PAGE_SIZE=500,
        TRADE_ROW_CAP=2000,
        SIGNATURE_LIMIT=50,
        SAMPLE_LIMIT=100,
    )
