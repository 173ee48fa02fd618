"""Bot id -> VPS/container label cache, scoped to one report session."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from log_audit.errors import FetchError
from log_audit.models.report import BotLabel, SectionStatus

if TYPE_CHECKING:
    from log_audit.control_plane_client import ControlPlaneClient

logger = structlog.get_logger()


class BotDirectory:
    """Loaded lazily on first use; stays fixed until invalidate()."""

    def __init__(self, client: ControlPlaneClient) -> None:
        self.client = client
        self._labels: dict[int, BotLabel] | None = None

    @property
    def loaded(self) -> bool:
        return self._labels is not None

    async def load(self) -> tuple[dict[int, BotLabel], SectionStatus]:
        if self._labels is not None:
            return self._labels, SectionStatus(name="bot_directory", rows=len(self._labels))
        try:
            labels = await self.client.fetch_bot_labels()
        except FetchError as e:
            # Failures are not cached; the next refresh retries.
            return {}, SectionStatus(name="bot_directory", ok=False, error=e.message)
        self._labels = labels
        logger.info("bot_directory_loaded", bots=len(labels))
        return labels, SectionStatus(name="bot_directory", rows=len(labels))

    def invalidate(self) -> None:
        self._labels = None

    def get(self, bot_id: int) -> BotLabel | None:
        return (self._labels or {}).get(bot_id)
