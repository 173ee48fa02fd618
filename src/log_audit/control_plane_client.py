"""Read-only control-plane API wrapper (log store + trade ledger + VPS directory)."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from urllib.parse import quote

import httpx
import structlog
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from log_audit.config import Settings
from log_audit.errors import FetchError
from log_audit.models.log_sample import AnomalySignature, LogSample, SamplePage
from log_audit.models.query import MAX_TRADE_PAGE_SIZE, AuditQuery, TradeQuery
from log_audit.models.report import BotLabel
from log_audit.models.trade import Trade, TradePage

logger = structlog.get_logger()

API_PREFIX = "/api/v1"
ACTORS = ("admin", "operator", "readonly")


def normalize_actor(value: str) -> str:
    candidate = (value or "").strip().lower()
    return candidate if candidate in ACTORS else "admin"


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status >= 500 or status == 429
    return False


def _list_of(model):
    def parse(data: Any) -> list:
        if not isinstance(data, list):
            raise TypeError(f"expected a JSON list, got {type(data).__name__}")
        return [model.model_validate(item) for item in data]

    return parse


def _list_of_dicts(data: Any) -> list[dict]:
    if not isinstance(data, list):
        raise TypeError(f"expected a JSON list, got {type(data).__name__}")
    return [item for item in data if isinstance(item, dict)]


def _error_message(exc: Exception) -> tuple[str, int | None]:
    """Prefer the API's `detail` string over the raw exception text."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        try:
            detail = exc.response.json().get("detail")
        except (ValueError, AttributeError):
            detail = None
        if isinstance(detail, str) and detail.strip():
            return detail, status
        return f"HTTP {status} from {exc.request.url.path}", status
    return str(exc) or exc.__class__.__name__, None


class ControlPlaneClient:
    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings
        self.actor = normalize_actor(settings.CONTROL_PLANE_ACTOR)
        self.base_url = settings.CONTROL_PLANE_BASE_URL.rstrip("/") + API_PREFIX
        self._transport = transport

    async def _get(self, path: str, params: dict | None = None, parse: Callable[[Any], Any] | None = None):
        """GET returning decoded (and optionally parsed) JSON; failures surface as FetchError."""
        try:
            data = await self._get_with_retry(path, params or {})
            return parse(data) if parse is not None else data
        except (httpx.HTTPError, ValueError, TypeError) as e:
            message, status = _error_message(e)
            logger.warning("control_plane_fetch_failed", path=path, status=status, error=message)
            raise FetchError(message, status_code=status, endpoint=path) from e

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception(_is_transient),
        reraise=True,
    )
    async def _get_with_retry(self, path: str, params: dict):
        """Low-level HTTP GET with retry on transient errors."""
        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers={"X-Actor": self.actor},
            timeout=self.settings.HTTP_TIMEOUT_SECONDS,
            transport=self._transport,
        ) as http:
            response = await http.get(path, params=params)
            response.raise_for_status()
            return response.json()

    # --- Log store ---

    async def list_anomalous_signatures(
        self, days: int, limit: int, bot_id: int | None = None
    ) -> list[AnomalySignature]:
        params: dict = {"days": days, "limit": limit}
        if bot_id is not None:
            params["bot_id"] = bot_id
        return await self._get("/dwh/anomalies", params, _list_of(AnomalySignature))

    async def list_samples(self, signature_hash: str, limit: int) -> list[LogSample]:
        path = f"/dwh/anomalies/{quote(signature_hash, safe='')}/samples"
        return await self._get(path, {"limit": limit}, _list_of(LogSample))

    async def list_audit_messages(self, query: AuditQuery) -> SamplePage:
        return await self._get("/dwh/audit/messages", query.to_params(), SamplePage.model_validate)

    async def list_missed_trade_samples(
        self, date_from: str, date_to: str, limit: int = 500, bot_id: int | None = None
    ) -> list[LogSample]:
        params: dict = {"date_from": date_from, "date_to": date_to, "limit": limit}
        if bot_id is not None:
            params["bot_id"] = bot_id
        return await self._get("/dwh/missed-trades", params, _list_of(LogSample))

    # --- Trade ledger ---

    async def list_trades(self, query: TradeQuery) -> TradePage:
        return await self._get("/dwh/trades", query.to_params(), TradePage.model_validate)

    # --- VPS directory ---

    async def list_vps(self) -> list[dict]:
        return await self._get("/vps", parse=_list_of_dicts)

    async def list_containers(self, vps_id: int) -> list[dict]:
        return await self._get(f"/vps/{vps_id}/containers", parse=_list_of_dicts)

    # --- Paging helpers ---

    async def fetch_all_trades(self, query: TradeQuery, page_size: int, row_cap: int) -> list[Trade]:
        """Page through /dwh/trades; stops at `row_cap` rows whatever the total."""
        page_size = min(page_size, MAX_TRADE_PAGE_SIZE)
        trades: list[Trade] = []
        offset = query.offset
        while len(trades) < row_cap:
            limit = min(page_size, row_cap - len(trades))
            page = await self.list_trades(query.model_copy(update={"limit": limit, "offset": offset}))
            trades.extend(page.items)
            logger.debug("trade_page_fetched", offset=offset, count=len(page.items), total=page.total)
            offset += len(page.items)
            if len(page.items) < limit or offset >= page.total:
                return trades
        logger.warning("trade_row_cap_reached", row_cap=row_cap)
        return trades[:row_cap]

    async def fetch_audit_messages(self, query: AuditQuery, page_size: int, row_cap: int) -> list[LogSample]:
        samples: list[LogSample] = []
        offset = query.offset
        while len(samples) < row_cap:
            limit = min(page_size, row_cap - len(samples))
            page = await self.list_audit_messages(query.model_copy(update={"limit": limit, "offset": offset}))
            samples.extend(page.items)
            offset += len(page.items)
            if len(page.items) < limit or offset >= page.total:
                return samples
        logger.warning("audit_row_cap_reached", row_cap=row_cap)
        return samples[:row_cap]

    async def fetch_bot_labels(self) -> dict[int, BotLabel]:
        """bot id -> VPS/container names; container id doubles as bot id."""
        labels: dict[int, BotLabel] = {}
        for vps in await self.list_vps():
            vps_id = vps.get("id")
            for container in await self.list_containers(vps_id):
                bot_id = container.get("id")
                if bot_id is None:
                    continue
                labels[int(bot_id)] = BotLabel(
                    bot_id=int(bot_id),
                    vps_id=vps_id,
                    vps_name=vps.get("name", ""),
                    container_name=container.get("container_name", ""),
                )
        return labels
