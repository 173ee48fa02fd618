"""Fallback evidence: (bot, pair, time) -> trade id from RPC "entry" broadcasts."""

from __future__ import annotations

import re
from collections import defaultdict
from collections.abc import Iterable
from datetime import timedelta

import structlog

from log_audit.extractor import extract_pair, extract_trade_id, normalize_pair, simplify_pair
from log_audit.models.events import RpcTradeHint, TriggerEvent
from log_audit.models.log_sample import LogSample

logger = structlog.get_logger()

# 'type': entry / type=RPCMessageType.ENTRY / "type": "entry_fill"
_ENTRY_TYPE_RE = re.compile(
    r"\btype['\"]?\s*[:=]\s*['\"<]?(?:rpcmessagetype\.)?(entry|entry_fill)\b",
    re.IGNORECASE,
)

DEFAULT_BEFORE = timedelta(minutes=5)
DEFAULT_AFTER = timedelta(minutes=20)
DEFAULT_EARLY_PENALTY_MS = 4000


def parse_rpc_hint(sample: LogSample) -> RpcTradeHint | None:
    """A hint needs a trade id, a pair and an entry-type payload."""
    text = sample.message
    if not text or _ENTRY_TYPE_RE.search(text) is None:
        return None
    trade_id = extract_trade_id(text)
    pair = extract_pair(text)
    if trade_id is None or pair is None:
        return None
    return RpcTradeHint(event_ts=sample.event_ts, bot_id=sample.bot_id, pair=pair, trade_id=trade_id)


class RpcHintIndex:
    def __init__(
        self,
        before: timedelta = DEFAULT_BEFORE,
        after: timedelta = DEFAULT_AFTER,
        early_penalty_ms: int = DEFAULT_EARLY_PENALTY_MS,
    ) -> None:
        self.before = before
        self.after = after
        self.early_penalty_ms = early_penalty_ms
        self._hints: list[RpcTradeHint] = []
        self._by_pair: dict[tuple[int, str], list[int]] = defaultdict(list)
        self._by_simple: dict[tuple[int, str], list[int]] = defaultdict(list)

    @classmethod
    def build(
        cls,
        samples: Iterable[LogSample],
        before: timedelta = DEFAULT_BEFORE,
        after: timedelta = DEFAULT_AFTER,
        early_penalty_ms: int = DEFAULT_EARLY_PENALTY_MS,
    ) -> RpcHintIndex:
        index = cls(before=before, after=after, early_penalty_ms=early_penalty_ms)
        seen: set[tuple] = set()
        skipped = 0
        for sample in samples:
            hint = parse_rpc_hint(sample)
            if hint is None:
                skipped += 1
                continue
            key = (hint.event_ts, hint.bot_id, hint.trade_id)
            if key in seen:
                continue
            seen.add(key)
            index.add(hint)
        logger.debug("rpc_hint_index_built", hints=len(index), skipped=skipped)
        return index

    def add(self, hint: RpcTradeHint) -> None:
        pos = len(self._hints)
        self._hints.append(hint)
        self._by_pair[(hint.bot_id, normalize_pair(hint.pair))].append(pos)
        self._by_simple[(hint.bot_id, simplify_pair(hint.pair))].append(pos)

    def __len__(self) -> int:
        return len(self._hints)

    def _candidates(self, bot_id: int, pair: str) -> list[RpcTradeHint]:
        positions = set(self._by_pair.get((bot_id, normalize_pair(pair)), ()))
        positions.update(self._by_simple.get((bot_id, simplify_pair(pair)), ()))
        return [self._hints[p] for p in sorted(positions)]

    def score(self, event: TriggerEvent, hint: RpcTradeHint) -> float | None:
        """|dt| in ms plus a penalty for hints logged before the trigger; None if out of window."""
        delta = hint.event_ts - event.event_ts
        if delta < -self.before or delta > self.after:
            return None
        delta_ms = delta.total_seconds() * 1000
        return abs(delta_ms) + (self.early_penalty_ms if delta_ms < 0 else 0)

    def find(self, event: TriggerEvent) -> RpcTradeHint | None:
        if not event.pair:
            return None
        best: tuple | None = None
        for hint in self._candidates(event.bot_id, event.pair):
            score = self.score(event, hint)
            if score is None:
                continue
            rank = (score, hint.event_ts, hint.trade_id)
            if best is None or rank < best[0]:
                best = (rank, hint)
        return best[1] if best else None
