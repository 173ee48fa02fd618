"""Entry point: build one report and print it as JSON."""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime

import structlog

from log_audit.config import Settings
from log_audit.control_plane_client import ControlPlaneClient
from log_audit.errors import InvalidFilterError
from log_audit.models.events import MatchSource, ReasonCode, Side
from log_audit.models.query import ReportQuery
from log_audit.models.report import ReportFilters
from log_audit.report_service import ReportService
from log_audit.report_session import ReportSession

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="log-audit", description=__doc__)
    parser.add_argument("report", choices=["missed", "trailing"])
    parser.add_argument("--days", type=int, default=7)
    parser.add_argument("--from", dest="date_from", type=datetime.fromisoformat)
    parser.add_argument("--to", dest="date_to", type=datetime.fromisoformat)
    parser.add_argument("--bot-id", type=int)
    parser.add_argument("--trade-id", type=int)
    parser.add_argument("--pair")
    parser.add_argument("--vps", help="substring of VPS or container name")
    parser.add_argument("--side", choices=[s.value for s in Side])
    parser.add_argument("--match-source", choices=[m.value for m in MatchSource])
    parser.add_argument("--reason", choices=[r.value for r in ReasonCode])
    return parser


def parse_args(argv: list[str] | None = None) -> tuple[str, ReportQuery, ReportFilters]:
    args = build_parser().parse_args(argv)
    query = ReportQuery(
        days=args.days,
        date_from=args.date_from,
        date_to=args.date_to,
        bot_id=args.bot_id,
    )
    filters = ReportFilters(
        bot_id=args.bot_id,
        trade_id=args.trade_id,
        pair=args.pair,
        vps=args.vps,
        side=Side(args.side) if args.side else None,
        match_source=MatchSource(args.match_source) if args.match_source else None,
        reason_code=ReasonCode(args.reason) if args.reason else None,
    )
    return args.report, query, filters


async def main(argv: list[str] | None = None) -> int:
    kind, query, filters = parse_args(argv)
    settings = Settings()
    session = ReportSession(ReportService(ControlPlaneClient(settings), settings))

    try:
        if kind == "trailing":
            report = await session.refresh_trailing(query, filters)
        else:
            report = await session.refresh_missed(query, filters)
    except InvalidFilterError as e:
        print(f"invalid filter: {e}", file=sys.stderr)
        return 2

    print(report.model_dump_json(indent=2))
    if not report.ok:
        logger.warning("report_incomplete", failed=[s.name for s in report.sections if not s.ok])
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
