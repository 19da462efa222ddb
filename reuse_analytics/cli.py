"""
Command Line Interface

Usage:
    reuse-analytics init-db
    reuse-analytics sync [--force-full] [--no-refresh]
    reuse-analytics import-csv PATH
    reuse-analytics snapshot [--store ID ...] [--from DATE] [--to DATE] [--summary]
"""

import argparse
import asyncio
import json
import sys
from datetime import date
from typing import Awaitable, Callable, List, Optional

import structlog

from reuse_analytics.analytics.aggregation import to_summarizer_payload
from reuse_analytics.config import get_settings
from reuse_analytics.config.logging import configure_logging
from reuse_analytics.database.connection import close_database, get_session_factory, init_database
from reuse_analytics.database.repository import OrderFilters
from reuse_analytics.exceptions import ConfigurationError, SyncAbortedError
from reuse_analytics.ingestion.csv_importer import CsvOrderImporter, ImportStatus
from reuse_analytics.ingestion.sync_state import SyncOptions
from reuse_analytics.serving.redis_client import close_redis, init_redis
from reuse_analytics.serving.services import Services, build_services

logger = structlog.get_logger(__name__)


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def _with_services(action: Callable[[Services], Awaitable[int]], create_tables: bool = False) -> int:
    settings = get_settings()
    await init_database(create_tables=create_tables)
    redis = await init_redis() if settings.sync.lock_backend == "redis" else None
    try:
        return await action(build_services(get_session_factory(), redis=redis))
    finally:
        await close_database()
        if redis is not None:
            await close_redis()


async def _sync(args: argparse.Namespace) -> int:
    async def action(services: Services) -> int:
        options = SyncOptions(force_full=args.force_full, trigger_remote_refresh=not args.no_refresh)
        try:
            result = await services.coordinator.sync(options)
        except SyncAbortedError as e:
            _print_json(e.result.model_dump())
            return 1
        _print_json(result.model_dump())
        return 0

    return await _with_services(action)


async def _import_csv(args: argparse.Namespace) -> int:
    async def action(services: Services) -> int:
        result = await CsvOrderImporter(services.store).import_file(args.path)
        _print_json(result.model_dump(mode="json"))
        return 1 if result.status == ImportStatus.FAILED else 0

    return await _with_services(action, create_tables=args.create_tables)


async def _snapshot(args: argparse.Namespace) -> int:
    async def action(services: Services) -> int:
        filters = OrderFilters(
            store_ids=args.store or [],
            date_from=args.date_from,
            date_to=args.date_to,
        )
        snapshot = await services.engine.aggregate(filters)
        if args.summary:
            _print_json(to_summarizer_payload(snapshot))
        else:
            _print_json(snapshot.model_dump(mode="json"))
        return 0

    return await _with_services(action)


async def _init_db(args: argparse.Namespace) -> int:
    await init_database(create_tables=True)
    await close_database()
    logger.info("Database schema created")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reuse-analytics",
        description="Order ingestion and opt-in analytics for reusable packaging",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create database tables")

    sync = commands.add_parser("sync", help="Pull orders from the order source")
    sync.add_argument("--force-full", action="store_true", help="Ignore the stored watermark")
    sync.add_argument(
        "--no-refresh",
        action="store_true",
        help="Do not ask the remote to refresh its cache before a full fetch",
    )

    import_csv = commands.add_parser("import-csv", help="Import an order export CSV")
    import_csv.add_argument("path", help="CSV file path")
    import_csv.add_argument("--create-tables", action="store_true", help="Create missing tables first")

    snapshot = commands.add_parser("snapshot", help="Print the analytics snapshot as JSON")
    snapshot.add_argument("--store", action="append", help="Store id to include (repeatable)")
    snapshot.add_argument("--from", dest="date_from", type=date.fromisoformat, help="YYYY-MM-DD")
    snapshot.add_argument("--to", dest="date_to", type=date.fromisoformat, help="YYYY-MM-DD")
    snapshot.add_argument("--summary", action="store_true", help="Print the summarizer payload only")

    return parser


COMMANDS = {
    "init-db": _init_db,
    "sync": _sync,
    "import-csv": _import_csv,
    "snapshot": _snapshot,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    try:
        return asyncio.run(COMMANDS[args.command](args))
    except ConfigurationError as e:
        logger.error("Configuration error", error=str(e))
        return 2


if __name__ == "__main__":
    sys.exit(main())
