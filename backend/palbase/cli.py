"""Command line entry point (``palbase-sync``).

Usage:
    palbase-sync serve
    palbase-sync sync --source all
    palbase-sync sync --source rescuegroups
    palbase-sync fetch --source aspca --limit 5
    palbase-sync init-db
"""

import argparse
import asyncio
import sys
from typing import List, Optional

import structlog

from palbase.config import KNOWN_SOURCES, settings
from palbase.core.exceptions import ConfigurationError, RunFailure, RunInProgressError
from palbase.core.logging import configure_logging

logger = structlog.get_logger(__name__)


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run(
        "palbase.main:app",
        host=args.host,
        port=args.port or settings.SCRAPER_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
    return 0


async def _init_db() -> int:
    from palbase.db.session import create_tables

    await create_tables()
    print("Database tables created")
    return 0


async def _sync(source: str) -> int:
    from palbase.db.session import async_session_factory, create_tables
    from palbase.scrapers.register_adapters import register_all_adapters
    from palbase.scrapers.sync_service import SyncService
    from palbase.scrapers.utils.browser_manager import get_browser_manager

    sources = settings.enabled_sources() if source == "all" else [source]
    await create_tables()
    register_all_adapters()
    service = SyncService(async_session_factory)

    try:
        if len(sources) == 1:
            results = [await service.run_source(sources[0], trigger="cli")]
        else:
            results = await service.run_all(sources, trigger="cli")
    except RunInProgressError as e:
        print(f"Sync already in progress for: {', '.join(e.sources)}", file=sys.stderr)
        return 2
    except RunFailure as e:
        print(f"Sync failed for {e.source}: {e.cause}", file=sys.stderr)
        return 1
    finally:
        await get_browser_manager().stop()

    for r in results:
        print(
            f"{r.source}: found={r.pets_found} added={r.pets_added} updated={r.pets_updated} "
            f"removed={r.pets_removed} errors={r.error_count} ({r.duration_ms} ms)"
        )
    return 0 if len(results) == len(sources) else 1


async def _fetch(source: str, limit: int) -> int:
    """Dry run: scrape one source and print what would be stored."""
    from palbase.scrapers.register_adapters import register_all_adapters
    from palbase.scrapers.utils.browser_manager import get_browser_manager

    factory = register_all_adapters()
    adapter = factory.create_adapter(source)
    try:
        await adapter.initialize()
        result = await adapter.scrape()
    finally:
        await adapter.cleanup()
        await get_browser_manager().stop()

    print(f"{source}: {len(result.pets)} pets, {len(result.shelters)} shelters, {len(result.errors)} errors")
    for i, pet in enumerate(result.pets[:limit], 1):
        location = ", ".join(p for p in (pet.location_city, pet.location_state) if p)
        print(f"[{i}] {pet.name} ({pet.species}, {pet.age or '?'}, {pet.gender}) {location}")
        print(f"    {pet.source_id}  {pet.source_url or ''}")
    for error in result.errors:
        print(f"  ! {error.error_type}: {error.message}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="palbase-sync",
        description="Palbase pet listing ingestion",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP control plane and scheduler")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=None, help="Defaults to SCRAPER_PORT")

    sync = sub.add_parser("sync", help="Run a sync in the foreground")
    sync.add_argument("--source", default="all", choices=("all",) + KNOWN_SOURCES)

    fetch = sub.add_parser("fetch", help="Scrape one source without writing to the database")
    fetch.add_argument("--source", required=True, choices=KNOWN_SOURCES)
    fetch.add_argument("--limit", type=int, default=10, help="Pets to print (default: 10)")

    sub.add_parser("init-db", help="Create database tables")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    try:
        if args.command == "serve":
            settings.validate_required()
            return _serve(args)
        if args.command == "init-db":
            return asyncio.run(_init_db())
        if args.command == "sync":
            settings.validate_required()
            return asyncio.run(_sync(args.source))
        if args.command == "fetch":
            return asyncio.run(_fetch(args.source, args.limit))
    except ConfigurationError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
