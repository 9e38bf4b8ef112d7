"""Command line entry point: ``tycoon <command>``."""
from __future__ import annotations

import argparse
import asyncio
import dataclasses
import sys
from typing import Callable, List, Optional, Sequence

from tycoon.config import LOGGER, SETTINGS, Settings, setup_logging
from tycoon.database.base import create_engine, create_session_maker
from tycoon.jobs import job_names
from tycoon.main import build_context, prepare_database, serve
from tycoon.scheduler import TickScheduler

EXIT_OK = 0
EXIT_FAILED = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tycoon", description="Dev Tycoon economy engine")
    parser.add_argument("--database-url", default=None, help="SQLAlchemy async URL (defaults to DATABASE_URL)")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the random number generator")
    parser.add_argument("--log-level", default=None)
    sub = parser.add_subparsers(dest="command", required=True)
    for name in job_names():
        sub.add_parser(name, help=f"Run the {name} job once")
    sub.add_parser("tick", help="Run every job once, in tick order")
    sub.add_parser("serve", help="Run the scheduler loop")
    sub.add_parser("init-db", help="Create tables and seed catalogs")
    return parser


def _settings_for(args: argparse.Namespace) -> Settings:
    if args.database_url:
        return dataclasses.replace(SETTINGS, DATABASE_URL=args.database_url)
    return SETTINGS


async def execute(args: argparse.Namespace, echo: Callable[[str], None] = print) -> int:
    settings = _settings_for(args)
    if args.command == "serve":
        await serve(settings, seed=args.seed)
        return EXIT_OK

    engine = create_engine(settings.DATABASE_URL)
    session_maker = create_session_maker(engine)
    try:
        await prepare_database(engine, session_maker)
        if args.command == "init-db":
            echo("init-db: tables ready")
            return EXIT_OK
        scheduler = TickScheduler(build_context(settings, session_maker, seed=args.seed))
        if args.command == "tick":
            report = await scheduler.run_tick()
            for result in report.results:
                echo(result.summary())
            echo(report.summary())
            return EXIT_OK if report.ok else EXIT_FAILED
        result = await scheduler.run_job(scheduler.get(args.command), generation=1)
        if result is None:
            return EXIT_FAILED
        echo(result.summary())
        return EXIT_OK if result.ok else EXIT_FAILED
    finally:
        await engine.dispose()


def run(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level)
    try:
        return asyncio.run(execute(args))
    except KeyboardInterrupt:
        LOGGER.info("Interrupted.")
        return EXIT_OK
    except Exception:
        LOGGER.exception("Command failed", extra={"command": args.command})
        return EXIT_FAILED


def main(argv: Optional[List[str]] = None) -> None:
    sys.exit(run(argv))
