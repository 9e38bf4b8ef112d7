"""Runtime wiring for the Dev Tycoon economy engine."""
from __future__ import annotations

import asyncio
import random
from typing import Optional

from aiogram import Bot
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from tycoon.config import LOGGER, SETTINGS, Settings, setup_logging
from tycoon.database.base import create_engine, create_session_maker, init_models, session_scope
from tycoon.database.models import Base
from tycoon.database.seed import seed_if_needed
from tycoon.jobs.base import JobContext
from tycoon.scheduler import TickScheduler
from tycoon.services.ai import build_generator
from tycoon.services.notifications import Broadcaster, LoggingBroadcaster, TelegramBroadcaster


async def prepare_database(engine: AsyncEngine, session_maker: async_sessionmaker[AsyncSession]) -> None:
    """Create tables and seed the lookup catalogs."""

    await init_models(Base.metadata, bind=engine)
    async with session_scope(session_maker) as session:
        await seed_if_needed(session)


def build_broadcaster(settings: Settings, bot: Optional[Bot]) -> Broadcaster:
    if bot is not None:
        return TelegramBroadcaster(bot, timeout=settings.BROADCAST_TIMEOUT_SECONDS)
    return LoggingBroadcaster()


def build_context(
    settings: Settings,
    session_maker: async_sessionmaker[AsyncSession],
    bot: Optional[Bot] = None,
    seed: Optional[int] = None,
) -> JobContext:
    return JobContext(
        session_maker=session_maker,
        broadcaster=build_broadcaster(settings, bot),
        generator=build_generator(settings),
        settings=settings,
        rng=random.Random(seed),
    )


async def serve(settings: Settings = SETTINGS, seed: Optional[int] = None) -> None:
    """Run the tick loop until cancelled."""

    engine = create_engine(settings.DATABASE_URL)
    session_maker = create_session_maker(engine)
    await prepare_database(engine, session_maker)

    bot: Optional[Bot] = None
    if settings.BOT_TOKEN:
        if ":" not in settings.BOT_TOKEN:
            raise RuntimeError("BOT_TOKEN looks invalid. Set it in .env (BOT_TOKEN=...)")
        bot = Bot(settings.BOT_TOKEN)

    ctx = build_context(settings, session_maker, bot, seed)
    scheduler = TickScheduler(ctx)
    LOGGER.info(
        "Economy engine started",
        extra={"tick_seconds": settings.TICK_INTERVAL_SECONDS, "jobs": [spec.name for spec in scheduler.jobs]},
    )
    try:
        await scheduler.run_forever()
    finally:
        if isinstance(ctx.broadcaster, TelegramBroadcaster):
            await ctx.broadcaster.drain()
        if bot is not None:
            await bot.session.close()
        await engine.dispose()


async def main() -> None:
    setup_logging()
    await serve()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        LOGGER.info("Engine stopped.")
