"""Shared plumbing for scheduled jobs."""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tycoon.config import SETTINGS, Settings
from tycoon.database.base import async_session_maker, session_scope
from tycoon.database.models import User
from tycoon.services.ai import ContentGenerator, NullGenerator
from tycoon.services.notifications import (
    EVENT_NOTIFICATIONS,
    Broadcaster,
    LoggingBroadcaster,
    notification_counts,
    safe_publish,
    user_channel,
)
from tycoon.utils.time import utcnow

logger = logging.getLogger(__name__)


@dataclass
class JobContext:
    """Collaborators a job runs with."""

    session_maker: async_sessionmaker[AsyncSession] = async_session_maker
    broadcaster: Broadcaster = field(default_factory=LoggingBroadcaster)
    generator: ContentGenerator = field(default_factory=NullGenerator)
    settings: Settings = field(default_factory=lambda: SETTINGS)
    rng: random.Random = field(default_factory=random.Random)
    clock: Callable[[], datetime] = utcnow

    def now(self) -> datetime:
        return self.clock()


@dataclass
class JobResult:
    name: str
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    details: Dict[str, int] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def bump(self, key: str, amount: int = 1) -> None:
        self.details[key] = self.details.get(key, 0) + amount

    def summary(self) -> str:
        parts = [f"processed={self.processed}", f"skipped={self.skipped}", f"failed={self.failed}"]
        parts.extend(f"{key}={value}" for key, value in sorted(self.details.items()))
        return f"{self.name}: " + " ".join(parts)


class Outbox:
    """Notifications collected during a transaction, sent once it commits."""

    def __init__(self) -> None:
        self._items: List[Tuple[str, str, Dict[str, Any]]] = []
        self._channels: Dict[int, Optional[str]] = {}

    async def _channel(self, session: AsyncSession, user_id: Optional[int]) -> Optional[str]:
        if user_id is None:
            return None
        if user_id not in self._channels:
            tg_id = await session.scalar(select(User.tg_id).where(User.id == user_id))
            self._channels[user_id] = user_channel(tg_id) if tg_id is not None else None
        return self._channels[user_id]

    async def add(self, session: AsyncSession, user_id: Optional[int], event_name: str, payload: Dict[str, Any]) -> None:
        channel = await self._channel(session, user_id)
        if channel is not None:
            self._items.append((channel, event_name, payload))

    async def add_counts(self, session: AsyncSession, user_id: Optional[int]) -> None:
        if user_id is None:
            return
        await session.flush()
        await self.add(session, user_id, EVENT_NOTIFICATIONS, await notification_counts(session, user_id))

    def send(self, broadcaster: Broadcaster) -> int:
        for channel, event_name, payload in self._items:
            safe_publish(broadcaster, channel, event_name, payload)
        sent = len(self._items)
        self._items.clear()
        return sent


EntityHandler = Callable[[AsyncSession, int, Outbox], Awaitable[bool]]


async def fetch_ids(ctx: JobContext, stmt) -> List[int]:
    """Run an id query in its own short transaction."""

    async with session_scope(ctx.session_maker) as session:
        return list((await session.execute(stmt)).scalars())


async def for_each(ctx: JobContext, result: JobResult, ids: Iterable[int], handler: EntityHandler) -> JobResult:
    """Process every id in its own transaction, continuing past failures.

    The handler returns True when it changed the entity and False when it
    skipped it. Notifications queued by the handler are sent only after the
    transaction commits.
    """

    for entity_id in ids:
        outbox = Outbox()
        try:
            async with session_scope(ctx.session_maker) as session:
                changed = await handler(session, entity_id, outbox)
        except Exception:
            result.failed += 1
            logger.exception("Job entity failed", extra={"job": result.name, "entity_id": entity_id})
            continue
        if changed:
            result.processed += 1
        else:
            result.skipped += 1
        outbox.send(ctx.broadcaster)
    return result


def finish(result: JobResult) -> JobResult:
    logger.info(
        "Job finished",
        extra={
            "job": result.name,
            "processed": result.processed,
            "skipped": result.skipped,
            "failed": result.failed,
            "details": dict(result.details),
        },
    )
    return result
