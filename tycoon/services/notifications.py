"""Fire-and-forget notification publishing.

Jobs call :meth:`Broadcaster.publish` and move on; delivery happens in the
background and any failure is logged and dropped.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Protocol, Set

from aiogram import Bot
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.constants import BUG_ACTIVE, EN, LOW_STAT_THRESHOLD, PROJECT_COMPLETED
from tycoon.database.models import Company, Employee, Product, ProductBug, Project

logger = logging.getLogger(__name__)

EVENT_NOTIFICATIONS = "notification.updated"
EVENT_PROJECT_COMPLETED = "project.completed"
EVENT_PROJECT_FAILED = "project.failed"
EVENT_EMPLOYEE_ATTENTION = "employee.attention"
EVENT_SALARY_UNPAID = "salary.unpaid"
EVENT_BANKRUPTED = "company.bankrupted"
EVENT_BUG_SPAWNED = "bug.spawned"
EVENT_BUG_FIXED = "bug.fixed"
EVENT_QUEST_EXPIRED = "quest.expired"


def user_channel(tg_id: int) -> str:
    return f"user.{tg_id}"


class Broadcaster(Protocol):
    def publish(self, channel: str, event_name: str, payload: Dict[str, Any]) -> None: ...


class LoggingBroadcaster:
    """Broadcaster that only writes events to the log."""

    def publish(self, channel: str, event_name: str, payload: Dict[str, Any]) -> None:
        logger.info("Broadcast", extra={"channel": channel, "event": event_name, "payload": payload})


def render_message(event_name: str, payload: Dict[str, Any]) -> Optional[str]:
    """Return the chat text for an event, or None for events without one."""

    templates = {
        EVENT_PROJECT_COMPLETED: EN.PROJECT_COMPLETED,
        EVENT_PROJECT_FAILED: EN.PROJECT_FAILED,
        EVENT_EMPLOYEE_ATTENTION: EN.EMPLOYEE_TIRED,
        EVENT_SALARY_UNPAID: EN.SALARY_UNPAID,
        EVENT_BANKRUPTED: EN.BANKRUPT,
        EVENT_BUG_SPAWNED: EN.BUG_SPAWNED,
        EVENT_BUG_FIXED: EN.BUG_FIXED,
        EVENT_QUEST_EXPIRED: EN.QUEST_EXPIRED,
        EVENT_NOTIFICATIONS: EN.NOTIFICATIONS,
    }
    template = templates.get(event_name)
    if template is None:
        return None
    try:
        return template.format(**payload)
    except (KeyError, IndexError):
        logger.warning("Payload does not fit message template", extra={"event": event_name})
        return None


class TelegramBroadcaster:
    """Deliver events as Telegram messages to the player's chat."""

    def __init__(self, bot: Bot, timeout: float = 5.0) -> None:
        self.bot = bot
        self.timeout = timeout
        self._tasks: Set[asyncio.Task] = set()

    def publish(self, channel: str, event_name: str, payload: Dict[str, Any]) -> None:
        text = render_message(event_name, payload)
        if text is None:
            return
        try:
            chat_id = int(channel.rsplit(".", 1)[-1])
        except ValueError:
            logger.warning("Channel has no chat id", extra={"channel": channel})
            return
        task = asyncio.get_running_loop().create_task(self._deliver(chat_id, event_name, text))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, chat_id: int, event_name: str, text: str) -> None:
        try:
            await asyncio.wait_for(self.bot.send_message(chat_id, text), timeout=self.timeout)
        except Exception as exc:  # noqa: BLE001 - delivery failures are dropped
            logger.warning(
                "Broadcast dropped",
                extra={"chat_id": chat_id, "event": event_name, "error": repr(exc)},
            )

    async def drain(self) -> None:
        """Wait for in-flight deliveries, used on shutdown."""

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


def safe_publish(broadcaster: Broadcaster, channel: str, event_name: str, payload: Dict[str, Any]) -> None:
    """Publish without letting a broken transport reach the caller."""

    try:
        broadcaster.publish(channel, event_name, payload)
    except Exception:  # noqa: BLE001 - broadcast must never abort a job
        logger.exception("Broadcast failed", extra={"channel": channel, "event": event_name})


async def notification_counts(session: AsyncSession, user_id: int) -> Dict[str, int]:
    """Return the badge counters shown to a player."""

    projects = await session.scalar(
        select(func.count()).select_from(Project).where(
            Project.user_id == user_id, Project.status == PROJECT_COMPLETED
        )
    )
    bugs = await session.scalar(
        select(func.count())
        .select_from(ProductBug)
        .join(Product, Product.id == ProductBug.product_id)
        .where(Product.user_id == user_id, ProductBug.status == BUG_ACTIVE)
    )
    employees = await session.scalar(
        select(func.count())
        .select_from(Employee)
        .join(Company, Company.id == Employee.company_id)
        .where(
            Company.user_id == user_id,
            or_(Employee.energy < LOW_STAT_THRESHOLD, Employee.morale < LOW_STAT_THRESHOLD),
        )
    )
    return {"projects": int(projects or 0), "employees": int(employees or 0), "bugs": int(bugs or 0)}
