"""Market event spawning."""
from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from tycoon.constants import AI_EFFECT_KEYS, STATIC_MARKET_EVENTS
from tycoon.database.base import session_scope
from tycoon.database.models import MarketEvent
from tycoon.jobs.base import JobContext, JobResult, finish

logger = logging.getLogger(__name__)

NAME = "trigger-market-event"


def map_ai_effect(raw: Any) -> Dict[str, float]:
    """Translate an AI ``{"type", "value"}`` effect into a bonus bag."""

    if not isinstance(raw, dict):
        return {}
    kind = raw.get("type", "revenue")
    try:
        value = float(raw.get("value", 0))
    except (TypeError, ValueError):
        return {}
    key = AI_EFFECT_KEYS.get(kind)
    if key is None:
        return {}
    if kind == "cost":
        value = abs(value)
    return {key: value}


def event_minutes(raw: Any, default: int) -> int:
    try:
        minutes = int(raw)
    except (TypeError, ValueError):
        return default
    return minutes if minutes > 0 else default


async def ask_ai(ctx: JobContext) -> Optional[Dict[str, Any]]:
    """Return generated event content, or None to fall back to the catalog."""

    try:
        return await asyncio.wait_for(
            ctx.generator.generate("market_event", {}), timeout=ctx.settings.AI_TIMEOUT_SECONDS
        )
    except asyncio.TimeoutError:
        logger.warning("AI market event timed out")
    except Exception:
        logger.exception("AI market event failed")
    return None


async def trigger_market_event(ctx: JobContext) -> JobResult:
    """Maybe start a new global market event."""

    result = JobResult(NAME)
    settings = ctx.settings
    if ctx.rng.random() >= settings.MARKET_EVENT_CHANCE:
        result.skipped += 1
        return finish(result)

    data: Optional[Dict[str, Any]] = None
    if ctx.rng.random() < settings.AI_EVENT_CHANCE:
        data = await ask_ai(ctx)
        if data is None:
            result.bump("ai_fallback")

    now = ctx.now()
    if data is not None:
        minutes = event_minutes(data.get("duration_minutes"), settings.MARKET_EVENT_MINUTES)
        event = MarketEvent(
            event_type=str(data.get("event_type") or f"ai_event_{int(now.timestamp())}"),
            description=str(data.get("description") or "AI-generated market event"),
            effect=map_ai_effect(data.get("effect")),
            source="ai",
            start_time=now,
            end_time=now + timedelta(minutes=minutes),
        )
    else:
        chosen = ctx.rng.choice(STATIC_MARKET_EVENTS)
        event = MarketEvent(
            event_type=chosen["event_type"],
            description=chosen["description"],
            effect=dict(chosen["effect"]),
            source="static",
            start_time=now,
            end_time=now + timedelta(minutes=settings.MARKET_EVENT_MINUTES),
        )

    async with session_scope(ctx.session_maker) as session:
        session.add(event)
    result.processed += 1
    result.bump(event.source)
    logger.info("Market event started", extra={"event_type": event.event_type, "effect": event.effect})
    return finish(result)
