"""Bonus resolution: stacking research, skill, market and campaign effects.

Every source contributes additive amounts per :class:`BonusKey`; callers apply
a key as ``value *= 1 + bonuses[key]``. Resolution only reads the store, so it
is safe to call as often as a job needs within one tick.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.database.models import MarketEvent, MarketingCampaign, Research, Skill, UserResearch, UserSkill

logger = logging.getLogger(__name__)


class BonusKey(str, enum.Enum):
    PROJECT_PROGRESS_MULTIPLIER = "project_progress_multiplier"
    PROJECT_REWARD_MULTIPLIER = "project_reward_multiplier"
    GLOBAL_REVENUE_MULTIPLIER = "global_revenue_multiplier"
    PRODUCT_REVENUE_MULTIPLIER = "product_revenue_multiplier"
    PRODUCT_GROWTH_MULTIPLIER = "product_growth_multiplier"
    UPKEEP_MULTIPLIER = "upkeep_multiplier"
    UPKEEP_REDUCTION = "upkeep_reduction"
    MARKETING_REVENUE_MULTIPLIER = "marketing_revenue_multiplier"
    PRODUCTIVITY_BONUS = "productivity_bonus"
    MORALE_REGEN_BONUS = "morale_regen_bonus"
    ENERGY_REGEN_BONUS = "energy_regen_bonus"
    SKILL_BONUS = "skill_bonus"

    @classmethod
    def parse(cls, raw: str) -> Optional["BonusKey"]:
        try:
            return cls(raw)
        except ValueError:
            return None


@dataclass
class BonusSet:
    """Summed bonus contributions with zero-default lookups."""

    values: Dict[BonusKey, float] = field(default_factory=dict)

    def __getitem__(self, key: BonusKey) -> float:
        return self.values.get(key, 0.0)

    def add(self, key: BonusKey, amount: float) -> None:
        self.values[key] = self.values.get(key, 0.0) + float(amount)

    def merge_effects(self, effects: Optional[Mapping[str, object]], source: str) -> None:
        """Add a raw effect bag, ignoring keys the engine does not know."""

        for raw_key, amount in (effects or {}).items():
            key = BonusKey.parse(raw_key)
            if key is None:
                logger.warning("Unknown bonus key ignored", extra={"key": raw_key, "source": source})
                continue
            try:
                self.add(key, float(amount))
            except (TypeError, ValueError):
                logger.warning("Non-numeric bonus ignored", extra={"key": raw_key, "source": source})

    def multiplier(self, key: BonusKey) -> float:
        return 1 + self[key]


def skill_matches(project_types: Iterable[str], title: str) -> bool:
    """Return True if any project type is a case-insensitive substring of ``title``."""

    lowered = title.lower()
    return any(kind and kind.lower() in lowered for kind in project_types or [])


async def research_effects(session: AsyncSession, user_id: int) -> list[dict]:
    return list(
        (
            await session.execute(
                select(Research.effects)
                .join(UserResearch, UserResearch.research_id == Research.id)
                .where(UserResearch.user_id == user_id)
            )
        ).scalars()
    )


async def skill_bonus_for_title(session: AsyncSession, user_id: int, title: str) -> float:
    """Return sum of level x efficiency over the player's skills matching ``title``."""

    rows = (
        await session.execute(
            select(Skill.project_types, Skill.efficiency_bonus, UserSkill.level)
            .join(UserSkill, UserSkill.skill_id == Skill.id)
            .where(UserSkill.user_id == user_id)
        )
    ).all()
    total = 0.0
    for project_types, efficiency, level in rows:
        if skill_matches(project_types, title):
            total += level * float(efficiency or 0.0)
    return total


async def active_market_events(session: AsyncSession, now: datetime) -> list[MarketEvent]:
    return list(
        (
            await session.execute(
                select(MarketEvent).where(MarketEvent.start_time <= now, MarketEvent.end_time >= now)
            )
        ).scalars()
    )


async def active_campaign(session: AsyncSession, product_id: int, now: datetime) -> Optional[MarketingCampaign]:
    return await session.scalar(
        select(MarketingCampaign)
        .where(
            MarketingCampaign.product_id == product_id,
            MarketingCampaign.start_time <= now,
            MarketingCampaign.end_time >= now,
        )
        .order_by(MarketingCampaign.end_time.desc())
        .limit(1)
    )


async def resolve_bonuses(
    session: AsyncSession,
    user_id: Optional[int],
    now: datetime,
    *,
    project_title: Optional[str] = None,
    product_id: Optional[int] = None,
) -> BonusSet:
    """Return the stacked bonus set for a player at ``now``."""

    bonuses = BonusSet()
    if user_id is not None:
        for effects in await research_effects(session, user_id):
            bonuses.merge_effects(effects, "research")
        if project_title:
            bonuses.add(BonusKey.SKILL_BONUS, await skill_bonus_for_title(session, user_id, project_title))
    for event in await active_market_events(session, now):
        bonuses.merge_effects(event.effect, f"market_event:{event.event_type}")
    if product_id is not None:
        campaign = await active_campaign(session, product_id, now)
        if campaign:
            bonuses.add(BonusKey.MARKETING_REVENUE_MULTIPLIER, float(campaign.revenue_multiplier) - 1)
    return bonuses
