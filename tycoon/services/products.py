"""Product revenue math, launches and bug fixing."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_DOWN, Decimal
from typing import Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.constants import (
    BUG_ACTIVE,
    BUG_FIXED,
    BUG_FIXING,
    PRODUCT_GROWTH_RATE,
    PRODUCT_REVENUE_PERCENTAGE,
    PRODUCT_UPKEEP_PERCENTAGE,
    PROJECT_COMPLETED,
    QUEST_ACTIVE,
)
from tycoon.database.models import CENT, NPCQuest, Product, ProductBug, Project, to_money
from tycoon.exceptions import TycoonError
from tycoon.services.bonuses import BonusKey, BonusSet, resolve_bonuses
from tycoon.services.economy import bug_penalty_multiplier, per_minute_net, product_monthly_revenue
from tycoon.services.ledger import try_debit
from tycoon.services.players import get_company
from tycoon.utils.time import utcnow, whole_months_between

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProductEconomics:
    months: int
    monthly_revenue: float
    monthly_upkeep: float
    bug_multiplier: float

    @property
    def net_monthly(self) -> float:
        return self.monthly_revenue - self.monthly_upkeep

    @property
    def per_minute(self) -> float:
        return per_minute_net(self.monthly_revenue, self.monthly_upkeep)


def split_accrual(carry: Decimal, amount: float) -> tuple[Decimal, Decimal]:
    """Return the whole cents owed and the sub-cent remainder to carry forward.

    Cents are cut toward zero, so losses carry the same way as earnings.
    """

    owed = (carry or Decimal("0")) + Decimal(repr(float(amount)))
    credit = owed.quantize(CENT, rounding=ROUND_DOWN)
    return credit, owed - credit


async def active_bug_penalties(session: AsyncSession, product_id: int) -> list[float]:
    return list(
        (
            await session.execute(
                select(ProductBug.revenue_penalty).where(
                    ProductBug.product_id == product_id, ProductBug.status == BUG_ACTIVE
                )
            )
        ).scalars()
    )


async def open_bug_count(session: AsyncSession, product_id: int) -> int:
    """Return bugs that are not fixed yet (active or being fixed)."""

    value = await session.scalar(
        select(func.count())
        .select_from(ProductBug)
        .where(ProductBug.product_id == product_id, ProductBug.status != BUG_FIXED)
    )
    return int(value or 0)


def compute_economics(product: Product, now: datetime, bonuses: BonusSet, penalties: list[float]) -> ProductEconomics:
    months = whole_months_between(product.launched_at, now)
    revenue = product_monthly_revenue(
        product.base_monthly_revenue,
        float(product.growth_rate),
        months,
        growth_bonus=bonuses[BonusKey.PRODUCT_GROWTH_MULTIPLIER],
    )
    bug_multiplier = bug_penalty_multiplier(penalties)
    revenue *= bonuses.multiplier(BonusKey.PRODUCT_REVENUE_MULTIPLIER)
    revenue *= bug_multiplier
    revenue *= bonuses.multiplier(BonusKey.MARKETING_REVENUE_MULTIPLIER)
    revenue *= bonuses.multiplier(BonusKey.GLOBAL_REVENUE_MULTIPLIER)
    upkeep = float(product.upkeep) * (1 - bonuses[BonusKey.UPKEEP_REDUCTION])
    upkeep *= bonuses.multiplier(BonusKey.UPKEEP_MULTIPLIER)
    return ProductEconomics(months=months, monthly_revenue=revenue, monthly_upkeep=upkeep, bug_multiplier=bug_multiplier)


async def product_economics(session: AsyncSession, product: Product, now: Optional[datetime] = None) -> ProductEconomics:
    """Compute current revenue for ``product`` with every bonus and bug applied."""

    now = now or utcnow()
    bonuses = await resolve_bonuses(session, product.user_id, now, product_id=product.id)
    penalties = await active_bug_penalties(session, product.id)
    return compute_economics(product, now, bonuses, penalties)


async def product_stats(session: AsyncSession, product: Product, now: Optional[datetime] = None) -> dict:
    """Read-path summary of a product for display."""

    economics = await product_economics(session, product, now)
    return {
        "months_since_launch": economics.months,
        "current_monthly_revenue": to_money(economics.monthly_revenue),
        "net_monthly_revenue": to_money(economics.net_monthly),
        "total_upkeep": to_money(economics.monthly_upkeep),
        "bug_multiplier": round(economics.bug_multiplier, 4),
    }


class LaunchError(TycoonError):
    pass


async def launch_product(session: AsyncSession, user_id: int, project_id: int, now: Optional[datetime] = None) -> Product:
    """Turn a completed project into a revenue generating product (once per project)."""

    now = now or utcnow()
    project = await session.scalar(
        select(Project).where(Project.id == project_id, Project.user_id == user_id, Project.status == PROJECT_COMPLETED)
    )
    if project is None:
        raise LaunchError("Project is not completed or does not belong to the player.")
    company = await get_company(session, user_id)
    if company is None:
        raise LaunchError("Company not found.")
    existing = await session.scalar(select(Product).where(Product.source_project_id == project.id))
    if existing is not None:
        raise LaunchError("This project is already launched as a product.")

    base_revenue = to_money(project.reward * Decimal(PRODUCT_REVENUE_PERCENTAGE))
    product = Product(
        user_id=user_id,
        company_id=company.id,
        source_project_id=project.id,
        name=project.title,
        base_monthly_revenue=base_revenue,
        upkeep=to_money(base_revenue * Decimal(PRODUCT_UPKEEP_PERCENTAGE)),
        growth_rate=PRODUCT_GROWTH_RATE,
        active=True,
        launched_at=now,
    )
    session.add(product)
    await session.flush()

    open_quest = or_(NPCQuest.expires_at.is_(None), NPCQuest.expires_at > now)
    specific = await session.scalar(
        select(NPCQuest).where(
            NPCQuest.user_id == user_id,
            NPCQuest.quest_type == "launch_product",
            NPCQuest.required_project_id == project.id,
            NPCQuest.status == QUEST_ACTIVE,
            open_quest,
        )
    )
    if specific is not None:
        specific.current_progress += 1
    else:
        await session.execute(
            update(NPCQuest)
            .where(
                NPCQuest.user_id == user_id,
                NPCQuest.quest_type == "launch_product",
                NPCQuest.required_project_id.is_(None),
                NPCQuest.status == QUEST_ACTIVE,
                open_quest,
            )
            .values(current_progress=NPCQuest.current_progress + 1)
        )
    logger.info("Product launched", extra={"user_id": user_id, "project_id": project.id, "product_id": product.id})
    return product


class FixOutcome(str, enum.Enum):
    STARTED = "started"
    ALREADY_FIXING = "already_fixing"
    ALREADY_FIXED = "already_fixed"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    NO_COMPANY = "no_company"


async def start_bug_fix(session: AsyncSession, bug: ProductBug, now: Optional[datetime] = None) -> FixOutcome:
    """Pay for a fix and move the bug from active to fixing."""

    if bug.status == BUG_FIXED:
        return FixOutcome.ALREADY_FIXED
    if bug.status == BUG_FIXING:
        return FixOutcome.ALREADY_FIXING
    product = await session.get(Product, bug.product_id)
    company = await get_company(session, product.user_id) if product else None
    if company is None:
        return FixOutcome.NO_COMPANY
    paid = await try_debit(session, company, bug.fix_cost, "bug_fix", {"bug_id": bug.id, "product_id": bug.product_id})
    if paid is None:
        return FixOutcome.INSUFFICIENT_FUNDS
    bug.status = BUG_FIXING
    bug.fix_started_at = now or utcnow()
    return FixOutcome.STARTED
