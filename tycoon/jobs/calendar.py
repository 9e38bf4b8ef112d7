"""Game calendar and company level jobs."""
from __future__ import annotations

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.database.base import session_scope
from tycoon.database.models import Company, Employee, GameState, Product
from tycoon.jobs.base import JobContext, JobResult, Outbox, fetch_ids, finish, for_each
from tycoon.services.economy import company_target_level
from tycoon.services.players import get_game_state

DAY = "increment-day"
COMPANY_LEVEL = "update-company-level"


async def increment_day(ctx: JobContext) -> JobResult:
    result = JobResult(DAY)
    async with session_scope(ctx.session_maker) as session:
        outcome = await session.execute(
            update(GameState)
            .where(GameState.user_id.is_not(None))
            .values(current_day=GameState.current_day + 1)
            .execution_options(synchronize_session=False)
        )
        result.processed = outcome.rowcount or 0
    return finish(result)


async def update_company_level(ctx: JobContext) -> JobResult:
    """Raise company levels earned by projects, earnings, team and products."""

    result = JobResult(COMPANY_LEVEL)
    ids = await fetch_ids(ctx, select(Company.id).order_by(Company.id))

    async def handle(session: AsyncSession, company_id: int, outbox: Outbox) -> bool:
        company = await session.get(Company, company_id)
        if company is None:
            return False
        state = await get_game_state(session, company.user_id) if company.user_id else None
        team = await session.scalar(select(func.count()).select_from(Employee).where(Employee.company_id == company_id))
        products = await session.scalar(select(func.count()).select_from(Product).where(Product.company_id == company_id))
        target = company_target_level(
            state.completed_projects if state else 0,
            state.lifetime_earnings if state else 0,
            int(team or 0),
            int(products or 0),
        )
        if target <= company.company_level:
            return False
        company.company_level = target
        result.bump("leveled_up")
        return True

    await for_each(ctx, result, ids, handle)
    return finish(result)
