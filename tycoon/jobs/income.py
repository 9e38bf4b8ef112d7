"""Idle income accrual."""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.database.models import GameState, to_money
from tycoon.jobs.base import JobContext, JobResult, Outbox, fetch_ids, finish, for_each
from tycoon.services.ledger import adjust_cash
from tycoon.services.players import get_company

NAME = "calculate-idle-income"
SECONDS_PER_TICK = 60


async def calculate_idle_income(ctx: JobContext) -> JobResult:
    """Credit every player's per-second auto income for one minute."""

    result = JobResult(NAME)
    ids = await fetch_ids(ctx, select(GameState.id).where(GameState.auto_income > 0).order_by(GameState.id))

    async def handle(session: AsyncSession, state_id: int, outbox: Outbox) -> bool:
        state = await session.get(GameState, state_id)
        if state is None or state.auto_income <= 0:
            return False
        company = await get_company(session, state.user_id)
        if company is None:
            return False
        amount = to_money(state.auto_income * SECONDS_PER_TICK)
        await adjust_cash(session, company, amount, "idle_income", {"per_second": str(state.auto_income)})
        state.lifetime_earnings = to_money((state.lifetime_earnings or 0) + amount)
        result.bump("credited_cents", int(amount * 100))
        return True

    await for_each(ctx, result, ids, handle)
    return finish(result)
