"""Idle employee recovery job."""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.constants import EMPLOYEE_IDLE
from tycoon.database.models import Company, Employee
from tycoon.jobs.base import JobContext, JobResult, Outbox, fetch_ids, finish, for_each
from tycoon.services.bonuses import BonusKey, resolve_bonuses
from tycoon.services.employees import rest_tick

NAME = "update-employees-state"


async def update_employees_state(ctx: JobContext) -> JobResult:
    """Let idle employees regain energy and morale.

    Working employees are handled by the project job so they are updated
    once per tick.
    """

    result = JobResult(NAME)
    ids = await fetch_ids(
        ctx,
        select(Employee.company_id).where(Employee.status == EMPLOYEE_IDLE).distinct().order_by(Employee.company_id),
    )

    async def handle(session: AsyncSession, company_id: int, outbox: Outbox) -> bool:
        company = await session.get(Company, company_id)
        if company is None:
            return False
        bonuses = await resolve_bonuses(session, company.user_id, ctx.now())
        idle = (
            await session.execute(
                select(Employee).where(Employee.company_id == company_id, Employee.status == EMPLOYEE_IDLE)
            )
        ).scalars().all()
        for employee in idle:
            rest_tick(employee, bonuses[BonusKey.MORALE_REGEN_BONUS], bonuses[BonusKey.ENERGY_REGEN_BONUS])
        result.bump("employees", len(idle))
        return bool(idle)

    await for_each(ctx, result, ids, handle)
    return finish(result)
