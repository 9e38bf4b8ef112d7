"""Salary payments and bankruptcy resets."""
from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.constants import UNPAID_SALARY_MORALE_PENALTY
from tycoon.database.models import Company, Employee, GameState, NPCQuest, Product, Project, to_money
from tycoon.jobs.base import JobContext, JobResult, Outbox, fetch_ids, finish, for_each
from tycoon.services.economy import clamp_stat, daily_salary
from tycoon.services.ledger import adjust_cash, try_debit
from tycoon.services.notifications import EVENT_BANKRUPTED, EVENT_SALARY_UNPAID
from tycoon.services.players import get_game_state

logger = logging.getLogger(__name__)

PAYROLL = "pay-salaries"
BANKRUPTCY = "check-bankruptcy"


async def pay_salaries(ctx: JobContext) -> JobResult:
    """Pay one day of salaries, or cost the team morale when cash is short."""

    result = JobResult(PAYROLL)
    ids = await fetch_ids(ctx, select(Employee.company_id).distinct().order_by(Employee.company_id))

    async def handle(session: AsyncSession, company_id: int, outbox: Outbox) -> bool:
        company = await session.get(Company, company_id)
        if company is None:
            return False
        employees = (await session.execute(select(Employee).where(Employee.company_id == company_id))).scalars().all()
        if not employees:
            return False
        monthly = sum((e.salary for e in employees), Decimal("0"))
        bill = daily_salary(e.salary for e in employees)
        paid = await try_debit(session, company, bill, "salary", {"employees": len(employees)})
        if paid is not None:
            company.monthly_costs = to_money(monthly)
            result.bump("paid")
            return True
        for employee in employees:
            employee.morale = clamp_stat(employee.morale - UNPAID_SALARY_MORALE_PENALTY)
        result.bump("unpaid")
        await outbox.add(session, company.user_id, EVENT_SALARY_UNPAID, {"company_id": company.id, "need": str(bill)})
        await outbox.add_counts(session, company.user_id)
        return True

    await for_each(ctx, result, ids, handle)
    return finish(result)


async def bankruptcy_reset(session: AsyncSession, company: Company, starting_cash: int) -> dict:
    """Strip ``company`` of its assets while the owner keeps their knowledge."""

    employees = await session.scalar(select(func.count()).select_from(Employee).where(Employee.company_id == company.id))
    await session.execute(delete(Employee).where(Employee.company_id == company.id))
    projects = 0
    if company.user_id is not None:
        project_ids = list(
            (await session.execute(select(Project.id).where(Project.user_id == company.user_id))).scalars()
        )
        if project_ids:
            await session.execute(
                update(Product).where(Product.source_project_id.in_(project_ids)).values(source_project_id=None)
            )
            await session.execute(
                update(NPCQuest).where(NPCQuest.required_project_id.in_(project_ids)).values(required_project_id=None)
            )
            await session.execute(delete(Project).where(Project.id.in_(project_ids)))
        projects = len(project_ids)
    await session.execute(update(Product).where(Product.company_id == company.id).values(active=False))

    await adjust_cash(session, company, lambda _balance: Decimal(starting_cash), "bankruptcy_reset")
    company.monthly_revenue = Decimal("0")
    company.monthly_costs = Decimal("0")
    company.company_level = 1

    state: GameState | None = await get_game_state(session, company.user_id) if company.user_id else None
    if state is not None:
        state.click_power = Decimal("1")
        state.auto_income = Decimal("0")
        state.upgrades = {}
    return {"employees": int(employees or 0), "projects": projects}


async def check_bankruptcy(ctx: JobContext) -> JobResult:
    """Reset every company whose cash fell below the bankruptcy threshold."""

    result = JobResult(BANKRUPTCY)
    threshold = Decimal(ctx.settings.BANKRUPTCY_THRESHOLD)
    ids = await fetch_ids(ctx, select(Company.id).where(Company.cash < threshold).order_by(Company.id))

    async def handle(session: AsyncSession, company_id: int, outbox: Outbox) -> bool:
        company = await session.get(Company, company_id)
        if company is None or company.cash >= threshold or company.user_id is None:
            return False
        cash_before = company.cash
        lost = await bankruptcy_reset(session, company, ctx.settings.STARTING_CASH)
        logger.warning(
            "Company bankrupted",
            extra={"company_id": company.id, "cash_before": str(cash_before), **lost},
        )
        await outbox.add(
            session,
            company.user_id,
            EVENT_BANKRUPTED,
            {
                "company": company.name,
                "employees_lost": lost["employees"],
                "cash": str(company.cash),
            },
        )
        return True

    await for_each(ctx, result, ids, handle)
    return finish(result)
