import asyncio
import gc
from decimal import Decimal

import pytest
from sqlalchemy import select

from tycoon.database.base import session_scope
from tycoon.database.models import Company, EconomyLog
from tycoon.services import ledger
from tycoon.services.ledger import adjust_cash, company_lock, try_debit


@pytest.mark.asyncio
async def test_adjust_cash_records_every_movement(factory, session_maker):
    player = await factory.player(cash="100")
    async with session_scope(session_maker) as session:
        company = await session.get(Company, player.company_id)
        assert await adjust_cash(session, company, Decimal("25.505"), "test") == Decimal("125.51")
        assert await adjust_cash(session, company, lambda balance: balance * 2, "double") == Decimal("251.02")
        assert await adjust_cash(session, company, 0, "noop") == Decimal("251.02")

    logs = await factory.all(EconomyLog, EconomyLog.company_id == player.company_id)
    assert [(log.type, log.amount) for log in logs] == [
        ("test", Decimal("25.51")),
        ("double", Decimal("125.51")),
    ]
    assert all(log.user_id == player.user_id for log in logs)


@pytest.mark.asyncio
async def test_try_debit_declines_without_funds(factory, session_maker):
    player = await factory.player(cash="50")
    async with session_scope(session_maker) as session:
        company = await session.get(Company, player.company_id)
        assert await try_debit(session, company, Decimal("80"), "bug_fix") is None
        assert await try_debit(session, company, Decimal("50"), "bug_fix") == Decimal("0.00")

    company = await factory.get(Company, player.company_id)
    assert company.cash == Decimal("0.00")
    logs = await factory.all(EconomyLog, EconomyLog.company_id == player.company_id)
    assert [log.amount for log in logs] == [Decimal("-50.00")]


@pytest.mark.asyncio
async def test_cash_does_not_drift_across_committed_ticks(factory, session_maker):
    player = await factory.player(cash="0")
    for _ in range(300):
        async with session_scope(session_maker) as session:
            company = await session.get(Company, player.company_id)
            await adjust_cash(session, company, 0.1, "tick")

    async with session_scope(session_maker) as session:
        cash = await session.scalar(select(Company.cash).where(Company.id == player.company_id))
    assert cash == Decimal("30.00")


@pytest.mark.asyncio
async def test_company_lock_serializes_and_is_released():
    order = []

    async def worker(name):
        async with company_lock(4242):
            order.append(f"{name}:in")
            await asyncio.sleep(0.01)
            order.append(f"{name}:out")

    await asyncio.gather(worker("a"), worker("b"))
    gc.collect()

    assert order == ["a:in", "a:out", "b:in", "b:out"]
    assert 4242 not in ledger._company_locks
