"""Company cash ledger.

``adjust_cash`` is the single writer of ``Company.cash``: it serializes per
company, derives the new balance from the current one, and records the
movement in ``EconomyLog``.
"""
from __future__ import annotations

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import AsyncIterator, Callable, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.database.models import Company, EconomyLog, to_money
from tycoon.utils.time import utcnow

logger = logging.getLogger(__name__)

BalanceFn = Callable[[Decimal], Decimal]

# Entries vanish once no task holds or waits on the lock.
_company_locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()


def _lock_for(company_id: int) -> asyncio.Lock:
    lock = _company_locks.get(company_id)
    if lock is None:
        lock = asyncio.Lock()
        _company_locks[company_id] = lock
    return lock


@asynccontextmanager
async def company_lock(company_id: int) -> AsyncIterator[None]:
    """Serialize cash read-modify-write cycles for one company."""

    lock = _lock_for(company_id)
    async with lock:
        yield


async def load_company_for_update(session: AsyncSession, company_id: int) -> Optional[Company]:
    """Reload the company row, locking it where the backend supports it."""

    stmt = select(Company).where(Company.id == company_id).execution_options(populate_existing=True)
    if session.bind is not None and session.bind.dialect.name != "sqlite":
        stmt = stmt.with_for_update()
    return await session.scalar(stmt)


async def adjust_cash(
    session: AsyncSession,
    company: Company,
    change: Union[Decimal, float, int, BalanceFn],
    kind: str,
    meta: Optional[dict] = None,
) -> Decimal:
    """Apply ``change`` to the company balance and return the new balance.

    ``change`` is either an amount to add or a function mapping the current
    balance to the new one.
    """

    async with company_lock(company.id):
        fresh = await load_company_for_update(session, company.id) or company
        current = to_money(fresh.cash)
        if callable(change):
            new_balance = to_money(change(current))
        else:
            new_balance = to_money(current + to_money(change))
        delta = new_balance - current
        fresh.cash = new_balance
        if delta:
            session.add(
                EconomyLog(
                    user_id=fresh.user_id,
                    company_id=fresh.id,
                    type=kind,
                    amount=delta,
                    meta=meta or {},
                    created_at=utcnow(),
                )
            )
        await session.flush()
    return new_balance


async def try_debit(
    session: AsyncSession,
    company: Company,
    amount: Decimal,
    kind: str,
    meta: Optional[dict] = None,
) -> Optional[Decimal]:
    """Debit ``amount`` only if the balance covers it; return the new balance or None."""

    amount = to_money(amount)
    covered = False

    def _debit(balance: Decimal) -> Decimal:
        nonlocal covered
        if balance >= amount:
            covered = True
            return balance - amount
        return balance

    new_balance = await adjust_cash(session, company, _debit, kind, meta)
    if not covered:
        logger.info(
            "Debit declined, insufficient funds",
            extra={"company_id": company.id, "kind": kind, "amount": str(amount), "balance": str(new_balance)},
        )
        return None
    return new_balance
