from decimal import Decimal

import pytest

from tycoon.database.models import Company, EconomyLog, Product
from tycoon.jobs import products as products_job
from tycoon.jobs.base import JobResult, for_each
from tycoon.services.ledger import adjust_cash
from tycoon.services.products import product_economics


@pytest.mark.asyncio
async def test_failing_entity_rolls_back_alone(ctx, factory):
    players = [await factory.player(cash="100") for _ in range(3)]
    broken = players[1].company_id

    async def handle(session, company_id, outbox):
        company = await session.get(Company, company_id)
        await adjust_cash(session, company, Decimal("5"), "test")
        await outbox.add(session, company.user_id, "test.event", {})
        if company_id == broken:
            raise ValueError("malformed company state")
        return True

    result = await for_each(ctx, JobResult("test"), [p.company_id for p in players], handle)

    assert (result.processed, result.failed) == (2, 1)
    cash = {p.company_id: (await factory.get(Company, p.company_id)).cash for p in players}
    assert cash == {
        players[0].company_id: Decimal("105.00"),
        broken: Decimal("100.00"),
        players[2].company_id: Decimal("105.00"),
    }
    logs = await factory.all(EconomyLog, EconomyLog.type == "test")
    assert broken not in {log.company_id for log in logs}
    assert [event[0] for event in ctx.broadcaster.named("test.event")] == [players[0].channel, players[2].channel]


@pytest.mark.asyncio
async def test_one_bad_product_does_not_block_other_companies(ctx, factory, monkeypatch):
    good = await factory.player(cash="0")
    bad = await factory.player(cash="0")
    await factory.product(good, base_monthly_revenue=Decimal("432000"))
    bad_product = await factory.product(bad, base_monthly_revenue=Decimal("432000"))

    async def economics(session, product, now=None):
        if product.id == bad_product:
            raise ArithmeticError("corrupt product row")
        return await product_economics(session, product, now)

    monkeypatch.setattr(products_job, "product_economics", economics)

    result = await products_job.process_products(ctx)

    assert (result.processed, result.failed) == (1, 1)
    assert (await factory.get(Company, good.company_id)).cash == Decimal("10.00")
    assert (await factory.get(Company, bad.company_id)).cash == Decimal("0.00")
    assert (await factory.get(Product, bad_product)).revenue_carry == Decimal("0")
