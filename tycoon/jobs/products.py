"""Product revenue job."""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.database.models import Company, Product, to_money
from tycoon.jobs.base import JobContext, JobResult, Outbox, fetch_ids, finish, for_each
from tycoon.services.ledger import adjust_cash
from tycoon.services.products import product_economics, split_accrual

NAME = "process-products"


async def process_products(ctx: JobContext) -> JobResult:
    """Credit one minute of net revenue from every active product.

    Each product keeps the sub-cent part of its earnings in ``revenue_carry``
    and the company is credited whole cents only, so small products still
    pay out over time.

    ``Company.monthly_revenue`` is refreshed to the gross monthly revenue of
    the active products, after bonuses and bug penalties. Product upkeep is
    already netted out of every credit and is not added to
    ``Company.monthly_costs``, which holds the payroll bill.
    """

    result = JobResult(NAME)
    ids = await fetch_ids(
        ctx, select(Product.company_id).where(Product.active.is_(True)).distinct().order_by(Product.company_id)
    )

    async def handle(session: AsyncSession, company_id: int, outbox: Outbox) -> bool:
        company = await session.get(Company, company_id)
        if company is None:
            return False
        products = (
            await session.execute(
                select(Product).where(Product.company_id == company_id, Product.active.is_(True)).order_by(Product.id)
            )
        ).scalars().all()
        now = ctx.now()
        monthly_total = 0.0
        for product in products:
            economics = await product_economics(session, product, now)
            monthly_total += economics.monthly_revenue
            credit, product.revenue_carry = split_accrual(product.revenue_carry, economics.per_minute)
            if credit:
                await adjust_cash(
                    session,
                    company,
                    credit,
                    "product_revenue",
                    {"product_id": product.id, "months": economics.months},
                )
        company.monthly_revenue = to_money(monthly_total)
        result.bump("products", len(products))
        return bool(products)

    await for_each(ctx, result, ids, handle)
    return finish(result)
