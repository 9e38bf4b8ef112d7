"""Bug spawning and fix completion."""
from __future__ import annotations

from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.constants import BUG_ACTIVE, BUG_FIXED, BUG_FIXING, BUG_TEMPLATES
from tycoon.database.models import Product, ProductBug, to_money
from tycoon.jobs.base import JobContext, JobResult, Outbox, fetch_ids, finish, for_each
from tycoon.services.notifications import EVENT_BUG_FIXED, EVENT_BUG_SPAWNED
from tycoon.services.products import open_bug_count

SPAWN = "spawn-product-bugs"
COMPLETE = "complete-bug-fixes"


async def spawn_product_bugs(ctx: JobContext) -> JobResult:
    """Roll for a new bug on every active product below the open-bug cap."""

    result = JobResult(SPAWN)
    ids = await fetch_ids(ctx, select(Product.id).where(Product.active.is_(True)).order_by(Product.id))

    async def handle(session: AsyncSession, product_id: int, outbox: Outbox) -> bool:
        product = await session.get(Product, product_id)
        if product is None or not product.active:
            return False
        if await open_bug_count(session, product.id) >= ctx.settings.MAX_OPEN_BUGS:
            result.bump("at_cap")
            return False
        if ctx.rng.random() >= ctx.settings.BUG_SPAWN_CHANCE:
            return False
        template = ctx.rng.choice(BUG_TEMPLATES)
        bug = ProductBug(
            product_id=product.id,
            title=template["title"],
            description=template["description"],
            severity=template["severity"],
            revenue_penalty=template["revenue_penalty"],
            fix_cost=to_money(template["fix_cost"]),
            fix_time_minutes=template["fix_time_minutes"],
            status=BUG_ACTIVE,
            discovered_at=ctx.now(),
        )
        session.add(bug)
        await session.flush()
        result.bump("spawned")
        await outbox.add(
            session,
            product.user_id,
            EVENT_BUG_SPAWNED,
            {
                "bug_id": bug.id,
                "product": product.name,
                "title": bug.title,
                "severity": bug.severity,
                "penalty": bug.revenue_penalty,
            },
        )
        await outbox.add_counts(session, product.user_id)
        return True

    await for_each(ctx, result, ids, handle)
    return finish(result)


async def complete_bug_fixes(ctx: JobContext) -> JobResult:
    """Mark bugs fixed once their fix time has elapsed."""

    result = JobResult(COMPLETE)
    ids = await fetch_ids(ctx, select(ProductBug.id).where(ProductBug.status == BUG_FIXING).order_by(ProductBug.id))

    async def handle(session: AsyncSession, bug_id: int, outbox: Outbox) -> bool:
        bug = await session.get(ProductBug, bug_id)
        if bug is None or bug.status != BUG_FIXING or bug.fix_started_at is None:
            return False
        now = ctx.now()
        if bug.fix_started_at + timedelta(minutes=bug.fix_time_minutes) > now:
            return False
        bug.status = BUG_FIXED
        bug.fixed_at = now
        product = await session.get(Product, bug.product_id)
        if product is not None:
            await outbox.add(
                session, product.user_id, EVENT_BUG_FIXED, {"bug_id": bug.id, "product": product.name, "title": bug.title}
            )
            await outbox.add_counts(session, product.user_id)
        return True

    await for_each(ctx, result, ids, handle)
    return finish(result)
