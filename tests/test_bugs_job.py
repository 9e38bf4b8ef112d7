import dataclasses
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from tycoon.constants import BUG_ACTIVE, BUG_FIXED, BUG_FIXING, BUG_TEMPLATES
from tycoon.database.base import session_scope
from tycoon.database.models import Company, ProductBug
from tycoon.jobs.bugs import complete_bug_fixes, spawn_product_bugs
from tycoon.services.notifications import EVENT_BUG_FIXED, EVENT_BUG_SPAWNED
from tycoon.services.products import FixOutcome, start_bug_fix


@pytest.mark.asyncio
async def test_spawn_never_exceeds_open_bug_cap(ctx, factory, broadcaster):
    ctx.settings = dataclasses.replace(ctx.settings, BUG_SPAWN_CHANCE=1.0)
    player = await factory.player()
    product_id = await factory.product(player)

    for _ in range(5):
        await spawn_product_bugs(ctx)

    bugs = await factory.all(ProductBug, ProductBug.product_id == product_id)
    assert len(bugs) == 2
    titles = {template["title"] for template in BUG_TEMPLATES}
    assert all(bug.title in titles and bug.status == BUG_ACTIVE for bug in bugs)
    assert all(bug.discovered_at == ctx.now() for bug in bugs)
    assert len(broadcaster.named(EVENT_BUG_SPAWNED)) == 2


@pytest.mark.asyncio
async def test_fixing_bugs_count_towards_cap(ctx, factory):
    ctx.settings = dataclasses.replace(ctx.settings, BUG_SPAWN_CHANCE=1.0)
    player = await factory.player()
    product_id = await factory.product(player)
    await factory.bug(product_id, status=BUG_FIXING, fix_started_at=ctx.now())
    await factory.bug(product_id)
    await factory.bug(product_id, status=BUG_FIXED)

    result = await spawn_product_bugs(ctx)

    assert result.details == {"at_cap": 1}
    assert len(await factory.all(ProductBug, ProductBug.product_id == product_id)) == 3


@pytest.mark.asyncio
async def test_zero_chance_spawns_nothing(ctx, factory):
    ctx.settings = dataclasses.replace(ctx.settings, BUG_SPAWN_CHANCE=0.0)
    player = await factory.player()
    await factory.product(player)
    await factory.product(player, active=False, name="Retired")

    await spawn_product_bugs(ctx)

    assert await factory.all(ProductBug) == []


@pytest.mark.asyncio
async def test_fixes_complete_after_fix_time(ctx, factory, broadcaster):
    player = await factory.player()
    product_id = await factory.product(player)
    done = await factory.bug(
        product_id, status=BUG_FIXING, fix_time_minutes=5, fix_started_at=ctx.now() - timedelta(minutes=5)
    )
    pending = await factory.bug(
        product_id, status=BUG_FIXING, fix_time_minutes=5, fix_started_at=ctx.now() - timedelta(minutes=1)
    )

    result = await complete_bug_fixes(ctx)

    fixed = await factory.get(ProductBug, done)
    assert fixed.status == BUG_FIXED
    assert fixed.fixed_at == ctx.now()
    assert (await factory.get(ProductBug, pending)).status == BUG_FIXING
    assert (result.processed, result.skipped) == (1, 1)
    [event] = broadcaster.named(EVENT_BUG_FIXED)
    assert event[0] == player.channel


@pytest.mark.asyncio
async def test_start_fix_pays_before_fixing(factory, session_maker, clock):
    player = await factory.player(cash="1000")
    product_id = await factory.product(player)
    bug_id = await factory.bug(product_id, fix_cost=Decimal("300"))

    async with session_scope(session_maker) as session:
        bug = await session.get(ProductBug, bug_id)
        assert await start_bug_fix(session, bug, clock.now) is FixOutcome.STARTED
        assert await start_bug_fix(session, bug, clock.now) is FixOutcome.ALREADY_FIXING

    assert (await factory.get(Company, player.company_id)).cash == Decimal("700.00")
    bug = await factory.get(ProductBug, bug_id)
    assert bug.status == BUG_FIXING
    assert bug.fix_started_at == clock.now


@pytest.mark.asyncio
async def test_start_fix_blocked_without_funds(factory, session_maker, clock):
    player = await factory.player(cash="100")
    product_id = await factory.product(player)
    bug_id = await factory.bug(product_id, fix_cost=Decimal("300"))

    async with session_scope(session_maker) as session:
        outcome = await start_bug_fix(session, await session.get(ProductBug, bug_id), clock.now)
    assert outcome is FixOutcome.INSUFFICIENT_FUNDS
    assert (await factory.get(ProductBug, bug_id)).status == BUG_ACTIVE
    assert (await factory.get(Company, player.company_id)).cash == Decimal("100.00")

    async with session_scope(session_maker) as session:
        open_bugs = await session.scalar(
            select(func.count()).select_from(ProductBug).where(ProductBug.status != BUG_FIXED)
        )
    assert open_bugs == 1
