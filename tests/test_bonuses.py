from datetime import timedelta

import pytest

from tycoon.database.base import session_scope
from tycoon.database.models import MarketEvent, MarketingCampaign, Research, Skill, UserResearch, UserSkill
from tycoon.services.bonuses import BonusKey, BonusSet, resolve_bonuses, skill_matches


def test_bonus_set_defaults_to_zero():
    bonuses = BonusSet()
    assert bonuses[BonusKey.UPKEEP_MULTIPLIER] == 0
    assert bonuses.multiplier(BonusKey.UPKEEP_MULTIPLIER) == 1


def test_merge_effects_sums_within_key_and_ignores_unknown():
    bonuses = BonusSet()
    bonuses.merge_effects({"global_revenue_multiplier": 0.5, "warp_drive": 3}, "test")
    bonuses.merge_effects({"global_revenue_multiplier": -0.3, "upkeep_multiplier": "n/a"}, "test")
    assert bonuses[BonusKey.GLOBAL_REVENUE_MULTIPLIER] == pytest.approx(0.2)
    assert bonuses[BonusKey.UPKEEP_MULTIPLIER] == 0
    assert set(bonuses.values) == {BonusKey.GLOBAL_REVENUE_MULTIPLIER}


def test_skill_matching_is_case_insensitive_substring():
    assert skill_matches(["web", "api"], "Build a WEB Shop")
    assert not skill_matches(["mobile"], "Build a Web Shop")
    assert not skill_matches([], "anything")


@pytest.mark.asyncio
async def test_resolve_bonuses_stacks_every_source(factory, session_maker, clock):
    player = await factory.player()
    other = await factory.player()
    product_id = await factory.product(player)
    now = clock.now
    async with session_scope(session_maker) as session:
        research = Research(key="agile", name="Agile", category="project", effects={"project_progress_multiplier": 0.1})
        web = Skill(name="Frontend", category="web", project_types=["web"], efficiency_bonus=0.05)
        mobile = Skill(name="Mobile", category="mobile", project_types=["ios"], efficiency_bonus=0.5)
        session.add_all([research, web, mobile])
        await session.flush()
        session.add_all(
            [
                UserResearch(user_id=player.user_id, research_id=research.id),
                UserSkill(user_id=player.user_id, skill_id=web.id, level=2),
                UserSkill(user_id=player.user_id, skill_id=mobile.id, level=1),
                UserSkill(user_id=other.user_id, skill_id=web.id, level=9),
                MarketEvent(
                    event_type="hype_trend",
                    effect={"project_progress_multiplier": 0.2},
                    start_time=now - timedelta(minutes=5),
                    end_time=now,
                ),
                MarketEvent(
                    event_type="market_boom",
                    effect={"global_revenue_multiplier": 0.5},
                    start_time=now - timedelta(minutes=5),
                    end_time=now + timedelta(minutes=5),
                ),
                MarketEvent(
                    event_type="tech_crash",
                    effect={"global_revenue_multiplier": -0.3},
                    start_time=now - timedelta(minutes=5),
                    end_time=now + timedelta(minutes=5),
                ),
                MarketEvent(
                    event_type="old_news",
                    effect={"global_revenue_multiplier": 9},
                    start_time=now - timedelta(minutes=30),
                    end_time=now - timedelta(minutes=20),
                ),
                MarketingCampaign(
                    user_id=player.user_id,
                    product_id=product_id,
                    name="Launch week",
                    revenue_multiplier=1.5,
                    start_time=now - timedelta(hours=1),
                    end_time=now + timedelta(hours=1),
                ),
            ]
        )

    async with session_scope(session_maker) as session:
        bonuses = await resolve_bonuses(
            session, player.user_id, now, project_title="Build a Web Shop", product_id=product_id
        )

    assert bonuses[BonusKey.PROJECT_PROGRESS_MULTIPLIER] == pytest.approx(0.3)
    assert bonuses[BonusKey.GLOBAL_REVENUE_MULTIPLIER] == pytest.approx(0.2)
    assert bonuses[BonusKey.SKILL_BONUS] == pytest.approx(0.1)
    assert bonuses[BonusKey.MARKETING_REVENUE_MULTIPLIER] == pytest.approx(0.5)


@pytest.mark.asyncio
async def test_resolve_bonuses_without_player_sees_only_market(factory, session_maker, clock):
    async with session_scope(session_maker) as session:
        session.add(
            MarketEvent(
                event_type="bug_outbreak",
                effect={"upkeep_multiplier": 0.15},
                start_time=clock.now,
                end_time=clock.now + timedelta(minutes=10),
            )
        )
    async with session_scope(session_maker) as session:
        bonuses = await resolve_bonuses(session, None, clock.now)
    assert bonuses[BonusKey.UPKEEP_MULTIPLIER] == pytest.approx(0.15)
    assert bonuses[BonusKey.SKILL_BONUS] == 0
