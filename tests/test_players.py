from decimal import Decimal

import pytest
from sqlalchemy import func, select

from tycoon.constants import QUEST_ACTIVE, QUEST_COMPLETED
from tycoon.database.base import session_scope
from tycoon.database.models import AutomationSetting, Company, GameState, NPCQuest, User
from tycoon.services.players import add_xp_and_levelup, apply_reputation_penalty, register_player
from tycoon.services.quests import QuestError, complete_quest


@pytest.mark.asyncio
async def test_register_player_is_idempotent(session_maker):
    async with session_scope(session_maker) as session:
        first = await register_player(session, 42, "Ada")
        again = await register_player(session, 42, "Ada")
        assert first.id == again.id

    async with session_scope(session_maker) as session:
        assert await session.scalar(select(func.count()).select_from(User)) == 1
        company = await session.scalar(select(Company))
        assert company.name == "Ada's Studio"
        assert company.company_level == 1
        state = await session.scalar(select(GameState))
        assert state.upgrades == {}
        assert state.current_day == 1
        assert await session.scalar(select(func.count()).select_from(AutomationSetting)) == 1


def test_level_up_and_reputation_clamp():
    state = GameState(level=1, xp=0, reputation=3)
    assert add_xp_and_levelup(state, 550) == 2
    assert (state.level, state.xp) == (3, 50)
    assert apply_reputation_penalty(state, 10) == 3
    assert state.reputation == 0


@pytest.mark.asyncio
async def test_complete_quest_grants_rewards_once(factory, session_maker):
    player = await factory.player(cash="100", reputation=5)
    quest_id = await factory.quest(
        player, current_progress=1, target_progress=1, rewards={"money": 500, "xp": 120, "reputation": 3}
    )

    async with session_scope(session_maker) as session:
        quest = await session.get(NPCQuest, quest_id)
        assert await complete_quest(session, quest) is True
        assert await complete_quest(session, quest) is False

    company = await factory.get(Company, player.company_id)
    assert company.cash == Decimal("600.00")
    [state] = await factory.all(GameState, GameState.user_id == player.user_id)
    assert (state.level, state.xp) == (2, 20)
    assert state.reputation == 8
    quest = await factory.get(NPCQuest, quest_id)
    assert quest.status == QUEST_COMPLETED
    assert quest.completed_at is not None


@pytest.mark.asyncio
async def test_complete_quest_requires_target(factory, session_maker):
    player = await factory.player()
    quest_id = await factory.quest(player, current_progress=0, target_progress=2)
    with pytest.raises(QuestError):
        async with session_scope(session_maker) as session:
            await complete_quest(session, await session.get(NPCQuest, quest_id))
    quest = await factory.get(NPCQuest, quest_id)
    assert quest.status == QUEST_ACTIVE
