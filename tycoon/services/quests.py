"""NPC quest completion."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.constants import QUEST_ACTIVE, QUEST_COMPLETED
from tycoon.database.models import NPCQuest, to_money
from tycoon.exceptions import TycoonError
from tycoon.services.ledger import adjust_cash
from tycoon.services.players import add_xp_and_levelup, get_company, get_game_state
from tycoon.utils.time import utcnow

logger = logging.getLogger(__name__)


class QuestError(TycoonError):
    pass


async def complete_quest(session: AsyncSession, quest: NPCQuest, now: Optional[datetime] = None) -> bool:
    """Grant quest rewards once the target is met.

    Returns False without changing anything when the quest was already
    completed. Raises :class:`QuestError` when it cannot be completed.
    """

    if quest.status == QUEST_COMPLETED:
        return False
    if quest.status != QUEST_ACTIVE:
        raise QuestError(f"Quest is {quest.status}.")
    if quest.current_progress < quest.target_progress:
        raise QuestError("Quest target not reached yet.")

    rewards = quest.rewards or {}
    money = to_money(rewards.get("money", 0) or 0)
    if money:
        company = await get_company(session, quest.user_id)
        if company is None:
            raise QuestError("Company not found.")
        await adjust_cash(session, company, money, "quest_reward", {"quest_id": quest.id})
    state = await get_game_state(session, quest.user_id)
    if state is not None:
        add_xp_and_levelup(state, int(rewards.get("xp", 0) or 0))
        state.reputation = (state.reputation or 0) + max(0, int(rewards.get("reputation", 0) or 0))
    quest.status = QUEST_COMPLETED
    quest.completed_at = now or utcnow()
    logger.info("Quest completed", extra={"quest_id": quest.id, "user_id": quest.user_id, "money": str(money)})
    return True
