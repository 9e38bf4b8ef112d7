"""Player centric service helpers."""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.config import SETTINGS, Settings
from tycoon.database.models import AutomationSetting, Company, GameState, User
from tycoon.utils.time import utcnow


def xp_to_level(level: int) -> int:
    """Return XP required to leave ``level``."""

    return 100 * level * level


async def get_user_by_tg_id(session: AsyncSession, tg_id: int) -> Optional[User]:
    """Return user by Telegram identifier."""

    return await session.scalar(select(User).where(User.tg_id == tg_id))


async def get_company(session: AsyncSession, user_id: int) -> Optional[Company]:
    """Return the player's active company."""

    return await session.scalar(select(Company).where(Company.user_id == user_id).order_by(Company.id).limit(1))


async def get_game_state(session: AsyncSession, user_id: int) -> Optional[GameState]:
    return await session.scalar(select(GameState).where(GameState.user_id == user_id))


async def register_player(
    session: AsyncSession,
    tg_id: int,
    first_name: str,
    company_name: Optional[str] = None,
    settings: Settings = SETTINGS,
) -> User:
    """Fetch or create a player with company, game state and automation settings."""

    user = await get_user_by_tg_id(session, tg_id)
    if user:
        return user

    user = User(tg_id=tg_id, first_name=first_name or "", created_at=utcnow())
    session.add(user)
    await session.flush()
    session.add(
        Company(
            user_id=user.id,
            name=company_name or f"{first_name or 'Player'}'s Studio",
            cash=Decimal(settings.STARTING_CASH),
            company_level=1,
            monthly_revenue=Decimal("0"),
            monthly_costs=Decimal("0"),
        )
    )
    session.add(GameState(user_id=user.id, upgrades={}))
    session.add(AutomationSetting(user_id=user.id))
    await session.flush()
    return user


def add_xp_and_levelup(game_state: GameState, xp_gain: int) -> int:
    """Apply XP gain and increment level when threshold reached.

    Returns the number of levels gained in this operation.
    """

    start_level = game_state.level
    game_state.xp += max(0, int(xp_gain))
    lvl = game_state.level
    while game_state.xp >= xp_to_level(lvl):
        game_state.xp -= xp_to_level(lvl)
        lvl += 1
    game_state.level = lvl
    return lvl - start_level


def apply_reputation_penalty(game_state: GameState, penalty: int) -> int:
    """Lower reputation by ``penalty`` without going below zero; return the amount lost."""

    before = game_state.reputation or 0
    game_state.reputation = max(0, before - max(0, int(penalty)))
    return before - game_state.reputation
