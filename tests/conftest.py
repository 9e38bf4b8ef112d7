"""Shared fixtures: a temporary SQLite store, recording collaborators and factories."""
from __future__ import annotations

import dataclasses
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
from sqlalchemy import select

from tycoon.config import Settings
from tycoon.constants import EMPLOYEE_IDLE, EMPLOYEE_WORKING, PROJECT_IN_PROGRESS
from tycoon.database.base import create_engine, create_session_maker, init_models, session_scope
from tycoon.database.models import (
    NPC,
    AutomationSetting,
    Base,
    Company,
    Employee,
    GameState,
    NPCQuest,
    Product,
    ProductBug,
    Project,
)
from tycoon.jobs.base import JobContext
from tycoon.services.players import register_player

NOW = datetime(2026, 1, 15, 12, 0, 0)


class FixedClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int) -> None:
        self.now += timedelta(minutes=minutes)


class RecordingBroadcaster:
    def __init__(self) -> None:
        self.events: List[Tuple[str, str, Dict[str, Any]]] = []

    def publish(self, channel: str, event_name: str, payload: Dict[str, Any]) -> None:
        self.events.append((channel, event_name, payload))

    def named(self, event_name: str) -> List[Tuple[str, str, Dict[str, Any]]]:
        return [event for event in self.events if event[1] == event_name]


class ScriptedGenerator:
    """Returns queued responses in order, then None."""

    def __init__(self, responses: Optional[List[Any]] = None) -> None:
        self.responses = list(responses or [])
        self.calls: List[str] = []

    async def generate(self, kind: str, context: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        self.calls.append(kind)
        if not self.responses:
            return None
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_settings(**overrides: Any) -> Settings:
    base = dataclasses.replace(
        Settings(),
        DATABASE_URL="sqlite+aiosqlite://",
        BOT_TOKEN="",
        GEMINI_API_KEY="",
        MINUTES_PER_GAME_DAY=1,
        STARTING_CASH=100,
        BANKRUPTCY_THRESHOLD=-10000,
        REPUTATION_PENALTY_PER_DIFFICULTY=5,
        QUEST_EXPIRY_REPUTATION_PENALTY=2,
        BUG_SPAWN_CHANCE=0.15,
        MAX_OPEN_BUGS=2,
        MARKET_EVENT_CHANCE=0.40,
        AI_EVENT_CHANCE=0.30,
        MARKET_EVENT_MINUTES=10,
        STARTER_PROJECTS_MIN=10,
        AI_TIMEOUT_SECONDS=1.0,
    )
    return dataclasses.replace(base, **overrides)


@dataclass
class Player:
    user_id: int
    company_id: int
    tg_id: int

    @property
    def channel(self) -> str:
        return f"user.{self.tg_id}"


class Factory:
    """Creates rows in their own committed transactions and returns ids."""

    def __init__(self, session_maker, clock: FixedClock) -> None:
        self.session_maker = session_maker
        self.clock = clock
        self._next_tg_id = 1000

    async def player(self, cash: Any = None, **state: Any) -> Player:
        self._next_tg_id += 1
        tg_id = self._next_tg_id
        async with session_scope(self.session_maker) as session:
            user = await register_player(session, tg_id, f"Player{tg_id}")
            company = await session.scalar(select(Company).where(Company.user_id == user.id))
            if cash is not None:
                company.cash = Decimal(str(cash))
            if state:
                game_state = await session.scalar(select(GameState).where(GameState.user_id == user.id))
                for key, value in state.items():
                    setattr(game_state, key, value)
            return Player(user.id, company.id, tg_id)

    async def automation(self, player: Player, **fields: Any) -> None:
        async with session_scope(self.session_maker) as session:
            setting = await session.scalar(select(AutomationSetting).where(AutomationSetting.user_id == player.user_id))
            for key, value in fields.items():
                setattr(setting, key, value)

    async def _add(self, row) -> int:
        async with session_scope(self.session_maker) as session:
            session.add(row)
            await session.flush()
            return row.id

    async def project(self, player: Optional[Player], **fields: Any) -> int:
        data = dict(
            user_id=player.user_id if player else None,
            company_id=player.company_id if player else None,
            title="Build a Web Shop",
            difficulty=1,
            reward=Decimal("1000"),
            progress=0.0,
            status=PROJECT_IN_PROGRESS,
            started_at=self.clock.now,
        )
        data.update(fields)
        return await self._add(Project(**data))

    async def employee(self, player: Player, project_id: Optional[int] = None, **fields: Any) -> int:
        data = dict(
            company_id=player.company_id,
            name="Alex",
            productivity=50,
            salary=Decimal("3000"),
            energy=100,
            morale=100,
            status=EMPLOYEE_WORKING if project_id else EMPLOYEE_IDLE,
            assigned_project_id=project_id,
        )
        data.update(fields)
        return await self._add(Employee(**data))

    async def product(self, player: Player, **fields: Any) -> int:
        data = dict(
            user_id=player.user_id,
            company_id=player.company_id,
            name="Web Shop",
            base_monthly_revenue=Decimal("1000"),
            upkeep=Decimal("0"),
            growth_rate=0.0,
            active=True,
            launched_at=self.clock.now,
        )
        data.update(fields)
        return await self._add(Product(**data))

    async def bug(self, product_id: int, **fields: Any) -> int:
        data = dict(
            product_id=product_id,
            title="Cache Invalidation Bug",
            severity="medium",
            revenue_penalty=10.0,
            fix_cost=Decimal("300"),
            fix_time_minutes=5,
            discovered_at=self.clock.now,
        )
        data.update(fields)
        return await self._add(ProductBug(**data))

    async def quest(self, player: Player, npc_name: str = "Sarah Chen", **fields: Any) -> int:
        async with session_scope(self.session_maker) as session:
            npc = await session.scalar(select(NPC).where(NPC.name == npc_name))
            if npc is None:
                npc = NPC(name=npc_name, role="client", personality="demanding")
                session.add(npc)
                await session.flush()
            npc_id = npc.id
        data = dict(
            user_id=player.user_id,
            npc_id=npc_id,
            quest_type="complete_project",
            title="Ship it",
            current_progress=0,
            target_progress=1,
            rewards={},
        )
        data.update(fields)
        return await self._add(NPCQuest(**data))

    async def get(self, model, entity_id: int):
        async with session_scope(self.session_maker) as session:
            return await session.get(model, entity_id)

    async def all(self, model, *where) -> list:
        async with session_scope(self.session_maker) as session:
            return list((await session.execute(select(model).where(*where))).scalars())


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'tycoon.db'}")
    await init_models(Base.metadata, bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture
def generator() -> ScriptedGenerator:
    return ScriptedGenerator()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def ctx(session_maker, broadcaster, generator, settings, clock) -> JobContext:
    return JobContext(
        session_maker=session_maker,
        broadcaster=broadcaster,
        generator=generator,
        settings=settings,
        rng=random.Random(7),
        clock=clock,
    )


@pytest.fixture
def factory(session_maker, clock) -> Factory:
    return Factory(session_maker, clock)
