"""Job board top-up with easy starter projects."""
from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from sqlalchemy import func, select

from tycoon.constants import (
    PROJECT_AVAILABLE,
    STARTER_DEADLINE_HOURS_PER_DIFFICULTY,
    STARTER_MAX_DIFFICULTY,
    STARTER_PROJECT_TITLES,
    STARTER_REWARD_PER_DIFFICULTY,
)
from tycoon.database.base import session_scope
from tycoon.database.models import Project
from tycoon.jobs.base import JobContext, JobResult, finish

NAME = "spawn-starter-projects"


def _open_listings():
    return (
        Project.user_id.is_(None),
        Project.status == PROJECT_AVAILABLE,
        Project.difficulty <= STARTER_MAX_DIFFICULTY,
    )


async def spawn_starter_projects(ctx: JobContext) -> JobResult:
    """Keep at least ``STARTER_PROJECTS_MIN`` open easy listings."""

    result = JobResult(NAME)
    now = ctx.now()
    async with session_scope(ctx.session_maker) as session:
        available = await session.scalar(select(func.count()).select_from(Project).where(*_open_listings()))
        missing = max(0, ctx.settings.STARTER_PROJECTS_MIN - int(available or 0))
        if missing == 0:
            result.skipped += 1
            return finish(result)
        listed = set((await session.execute(select(Project.title).where(*_open_listings()))).scalars())
        titles = [t for t in STARTER_PROJECT_TITLES if t not in listed] or list(STARTER_PROJECT_TITLES)
        for index in range(missing):
            difficulty = ctx.rng.randint(1, STARTER_MAX_DIFFICULTY)
            session.add(
                Project(
                    user_id=None,
                    company_id=None,
                    title=titles[index % len(titles)],
                    description="Starter project for new studios.",
                    difficulty=difficulty,
                    reward=Decimal(STARTER_REWARD_PER_DIFFICULTY * difficulty),
                    progress=0.0,
                    status=PROJECT_AVAILABLE,
                    deadline=now + timedelta(hours=STARTER_DEADLINE_HOURS_PER_DIFFICULTY * difficulty),
                )
            )
        result.processed = missing
    return finish(result)
