"""Deadline and quest expiry job."""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.constants import PROJECT_IN_PROGRESS, PROJECT_QUEUED, QUEST_ACTIVE, QUEST_EXPIRED
from tycoon.database.models import NPCQuest, Project
from tycoon.jobs.base import JobContext, JobResult, Outbox, fetch_ids, finish, for_each
from tycoon.services.notifications import EVENT_PROJECT_FAILED, EVENT_QUEST_EXPIRED
from tycoon.services.players import apply_reputation_penalty, get_game_state
from tycoon.services.projects import fail_project

NAME = "check-deadlines"
OPEN_STATUSES = (PROJECT_QUEUED, PROJECT_IN_PROGRESS)


async def check_deadlines(ctx: JobContext) -> JobResult:
    """Fail overdue projects and expire overdue quests."""

    result = JobResult(NAME)
    now = ctx.now()

    project_ids = await fetch_ids(
        ctx,
        select(Project.id)
        .where(Project.status.in_(OPEN_STATUSES), Project.deadline.is_not(None), Project.deadline < now)
        .order_by(Project.id),
    )

    async def fail_one(session: AsyncSession, project_id: int, outbox: Outbox) -> bool:
        project = await session.get(Project, project_id)
        if project is None or project.status not in OPEN_STATUSES:
            return False
        lost = await fail_project(session, project, now, ctx.settings)
        if lost is None:
            return False
        result.bump("projects_failed")
        await outbox.add(
            session, project.user_id, EVENT_PROJECT_FAILED, {"project_id": project.id, "title": project.title, "penalty": lost}
        )
        return True

    await for_each(ctx, result, project_ids, fail_one)

    quest_ids = await fetch_ids(
        ctx,
        select(NPCQuest.id)
        .where(NPCQuest.status == QUEST_ACTIVE, NPCQuest.expires_at.is_not(None), NPCQuest.expires_at < now)
        .order_by(NPCQuest.id),
    )

    async def expire_one(session: AsyncSession, quest_id: int, outbox: Outbox) -> bool:
        quest = await session.get(NPCQuest, quest_id)
        if quest is None or quest.status != QUEST_ACTIVE:
            return False
        quest.status = QUEST_EXPIRED
        penalty = ctx.settings.QUEST_EXPIRY_REPUTATION_PENALTY
        if penalty > 0:
            state = await get_game_state(session, quest.user_id)
            if state is not None:
                apply_reputation_penalty(state, penalty)
        result.bump("quests_expired")
        await outbox.add(session, quest.user_id, EVENT_QUEST_EXPIRED, {"quest_id": quest.id, "title": quest.title})
        return True

    await for_each(ctx, result, quest_ids, expire_one)
    return finish(result)
