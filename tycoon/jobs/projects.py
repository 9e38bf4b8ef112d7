"""Project progress job."""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.constants import EMPLOYEE_WORKING, PROJECT_IN_PROGRESS
from tycoon.database.models import Project
from tycoon.jobs.base import JobContext, JobResult, Outbox, fetch_ids, finish, for_each
from tycoon.services.bonuses import BonusKey, resolve_bonuses
from tycoon.services.economy import base_progress_rate, effective_productivity
from tycoon.services.employees import project_staff, work_tick
from tycoon.services.notifications import (
    EVENT_EMPLOYEE_ATTENTION,
    EVENT_PROJECT_COMPLETED,
    EVENT_PROJECT_FAILED,
)
from tycoon.services.projects import complete_project, completion_xp, fail_project

NAME = "process-projects"


async def process_projects(ctx: JobContext) -> JobResult:
    """Advance every in-progress project by one tick."""

    result = JobResult(NAME)
    ids = await fetch_ids(ctx, select(Project.id).where(Project.status == PROJECT_IN_PROGRESS).order_by(Project.id))

    async def handle(session: AsyncSession, project_id: int, outbox: Outbox) -> bool:
        project = await session.get(Project, project_id)
        if project is None or project.status != PROJECT_IN_PROGRESS:
            return False
        now = ctx.now()
        bonuses = await resolve_bonuses(session, project.user_id, now, project_title=project.title)

        rate = base_progress_rate(project.difficulty)
        rate *= bonuses.multiplier(BonusKey.PROJECT_PROGRESS_MULTIPLIER)
        rate *= bonuses.multiplier(BonusKey.SKILL_BONUS)

        staff = [e for e in await project_staff(session, project.id) if e.status == EMPLOYEE_WORKING]
        if staff:
            boost = bonuses[BonusKey.PRODUCTIVITY_BONUS]
            rate += sum(effective_productivity(e.productivity + boost, e.energy) for e in staff) / 100
            for employee in staff:
                employee.last_worked = now
                if work_tick(employee, bonuses[BonusKey.MORALE_REGEN_BONUS]):
                    await outbox.add(
                        session,
                        project.user_id,
                        EVENT_EMPLOYEE_ATTENTION,
                        {"name": employee.name, "energy": employee.energy, "morale": employee.morale},
                    )

        project.progress = min(100.0, (project.progress or 0.0) + rate)

        if project.progress >= 100:
            if complete_project(project, staff, now):
                result.bump("completed")
                await outbox.add(
                    session,
                    project.user_id,
                    EVENT_PROJECT_COMPLETED,
                    {"project_id": project.id, "title": project.title, "xp": completion_xp(project)},
                )
                await outbox.add_counts(session, project.user_id)
        elif project.deadline is not None and project.deadline < now:
            lost = await fail_project(session, project, now, ctx.settings)
            if lost is not None:
                result.bump("failed_deadline")
                await outbox.add(
                    session,
                    project.user_id,
                    EVENT_PROJECT_FAILED,
                    {"project_id": project.id, "title": project.title, "penalty": lost},
                )
        return True

    await for_each(ctx, result, ids, handle)
    return finish(result)
