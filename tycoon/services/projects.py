"""Project lifecycle transitions.

Both terminal transitions are guarded on the current status, so calling them
again for a finished project does nothing.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.config import SETTINGS, Settings
from tycoon.constants import COMPLETION_XP_PER_DIFFICULTY, PROJECT_COMPLETED, PROJECT_FAILED, PROJECT_TERMINAL
from tycoon.database.models import Employee, Project
from tycoon.services.employees import add_experience, release, release_project_staff
from tycoon.services.players import apply_reputation_penalty, get_game_state

logger = logging.getLogger(__name__)


def completion_xp(project: Project) -> int:
    return project.difficulty * COMPLETION_XP_PER_DIFFICULTY


def complete_project(project: Project, staff: List[Employee], now: datetime) -> bool:
    """Finish ``project``, reward and release its staff; False if already terminal."""

    if project.status in PROJECT_TERMINAL:
        return False
    project.status = PROJECT_COMPLETED
    project.progress = 100.0
    project.completed_at = now
    xp = completion_xp(project)
    for employee in staff:
        add_experience(employee, xp)
        employee.projects_completed += 1
        release(employee)
    logger.info("Project completed", extra={"project_id": project.id, "staff": len(staff), "xp": xp})
    return True


async def fail_project(
    session: AsyncSession, project: Project, now: datetime, settings: Settings = SETTINGS
) -> int | None:
    """Fail ``project`` after a missed deadline.

    Returns the reputation actually lost, or None if the project was already
    terminal.
    """

    if project.status in PROJECT_TERMINAL:
        return None
    project.status = PROJECT_FAILED
    project.failed_at = now
    await release_project_staff(session, project.id)
    lost = 0
    if project.user_id is not None:
        state = await get_game_state(session, project.user_id)
        if state is not None:
            lost = apply_reputation_penalty(state, project.difficulty * settings.REPUTATION_PENALTY_PER_DIFFICULTY)
    logger.info("Project failed", extra={"project_id": project.id, "reputation_lost": lost})
    return lost
