"""Automation rules: auto-rest and weighted auto-assign."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.constants import EMPLOYEE_IDLE, EMPLOYEE_WORKING, PROJECT_IN_PROGRESS
from tycoon.database.models import AutomationSetting, Employee, Project
from tycoon.jobs.base import JobContext, JobResult, Outbox, fetch_ids, finish, for_each
from tycoon.services.economy import desired_headcount
from tycoon.services.employees import assign, release
from tycoon.services.players import get_company

logger = logging.getLogger(__name__)

NAME = "process-automation"


@dataclass
class AssignmentSlot:
    project_id: int
    difficulty: int
    assigned: int
    needed: int


def build_slots(projects: Sequence[Project], staff_counts: dict[int, int], idle_count: int) -> List[AssignmentSlot]:
    """Return one slot per project, hardest first, with the staff it still needs."""

    ordered = sorted(projects, key=lambda p: (-p.difficulty, p.id))
    total_difficulty = sum(p.difficulty for p in ordered)
    slots = []
    for project in ordered:
        assigned = staff_counts.get(project.id, 0)
        target = desired_headcount(idle_count, project.difficulty, total_difficulty, len(ordered))
        slots.append(AssignmentSlot(project.id, project.difficulty, assigned, max(0, target - assigned)))
    return slots


def round_robin(slots: List[AssignmentSlot], idle_count: int) -> List[int]:
    """Hand out ``idle_count`` employees one per slot per pass.

    Returns the project id for each employee index that got a project, in
    order. Stops when employees run out or a full pass assigns nobody.
    """

    plan: List[int] = []
    while len(plan) < idle_count:
        assigned_this_pass = False
        for index in range(len(slots)):
            if len(plan) >= idle_count:
                break
            if slots[index].needed <= 0:
                continue
            slots[index].needed -= 1
            slots[index].assigned += 1
            plan.append(slots[index].project_id)
            assigned_this_pass = True
        if not assigned_this_pass:
            break
    return plan


def rest_reason(employee: Employee, settings: AutomationSetting) -> str | None:
    if employee.energy < settings.auto_rest_energy_threshold:
        return "energy"
    if employee.morale < settings.auto_rest_morale_threshold:
        return "morale"
    return None


async def process_automation(ctx: JobContext) -> JobResult:
    """Apply each player's automation settings to their team."""

    result = JobResult(NAME)
    ids = await fetch_ids(
        ctx,
        select(AutomationSetting.id)
        .where(or_(AutomationSetting.auto_rest_enabled.is_(True), AutomationSetting.auto_assign_enabled.is_(True)))
        .order_by(AutomationSetting.id),
    )

    async def handle(session: AsyncSession, setting_id: int, outbox: Outbox) -> bool:
        settings = await session.get(AutomationSetting, setting_id)
        if settings is None:
            return False
        company = await get_company(session, settings.user_id)
        if company is None:
            return False
        employees = list(
            (
                await session.execute(select(Employee).where(Employee.company_id == company.id).order_by(Employee.id))
            ).scalars()
        )

        if settings.auto_rest_enabled:
            for employee in employees:
                if employee.status != EMPLOYEE_WORKING or not employee.assigned_project_id:
                    continue
                reason = rest_reason(employee, settings)
                if reason:
                    release(employee)
                    result.bump("rested")
                    logger.info("Auto-rested employee", extra={"employee_id": employee.id, "reason": reason})

        if settings.auto_assign_enabled:
            idle = [
                e
                for e in employees
                if e.status == EMPLOYEE_IDLE
                and not e.assigned_project_id
                and e.energy >= settings.auto_assign_min_energy
                and e.morale >= settings.auto_assign_min_morale
            ]
            if idle:
                projects = list(
                    (
                        await session.execute(
                            select(Project).where(
                                Project.user_id == settings.user_id, Project.status == PROJECT_IN_PROGRESS
                            )
                        )
                    ).scalars()
                )
                staff_counts: dict[int, int] = {}
                for employee in employees:
                    if employee.assigned_project_id:
                        staff_counts[employee.assigned_project_id] = staff_counts.get(employee.assigned_project_id, 0) + 1
                plan = round_robin(build_slots(projects, staff_counts, len(idle)), len(idle))
                for index, project_id in enumerate(plan):
                    assign(idle[index], project_id)
                result.bump("assigned", len(plan))
        return True

    await for_each(ctx, result, ids, handle)
    return finish(result)
