"""Employee state helpers shared by the jobs."""
from __future__ import annotations

from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.constants import (
    EMPLOYEE_IDLE,
    EMPLOYEE_WORKING,
    IDLE_ENERGY_REGEN,
    IDLE_MORALE_REGEN,
    LOW_STAT_THRESHOLD,
    WORK_ENERGY_COST,
)
from tycoon.database.models import Employee
from tycoon.services.economy import clamp_stat, employee_xp_for_next_level


def add_experience(employee: Employee, xp: int) -> int:
    """Grant XP and level the employee up; return levels gained."""

    employee.experience += max(0, int(xp))
    gained = 0
    while employee.experience >= employee_xp_for_next_level(employee.level):
        employee.experience -= employee_xp_for_next_level(employee.level)
        employee.level += 1
        employee.productivity += 5
        employee.morale = clamp_stat(employee.morale + 10)
        gained += 1
    return gained


def _recompute_morale(employee: Employee, morale_regen: float) -> None:
    morale = employee.morale
    if employee.status == EMPLOYEE_WORKING and employee.assigned_project_id:
        morale -= 1
    if employee.status == EMPLOYEE_IDLE or employee.energy < 50:
        morale += int(morale_regen)
    if employee.energy < LOW_STAT_THRESHOLD:
        morale -= 2
    employee.morale = clamp_stat(morale)


def work_tick(employee: Employee, morale_regen_bonus: float = 0.0) -> bool:
    """Spend one tick of work; return True if energy or morale just fell below the low mark."""

    was_low = employee.energy < LOW_STAT_THRESHOLD or employee.morale < LOW_STAT_THRESHOLD
    employee.energy = clamp_stat(employee.energy - WORK_ENERGY_COST)
    _recompute_morale(employee, IDLE_MORALE_REGEN + morale_regen_bonus)
    is_low = employee.energy < LOW_STAT_THRESHOLD or employee.morale < LOW_STAT_THRESHOLD
    return is_low and not was_low


def rest_tick(employee: Employee, morale_regen_bonus: float = 0.0, energy_regen_bonus: float = 0.0) -> None:
    """Recover an idle employee for one tick."""

    _recompute_morale(employee, IDLE_MORALE_REGEN + morale_regen_bonus)
    if employee.status == EMPLOYEE_IDLE and not employee.assigned_project_id:
        employee.energy = clamp_stat(employee.energy + int(IDLE_ENERGY_REGEN + energy_regen_bonus))


def release(employee: Employee) -> None:
    employee.status = EMPLOYEE_IDLE
    employee.assigned_project_id = None


def assign(employee: Employee, project_id: int) -> None:
    employee.status = EMPLOYEE_WORKING
    employee.assigned_project_id = project_id


async def project_staff(session: AsyncSession, project_id: int) -> List[Employee]:
    """Return employees currently assigned to ``project_id``."""

    return list(
        (
            await session.execute(
                select(Employee).where(Employee.assigned_project_id == project_id).order_by(Employee.id)
            )
        ).scalars()
    )


async def release_project_staff(session: AsyncSession, project_id: int) -> List[Employee]:
    staff = await project_staff(session, project_id)
    for employee in staff:
        release(employee)
    return staff
