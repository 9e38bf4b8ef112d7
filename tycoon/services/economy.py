"""Economic and progression related formulas."""
from __future__ import annotations

from decimal import Decimal
from math import ceil
from typing import Iterable

from tycoon.constants import (
    BASE_PROGRESS_RATE,
    DAYS_PER_MONTH,
    DIFFICULTY_RATE_FACTOR,
    MAX_AUTO_ASSIGN_PER_PROJECT,
    MINUTES_PER_MONTH,
)
from tycoon.database.models import to_money


def base_progress_rate(difficulty: int) -> float:
    """Return the per-tick progress (percent) for a project of ``difficulty``."""

    return BASE_PROGRESS_RATE / (max(1, difficulty) * DIFFICULTY_RATE_FACTOR)


def effective_productivity(productivity: float, energy: int) -> float:
    """Return productivity scaled by the employee's remaining energy."""

    return max(0.0, productivity * (max(0, min(100, energy)) / 100))


def employee_xp_for_next_level(level: int) -> int:
    """Return XP an employee needs to leave ``level``."""

    return int(100 * level * 1.5)


def product_monthly_revenue(
    base_monthly_revenue: Decimal | float,
    growth_rate: float,
    months: int,
    *,
    growth_bonus: float = 0.0,
) -> float:
    """Return geometric revenue after ``months`` of compounding growth."""

    rate = growth_rate * (1 + growth_bonus)
    return float(base_monthly_revenue) * (1 + rate) ** max(0, months)


def bug_penalty_multiplier(penalties: Iterable[float]) -> float:
    """Return the compounding revenue multiplier for the given bug penalties (percent)."""

    multiplier = 1.0
    for penalty in penalties:
        multiplier *= max(0.0, 1 - float(penalty) / 100)
    return multiplier


def per_minute_net(monthly_revenue: float, monthly_upkeep: float) -> float:
    """Return the net amount a product earns per simulated minute."""

    return (monthly_revenue - monthly_upkeep) / MINUTES_PER_MONTH


def daily_salary(salaries: Iterable[Decimal]) -> Decimal:
    """Return the salary bill for one tick from monthly salaries."""

    return to_money(sum(salaries, Decimal("0")) / DAYS_PER_MONTH)


def desired_headcount(idle_count: int, difficulty: int, total_difficulty: int, project_count: int) -> int:
    """Return how many staff a project should have given the idle pool."""

    if total_difficulty > 0:
        weight = difficulty / total_difficulty
    else:
        weight = 1 / max(1, project_count)
    return max(1, min(MAX_AUTO_ASSIGN_PER_PROJECT, ceil(idle_count * weight * 2)))


def company_target_level(
    completed_projects: int, lifetime_earnings: Decimal | float, team_size: int, products: int
) -> int:
    """Return the company level earned by overall progress."""

    return max(
        1,
        1
        + completed_projects // 5
        + int(float(lifetime_earnings) // 50000)
        + team_size // 3
        + max(0, products) // 2,
    )


def clamp_stat(value: int) -> int:
    """Clamp an energy/morale value into 0..100."""

    return max(0, min(100, value))
