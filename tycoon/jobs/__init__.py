"""Aggregate all scheduled jobs."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from tycoon.config import SETTINGS, Settings
from tycoon.jobs import automation, bugs, calendar, deadlines, employees, income, market, payroll, products, projects
from tycoon.jobs import starter_projects
from tycoon.jobs.base import JobContext, JobResult

JobFn = Callable[[JobContext], Awaitable[JobResult]]

STARTER_PROJECTS_EVERY = 30


@dataclass(frozen=True)
class JobSpec:
    name: str
    run: JobFn
    every: int = 1


def setup_jobs(settings: Optional[Settings] = None) -> List[JobSpec]:
    """Return the jobs in tick order.

    Payroll sees income accrued earlier in the same tick and bankruptcy sees
    the payroll debit.
    """

    settings = settings or SETTINGS
    return [
        JobSpec(income.NAME, income.calculate_idle_income),
        JobSpec(projects.NAME, projects.process_projects),
        JobSpec(employees.NAME, employees.update_employees_state),
        JobSpec(automation.NAME, automation.process_automation),
        JobSpec(payroll.PAYROLL, payroll.pay_salaries),
        JobSpec(payroll.BANKRUPTCY, payroll.check_bankruptcy),
        JobSpec(products.NAME, products.process_products),
        JobSpec(bugs.SPAWN, bugs.spawn_product_bugs),
        JobSpec(bugs.COMPLETE, bugs.complete_bug_fixes),
        JobSpec(market.NAME, market.trigger_market_event),
        JobSpec(deadlines.NAME, deadlines.check_deadlines),
        JobSpec(calendar.DAY, calendar.increment_day, every=max(1, settings.MINUTES_PER_GAME_DAY)),
        JobSpec(calendar.COMPANY_LEVEL, calendar.update_company_level),
        JobSpec(starter_projects.NAME, starter_projects.spawn_starter_projects, every=STARTER_PROJECTS_EVERY),
    ]


def job_names() -> List[str]:
    return [spec.name for spec in setup_jobs()]


__all__ = ["JobContext", "JobResult", "JobSpec", "setup_jobs", "job_names"]
