"""Core constants, balance catalogs and notification strings."""
from __future__ import annotations

from dataclasses import dataclass


EMPLOYEE_WORKING = "working"
EMPLOYEE_IDLE = "idle"
EMPLOYEE_QUIT = "quit"

PROJECT_AVAILABLE = "available"
PROJECT_QUEUED = "queued"
PROJECT_IN_PROGRESS = "in_progress"
PROJECT_COMPLETED = "completed"
PROJECT_FAILED = "failed"
PROJECT_TERMINAL = frozenset({PROJECT_COMPLETED, PROJECT_FAILED})

BUG_ACTIVE = "active"
BUG_FIXING = "fixing"
BUG_FIXED = "fixed"

QUEST_ACTIVE = "active"
QUEST_COMPLETED = "completed"
QUEST_EXPIRED = "expired"

MINUTES_PER_MONTH = 30 * 24 * 60
DAYS_PER_MONTH = 30
LOW_STAT_THRESHOLD = 30

BASE_PROGRESS_RATE = 5.0
DIFFICULTY_RATE_FACTOR = 0.3
COMPLETION_XP_PER_DIFFICULTY = 20
MAX_AUTO_ASSIGN_PER_PROJECT = 10
UNPAID_SALARY_MORALE_PENALTY = 10
IDLE_MORALE_REGEN = 2
IDLE_ENERGY_REGEN = 3
WORK_ENERGY_COST = 1

PRODUCT_REVENUE_PERCENTAGE = "0.12"
PRODUCT_UPKEEP_PERCENTAGE = "0.18"
PRODUCT_GROWTH_RATE = 0.025

STARTER_REWARD_PER_DIFFICULTY = 150
STARTER_DEADLINE_HOURS_PER_DIFFICULTY = 3
STARTER_MAX_DIFFICULTY = 3

BUG_TEMPLATES = [
    {
        "title": "Database Connection Timeout",
        "description": "Users experiencing slow page loads due to database connection issues.",
        "severity": "high",
        "revenue_penalty": 15.0,
        "fix_cost": 500,
        "fix_time_minutes": 10,
    },
    {
        "title": "Memory Leak in Background Jobs",
        "description": "Server memory usage increasing over time, causing occasional crashes.",
        "severity": "critical",
        "revenue_penalty": 25.0,
        "fix_cost": 1000,
        "fix_time_minutes": 20,
    },
    {
        "title": "API Rate Limiting Too Aggressive",
        "description": "Users complaining about frequent rate limit errors.",
        "severity": "medium",
        "revenue_penalty": 10.0,
        "fix_cost": 300,
        "fix_time_minutes": 5,
    },
    {
        "title": "Payment Gateway Integration Error",
        "description": "Random payment failures occurring. Direct revenue impact.",
        "severity": "critical",
        "revenue_penalty": 30.0,
        "fix_cost": 1500,
        "fix_time_minutes": 15,
    },
    {
        "title": "Email Notification System Down",
        "description": "Users not receiving important notifications.",
        "severity": "low",
        "revenue_penalty": 5.0,
        "fix_cost": 200,
        "fix_time_minutes": 3,
    },
    {
        "title": "Cache Invalidation Bug",
        "description": "Stale data being served to users.",
        "severity": "medium",
        "revenue_penalty": 12.0,
        "fix_cost": 400,
        "fix_time_minutes": 8,
    },
    {
        "title": "Mobile App Crash on iOS 17",
        "description": "App crashing for users on latest iOS version.",
        "severity": "high",
        "revenue_penalty": 20.0,
        "fix_cost": 800,
        "fix_time_minutes": 12,
    },
    {
        "title": "Third-Party API Deprecation",
        "description": "External API we depend on is being deprecated.",
        "severity": "high",
        "revenue_penalty": 18.0,
        "fix_cost": 600,
        "fix_time_minutes": 25,
    },
]

STATIC_MARKET_EVENTS = [
    {
        "event_type": "market_boom",
        "description": "Market Boom! Consumers are spending more.",
        "effect": {"global_revenue_multiplier": 0.5},
    },
    {
        "event_type": "tech_crash",
        "description": "Tech Crash! Investors cut budgets.",
        "effect": {"global_revenue_multiplier": -0.3},
    },
    {
        "event_type": "hype_trend",
        "description": "Hype Trend! Teams move faster on projects.",
        "effect": {"project_progress_multiplier": 0.2},
    },
    {
        "event_type": "bug_outbreak",
        "description": "Bug Outbreak! Maintenance costs rise.",
        "effect": {"upkeep_multiplier": 0.15},
    },
]

AI_EFFECT_KEYS = {
    "revenue": "global_revenue_multiplier",
    "progress": "project_progress_multiplier",
    "cost": "upkeep_multiplier",
    "bonus": "global_revenue_multiplier",
}

STARTER_PROJECT_TITLES = [
    "Build a Simple Calculator App",
    "Design a Personal Blog",
    "Create a To-Do List App",
    "Build a Weather Widget",
    "Design a Landing Page",
    "Create a Random Quote Generator",
    "Build a Password Generator",
    "Design a Portfolio Website",
    "Create a Color Palette Generator",
    "Build a Pomodoro Timer",
    "Design a Countdown Timer",
    "Create a Note-Taking App",
    "Build a Unit Converter",
    "Design a Recipe Card Maker",
    "Create a Magic 8-Ball",
]


@dataclass(frozen=True, slots=True)
class LocaleEN:
    """Notification strings pushed to players."""

    PROJECT_COMPLETED: str = "Project «{title}» completed! Your team earned {xp} XP each."
    PROJECT_FAILED: str = "Project «{title}» failed: deadline passed. Reputation -{penalty}."
    EMPLOYEE_TIRED: str = "{name} needs attention: energy {energy}%, morale {morale}%."
    SALARY_UNPAID: str = "Not enough cash to pay salaries ({need}). Team morale dropped."
    BANKRUPT: str = "Bankruptcy! {company} lost everything. Knowledge is kept, start over with {cash}."
    BUG_SPAWNED: str = "New bug on {product}: {title} (-{penalty}% revenue)."
    BUG_FIXED: str = "Bug fixed on {product}: {title}."
    QUEST_EXPIRED: str = "Quest «{title}» expired."
    NOTIFICATIONS: str = "Updates: {projects} completed projects, {employees} tired employees, {bugs} open bugs."

    CURRENCY: str = "$"


EN = LocaleEN()
