"""Database seeding helpers."""
from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tycoon.database.models import NPC, Research, Skill

SEED_RESEARCHES = [
    {"key": "agile_methods", "name": "Agile Methods", "category": "project", "cost": 2000, "required_level": 1,
     "effects": {"project_progress_multiplier": 0.10}},
    {"key": "ci_pipeline", "name": "CI Pipeline", "category": "project", "cost": 6000, "required_level": 2,
     "effects": {"project_progress_multiplier": 0.15, "project_reward_multiplier": 0.05}},
    {"key": "growth_hacking", "name": "Growth Hacking", "category": "product", "cost": 5000, "required_level": 2,
     "effects": {"product_growth_multiplier": 0.10}},
    {"key": "cloud_optimization", "name": "Cloud Optimization", "category": "product", "cost": 4000, "required_level": 1,
     "effects": {"upkeep_reduction": 0.10}},
    {"key": "premium_tier", "name": "Premium Tier", "category": "product", "cost": 9000, "required_level": 3,
     "effects": {"product_revenue_multiplier": 0.15}},
    {"key": "ergonomic_office", "name": "Ergonomic Office", "category": "employee", "cost": 3000, "required_level": 1,
     "effects": {"energy_regen_bonus": 1, "morale_regen_bonus": 1}},
    {"key": "mentorship", "name": "Mentorship Program", "category": "employee", "cost": 7000, "required_level": 3,
     "effects": {"productivity_bonus": 10}},
]

SEED_SKILLS = [
    {"name": "Frontend Development", "category": "web", "project_types": ["web", "landing", "website", "blog"],
     "efficiency_bonus": 0.05},
    {"name": "Backend Development", "category": "web", "project_types": ["api", "database", "server"],
     "efficiency_bonus": 0.05},
    {"name": "Mobile Development", "category": "mobile", "project_types": ["mobile", "ios", "android", "app"],
     "efficiency_bonus": 0.06},
    {"name": "UI Design", "category": "design", "project_types": ["design", "portfolio", "palette"],
     "efficiency_bonus": 0.04},
    {"name": "Tooling", "category": "tools", "project_types": ["calculator", "converter", "generator", "timer"],
     "efficiency_bonus": 0.03},
]

SEED_NPCS = [
    {"name": "Sarah Chen", "role": "client", "personality": "demanding"},
    {"name": "Marcus Hale", "role": "investor", "personality": "analytical"},
    {"name": "Priya Nair", "role": "mentor", "personality": "friendly"},
]


async def seed_if_needed(session: AsyncSession) -> None:
    """Populate static lookup tables if they are empty."""

    if (await session.scalar(select(func.count()).select_from(Research))) == 0:
        for data in SEED_RESEARCHES:
            session.add(Research(**data))

    if (await session.scalar(select(func.count()).select_from(Skill))) == 0:
        for data in SEED_SKILLS:
            session.add(Skill(**data))

    if (await session.scalar(select(func.count()).select_from(NPC))) == 0:
        for data in SEED_NPCS:
            session.add(NPC(**data))
