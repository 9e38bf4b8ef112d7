"""ORM models for the simulation entity store."""
from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, List, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from tycoon.constants import (
    BUG_ACTIVE,
    EMPLOYEE_IDLE,
    PROJECT_AVAILABLE,
    QUEST_ACTIVE,
)


CENT = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """Quantize ``value`` to cents (half-up)."""

    if isinstance(value, float):
        value = repr(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class Money(TypeDecorator):
    """Fixed-point money stored as an integer count of the smallest unit.

    Values go in and come out as ``Decimal`` with ``places`` fractional digits
    (cents by default), so a balance survives any number of save/load cycles
    unchanged.
    """

    impl = BigInteger
    cache_ok = True

    def __init__(self, places: int = 2) -> None:
        super().__init__()
        self.places = places
        self.quantum = Decimal(1).scaleb(-places)

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, float):
            value = repr(value)
        return int(Decimal(value).quantize(self.quantum, rounding=ROUND_HALF_UP).scaleb(self.places))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(int(value)).scaleb(-self.places).quantize(self.quantum)


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    tg_id: Mapped[int] = mapped_column(BigInteger, unique=True, index=True)
    first_name: Mapped[str] = mapped_column(String(128), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime)


class Company(Base):
    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(150))
    cash: Mapped[Decimal] = mapped_column(Money, default=Decimal("100.00"))
    company_level: Mapped[int] = mapped_column(Integer, default=1)
    monthly_revenue: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"))
    monthly_costs: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"))


class GameState(Base):
    __tablename__ = "game_states"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), unique=True)
    level: Mapped[int] = mapped_column(Integer, default=1)
    xp: Mapped[int] = mapped_column(Integer, default=0)
    reputation: Mapped[int] = mapped_column(Integer, default=0)
    completed_projects: Mapped[int] = mapped_column(Integer, default=0)
    prestige_level: Mapped[int] = mapped_column(Integer, default=0)
    prestige_points: Mapped[int] = mapped_column(Integer, default=0)
    current_day: Mapped[int] = mapped_column(Integer, default=1)
    click_power: Mapped[Decimal] = mapped_column(Money, default=Decimal("1.00"))
    auto_income: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"))  # per second
    upgrades: Mapped[dict] = mapped_column(JSON, default=dict)
    total_clicks: Mapped[int] = mapped_column(Integer, default=0)
    lifetime_earnings: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"))


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(120))
    role: Mapped[str] = mapped_column(String(30), default="junior")
    productivity: Mapped[int] = mapped_column(Integer, default=50)
    salary: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"))  # monthly
    energy: Mapped[int] = mapped_column(Integer, default=100)
    morale: Mapped[int] = mapped_column(Integer, default=100)
    level: Mapped[int] = mapped_column(Integer, default=1)
    experience: Mapped[int] = mapped_column(Integer, default=0)
    projects_completed: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(20), default=EMPLOYEE_IDLE)
    assigned_project_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True
    )
    last_worked: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    company_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("companies.id", ondelete="SET NULL"), nullable=True
    )
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(Text, default="")
    difficulty: Mapped[int] = mapped_column(Integer, default=1)
    reward: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"))
    progress: Mapped[float] = mapped_column(Float, default=0.0)
    status: Mapped[str] = mapped_column(String(20), default=PROJECT_AVAILABLE)
    deadline: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)
    failed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)

    __table_args__ = (Index("ix_projects_status_deadline", "status", "deadline"),)


class Product(Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id", ondelete="CASCADE"), index=True)
    source_project_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("projects.id", ondelete="SET NULL"), unique=True, nullable=True
    )
    name: Mapped[str] = mapped_column(String(200))
    base_monthly_revenue: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"))
    upkeep: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"))
    growth_rate: Mapped[float] = mapped_column(Float, default=0.0)  # monthly
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    launched_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)
    # sub-cent revenue not yet credited to the company
    revenue_carry: Mapped[Decimal] = mapped_column(Money(8), default=Decimal("0"))


class ProductBug(Base):
    __tablename__ = "product_bugs"

    id: Mapped[int] = mapped_column(primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="CASCADE"), index=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(Text, default="")
    severity: Mapped[str] = mapped_column(String(20))
    revenue_penalty: Mapped[float] = mapped_column(Float, default=0.0)  # percent
    fix_cost: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"))
    fix_time_minutes: Mapped[int] = mapped_column(Integer, default=5)
    status: Mapped[str] = mapped_column(String(20), default=BUG_ACTIVE)
    discovered_at: Mapped[datetime] = mapped_column(DateTime)
    fix_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)
    fixed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)

    __table_args__ = (Index("ix_product_bugs_product_status", "product_id", "status"),)


class MarketEvent(Base):
    __tablename__ = "market_events"

    id: Mapped[int] = mapped_column(primary_key=True)
    event_type: Mapped[str] = mapped_column(String(100))
    description: Mapped[str] = mapped_column(Text, default="")
    effect: Mapped[dict] = mapped_column(JSON, default=dict)
    source: Mapped[str] = mapped_column(String(20), default="static")
    start_time: Mapped[datetime] = mapped_column(DateTime)
    end_time: Mapped[datetime] = mapped_column(DateTime)

    __table_args__ = (Index("ix_market_events_window", "start_time", "end_time"),)


class MarketingCampaign(Base):
    __tablename__ = "marketing_campaigns"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(150))
    cost: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"))
    revenue_multiplier: Mapped[float] = mapped_column(Float, default=1.0)
    start_time: Mapped[datetime] = mapped_column(DateTime)
    end_time: Mapped[datetime] = mapped_column(DateTime)


class Research(Base):
    __tablename__ = "researches"

    id: Mapped[int] = mapped_column(primary_key=True)
    key: Mapped[str] = mapped_column(String(80), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(150))
    category: Mapped[str] = mapped_column(String(30))
    cost: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"))
    required_level: Mapped[int] = mapped_column(Integer, default=1)
    effects: Mapped[dict] = mapped_column(JSON, default=dict)


class UserResearch(Base):
    __tablename__ = "user_researches"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    research_id: Mapped[int] = mapped_column(ForeignKey("researches.id", ondelete="CASCADE"))
    unlocked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)

    __table_args__ = (UniqueConstraint("user_id", "research_id", name="uq_user_research"),)


class Skill(Base):
    __tablename__ = "skills"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(120), unique=True)
    category: Mapped[str] = mapped_column(String(30))
    project_types: Mapped[List[str]] = mapped_column(JSON, default=list)
    efficiency_bonus: Mapped[float] = mapped_column(Float, default=0.0)
    max_level: Mapped[int] = mapped_column(Integer, default=10)


class UserSkill(Base):
    __tablename__ = "user_skills"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    skill_id: Mapped[int] = mapped_column(ForeignKey("skills.id", ondelete="CASCADE"))
    level: Mapped[int] = mapped_column(Integer, default=1)
    experience: Mapped[int] = mapped_column(Integer, default=0)
    unlocked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)

    __table_args__ = (UniqueConstraint("user_id", "skill_id", name="uq_user_skill"),)


class NPC(Base):
    __tablename__ = "npcs"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(120), unique=True)
    role: Mapped[str] = mapped_column(String(50))
    personality: Mapped[str] = mapped_column(String(50), default="friendly")


class NPCQuest(Base):
    __tablename__ = "npc_quests"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    npc_id: Mapped[int] = mapped_column(ForeignKey("npcs.id", ondelete="CASCADE"))
    required_project_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("projects.id", ondelete="SET NULL"), nullable=True
    )
    quest_type: Mapped[str] = mapped_column(String(50))
    title: Mapped[str] = mapped_column(String(200))
    current_progress: Mapped[int] = mapped_column(Integer, default=0)
    target_progress: Mapped[int] = mapped_column(Integer, default=1)
    rewards: Mapped[dict] = mapped_column(JSON, default=dict)
    status: Mapped[str] = mapped_column(String(20), default=QUEST_ACTIVE)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=None)

    __table_args__ = (Index("ix_npc_quests_user_npc_status", "user_id", "npc_id", "status"),)


class AutomationSetting(Base):
    __tablename__ = "automation_settings"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), unique=True)
    auto_rest_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    auto_rest_energy_threshold: Mapped[int] = mapped_column(Integer, default=30)
    auto_rest_morale_threshold: Mapped[int] = mapped_column(Integer, default=30)
    auto_assign_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    auto_assign_min_energy: Mapped[int] = mapped_column(Integer, default=50)
    auto_assign_min_morale: Mapped[int] = mapped_column(Integer, default=50)


class EconomyLog(Base):
    __tablename__ = "economy_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id", ondelete="CASCADE"), index=True)
    type: Mapped[str] = mapped_column(String(30))
    amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0.00"))
    meta: Mapped[Optional[dict]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime)
    __table_args__ = (Index("ix_economy_company_created", "company_id", "created_at"),)
