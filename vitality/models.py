from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Date, Numeric, ForeignKey
)
from datetime import datetime

from vitality.database import Base
from vitality.constants import (
    DEFAULT_MAX_HP, DEFAULT_STARTING_LEVEL, DEFAULT_XP_THRESHOLD,
    DEFAULT_PUNISHMENT_TASK, DEFAULT_HP_PENALTY_RATE, DEFAULT_XP_MULTIPLIER,
    DEFAULT_HABIT_XP_REWARD, DEFAULT_HABIT_HP_IMPACT
)


class Character(Base):
    __tablename__ = "characters"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, unique=True, index=True)

    # Vitals
    hp = Column(Integer, nullable=False, default=DEFAULT_MAX_HP)
    max_hp = Column(Integer, nullable=False, default=DEFAULT_MAX_HP)

    # Progression
    current_xp = Column(Integer, nullable=False, default=0)
    max_xp_for_next_level = Column(Integer, nullable=False, default=DEFAULT_XP_THRESHOLD)
    level = Column(Integer, nullable=False, default=DEFAULT_STARTING_LEVEL)

    # Wallet (owned by the finance module, never touched by the engine)
    credits = Column(Numeric(14, 2), nullable=False, default=0)

    punishment_task = Column(String, nullable=False, default=DEFAULT_PUNISHMENT_TASK)
    is_onboarded = Column(Boolean, default=False)

    # Last calendar date the decay scan ran for this user
    last_decay_check = Column(Date, nullable=True)

    # Optimistic concurrency: every UPDATE is conditional on this value
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    __mapper_args__ = {"version_id_col": version}


class Habit(Base):
    __tablename__ = "habits"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    hp_impact = Column(Integer, nullable=False, default=DEFAULT_HABIT_HP_IMPACT)  # HP healed on completion
    xp_reward = Column(Integer, nullable=False, default=DEFAULT_HABIT_XP_REWARD)
    streak_current = Column(Integer, nullable=False, default=0)
    last_completed_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)  # Inactive habits are never decayed
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class HabitLog(Base):
    __tablename__ = "habit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    habit_id = Column(Integer, ForeignKey("habits.id"), nullable=False, index=True)
    xp_earned = Column(Integer, default=0)
    hp_change = Column(Integer, default=0)
    completed_at = Column(DateTime, default=datetime.now)


class RulesConfig(Base):
    __tablename__ = "rules_config"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, unique=True, index=True)

    hp_penalty_rate = Column(Integer, nullable=False, default=DEFAULT_HP_PENALTY_RATE)
    xp_multiplier = Column(Numeric(6, 2), nullable=False, default=DEFAULT_XP_MULTIPLIER)

    # Background sweep applies decay without waiting for the app to open
    auto_decay_enabled = Column(Boolean, default=True)

    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    kind = Column(String, nullable=False)  # level_up, decay, depleted, restored, error
    title = Column(String, nullable=False)
    message = Column(String, nullable=True)
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.now)
