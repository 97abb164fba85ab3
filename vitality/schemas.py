from pydantic import BaseModel, Field
from datetime import datetime, date
from decimal import Decimal
from typing import Optional

from vitality.constants import (
    DEFAULT_MAX_HP, DEFAULT_PUNISHMENT_TASK, DEFAULT_HP_PENALTY_RATE,
    DEFAULT_XP_MULTIPLIER, DEFAULT_HABIT_XP_REWARD, DEFAULT_HABIT_HP_IMPACT
)


# Engine snapshots (inputs/outputs of the pure calculators)
class CharacterState(BaseModel):
    user_id: str
    hp: int
    max_hp: int
    current_xp: int
    max_xp_for_next_level: int
    level: int
    credits: Decimal = Decimal("0")
    punishment_task: str = DEFAULT_PUNISHMENT_TASK
    is_onboarded: bool = False
    last_decay_check: Optional[date] = None

    class Config:
        from_attributes = True


class HabitState(BaseModel):
    id: int
    name: str
    hp_impact: int = DEFAULT_HABIT_HP_IMPACT
    xp_reward: int = DEFAULT_HABIT_XP_REWARD
    streak_current: int = 0
    last_completed_at: Optional[datetime] = None
    is_active: bool = True

    class Config:
        from_attributes = True


class RulesState(BaseModel):
    hp_penalty_rate: int = DEFAULT_HP_PENALTY_RATE
    xp_multiplier: Decimal = Decimal(str(DEFAULT_XP_MULTIPLIER))
    auto_decay_enabled: bool = True

    class Config:
        from_attributes = True


class XpAwardResult(BaseModel):
    character: CharacterState
    leveled_up: bool
    new_level: int


class DecayResult(BaseModel):
    character: CharacterState
    applied_penalty: int = 0  # Nominal, before clamping at 0 HP
    hp_lost: int = 0          # Actual HP removed
    missed_count: int = 0
    new_check_date: Optional[date] = None
    ran: bool = False  # False when today's scan already happened


# Character schemas
class CharacterCreate(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=128)
    punishment_task: str = Field(default=DEFAULT_PUNISHMENT_TASK, min_length=1, max_length=500)
    max_hp: int = Field(default=DEFAULT_MAX_HP, ge=1, le=10000)


class CharacterUpdate(BaseModel):
    punishment_task: Optional[str] = Field(None, min_length=1, max_length=500)
    max_hp: Optional[int] = Field(None, ge=1, le=10000)
    is_onboarded: Optional[bool] = None


class CharacterResponse(BaseModel):
    user_id: str
    hp: int
    max_hp: int
    current_xp: int
    max_xp_for_next_level: int
    level: int
    credits: Decimal
    punishment_task: str
    is_onboarded: bool
    last_decay_check: Optional[date] = None
    lockout_state: str
    is_locked_out: bool
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class XpAwardRequest(BaseModel):
    amount: int = Field(..., ge=0, le=1_000_000)
    source: Optional[str] = Field(None, max_length=200)  # e.g. "task:42"


class XpAwardResponse(BaseModel):
    character: CharacterResponse
    leveled_up: bool
    new_level: int


class HpAdjustRequest(BaseModel):
    delta: int = Field(..., ge=-10000, le=10000)


class SessionStartRequest(BaseModel):
    today: Optional[date] = None  # Caller's local date; server date when omitted


class DecayResponse(BaseModel):
    character: CharacterResponse
    ran: bool
    applied_penalty: int
    missed_count: int
    hp_lost: int
    new_check_date: Optional[date] = None


# Lockout schemas
class LockoutResponse(BaseModel):
    state: str
    is_locked_out: bool
    punishment_task: str
    hp: int
    max_hp: int


class RestoreRequest(BaseModel):
    confirmed: bool = False


# Rules schemas
class RulesConfigBase(BaseModel):
    hp_penalty_rate: int = Field(default=DEFAULT_HP_PENALTY_RATE, ge=0, le=1000)
    xp_multiplier: Decimal = Field(default=Decimal(str(DEFAULT_XP_MULTIPLIER)), ge=0, le=100)
    auto_decay_enabled: bool = Field(default=True)


class RulesConfigUpdate(RulesConfigBase):
    pass


class RulesConfigResponse(RulesConfigBase):
    user_id: str
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Habit schemas
class HabitCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    hp_impact: int = Field(default=DEFAULT_HABIT_HP_IMPACT, ge=0, le=1000)
    xp_reward: int = Field(default=DEFAULT_HABIT_XP_REWARD, ge=0, le=10000)


class HabitUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    hp_impact: Optional[int] = Field(None, ge=0, le=1000)
    xp_reward: Optional[int] = Field(None, ge=0, le=10000)
    is_active: Optional[bool] = None


class HabitResponse(BaseModel):
    id: int
    user_id: str
    name: str
    hp_impact: int
    xp_reward: int
    streak_current: int
    last_completed_at: Optional[datetime] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class HabitLogResponse(BaseModel):
    id: int
    habit_id: int
    xp_earned: int
    hp_change: int
    completed_at: datetime

    class Config:
        from_attributes = True


class HabitCompletionResponse(BaseModel):
    habit: HabitResponse
    character: CharacterResponse
    hp_gained: int
    xp_earned: int
    leveled_up: bool
    new_level: int


# Notification schemas
class NotificationResponse(BaseModel):
    id: int
    kind: str
    title: str
    message: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
