"""
Habit service.
Habit bookkeeping plus habit completion, which heals the character by the
habit's hp_impact and awards its xp_reward in a single conditional write.
"""
import logging
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session

from vitality.exceptions import (
    CharacterNotFoundException, HabitNotFoundException,
    PersistenceException, ValidationException
)
from vitality.models import Character, Habit, HabitLog
from vitality.repositories.character_repository import CharacterRepository
from vitality.repositories.habit_repository import HabitRepository, HabitLogRepository
from vitality.schemas import CharacterState, HabitCreate, HabitUpdate, XpAwardResult
from vitality.services.date_service import DateService
from vitality.services.lockout_service import LockoutGuard
from vitality.services.notification_service import NotificationSink
from vitality.services.progression_service import award_xp, progression_fields

logger = logging.getLogger("vitality.habits")


class HabitService:
    """Service for habit management and completion"""

    def __init__(self, db: Session, notifier: NotificationSink):
        self.db = db
        self.notifier = notifier
        self.habit_repo = HabitRepository()
        self.log_repo = HabitLogRepository()
        self.character_repo = CharacterRepository()

    def _get_habit(self, habit_id: int) -> Habit:
        habit = self.habit_repo.get_by_id(self.db, habit_id)
        if not habit:
            raise HabitNotFoundException(habit_id)
        return habit

    def create_habit(self, user_id: str, data: HabitCreate) -> Habit:
        if self.character_repo.get_by_user_id(self.db, user_id) is None:
            raise CharacterNotFoundException(user_id)
        habit = Habit(user_id=user_id, **data.model_dump())
        return self.habit_repo.create(self.db, habit)

    def list_habits(self, user_id: str) -> List[Habit]:
        return self.habit_repo.get_all(self.db, user_id)

    def update_habit(self, habit_id: int, data: HabitUpdate) -> Habit:
        habit = self._get_habit(habit_id)
        changes = data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            # Omitting a field leaves it alone; an explicit null is not a value
            if value is None:
                raise ValidationException(field, f"{field} cannot be null")
        for field, value in changes.items():
            setattr(habit, field, value)
        return self.habit_repo.update(self.db, habit)

    def get_habit_logs(self, habit_id: int) -> List[HabitLog]:
        habit = self._get_habit(habit_id)
        return self.log_repo.get_for_habit(self.db, habit.id)

    def complete_habit(
        self,
        habit_id: int,
        now: Optional[datetime] = None
    ) -> tuple[Habit, Character, int, XpAwardResult]:
        """
        Complete a habit for today.

        Args:
            habit_id: Habit to complete
            now: Completion time (server local time when omitted)

        Returns:
            Tuple of (habit, character, hp_gained, xp award result)

        Raises:
            HabitNotFoundException: If the habit does not exist
            ValidationException: If the habit is inactive or already done today
            CharacterLockedException: If the character's HP is depleted
        """
        habit = self._get_habit(habit_id)
        if not habit.is_active:
            raise ValidationException("habit_id", "Inactive habits cannot be completed")

        now = now or DateService.now()
        user_id = habit.user_id
        hp_impact = habit.hp_impact or 0
        xp_reward = habit.xp_reward or 0

        def compute(state: CharacterState):
            LockoutGuard.for_character(state).ensure_unlocked(user_id, "complete habits")
            new_hp = min(state.hp + hp_impact, state.max_hp)
            result = award_xp(state.model_copy(update={"hp": new_hp}), xp_reward)
            fields = {"hp": new_hp, **progression_fields(result)}
            return fields, (result, new_hp - state.hp)

        def stage(db: Session, outcome) -> None:
            _, hp_gained = outcome
            # Re-checked on every attempt: a racing completion may have landed
            if habit.last_completed_at and DateService.is_same_day(habit.last_completed_at, now):
                raise ValidationException("habit_id", "Habit already completed today")
            habit.streak_current = (habit.streak_current or 0) + 1
            habit.last_completed_at = now
            self.log_repo.add(db, HabitLog(
                user_id=user_id,
                habit_id=habit.id,
                xp_earned=xp_reward,
                hp_change=hp_gained,
                completed_at=now
            ))

        try:
            character, (result, hp_gained) = self.character_repo.mutate(
                self.db, user_id, compute, stage=stage
            )
        except PersistenceException:
            self.notifier.notify_error(user_id, "Failed to complete habit")
            raise

        self.db.refresh(habit)
        logger.info(
            f"{user_id} completed habit '{habit.name}' "
            f"(+{hp_gained} HP, +{xp_reward} XP, streak {habit.streak_current})"
        )

        if result.leveled_up:
            self.notifier.notify_level_up(user_id, result.new_level)

        return habit, character, hp_gained, result
