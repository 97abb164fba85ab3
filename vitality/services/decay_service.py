"""
Decay service - daily HP loss for missed habits.

run_daily_decay() is the pure scan. DecayService persists its result:
the new HP and the checkpoint date go out in the same conditional write,
so a second run on the same day (from any device, or the background
sweep) sees the advanced checkpoint and does nothing.
"""
import logging
from datetime import date
from typing import List, Optional
from sqlalchemy.orm import Session

from vitality.exceptions import (
    InvariantViolation, PersistenceException
)
from vitality.models import Character
from vitality.repositories.character_repository import CharacterRepository
from vitality.repositories.habit_repository import HabitRepository
from vitality.repositories.rules_repository import RulesConfigRepository
from vitality.schemas import CharacterState, HabitState, RulesState, DecayResult
from vitality.services.date_service import DateService
from vitality.services.lockout_service import report_depletion
from vitality.services.notification_service import NotificationSink
from vitality.validation import validate_character

logger = logging.getLogger("vitality.decay")


def is_habit_missed(habit: HabitState, today: date) -> bool:
    """
    A habit is missed for today's check unless it was completed at some
    point on yesterday's calendar day or later.
    """
    if habit.last_completed_at is None:
        return True

    yesterday = DateService.yesterday(today)
    last_completed = DateService.to_local_naive(habit.last_completed_at)

    return (
        last_completed < DateService.start_of_day(yesterday)
        and not DateService.is_same_day(last_completed, yesterday)
    )


def run_daily_decay(
    character: CharacterState,
    habits: List[HabitState],
    rules: RulesState,
    last_check_date: Optional[date],
    today: date
) -> DecayResult:
    """
    Evaluate missed habits and compute the HP penalty for today.

    Args:
        character: Current character snapshot
        habits: The user's habits (inactive ones are ignored)
        rules: Penalty rules
        last_check_date: Date of the previous scan, if any
        today: Caller's current date

    Returns:
        DecayResult. ran is False when today was already scanned.
    """
    if last_check_date is not None and DateService.is_same_day(last_check_date, today):
        return DecayResult(character=character, new_check_date=last_check_date, ran=False)

    validate_character(character)

    active = [habit for habit in habits if habit.is_active]
    missed_count = sum(1 for habit in active if is_habit_missed(habit, today))

    penalty = 0
    new_hp = character.hp
    if active and missed_count > 0:
        penalty = missed_count * rules.hp_penalty_rate
        new_hp = max(0, character.hp - penalty)

    if new_hp > character.hp:
        raise InvariantViolation("decay never raises hp", character.model_dump())

    updated = character.model_copy(update={"hp": new_hp, "last_decay_check": today})
    validate_character(updated)

    return DecayResult(
        character=updated,
        applied_penalty=penalty,
        hp_lost=character.hp - new_hp,
        missed_count=missed_count,
        new_check_date=today,
        ran=True
    )


class DecayService:
    """Service that applies daily decay to stored characters"""

    def __init__(self, db: Session, notifier: NotificationSink):
        self.db = db
        self.notifier = notifier
        self.character_repo = CharacterRepository()
        self.habit_repo = HabitRepository()
        self.rules_repo = RulesConfigRepository()

    def run_for_user(
        self,
        user_id: str,
        today: Optional[date] = None
    ) -> tuple[Character, DecayResult]:
        """
        Run the daily decay check for one user (app foreground / sweep).

        Returns:
            Tuple of (persisted character, decay result)
        """
        today = today or DateService.today()
        def compute(state: CharacterState):
            result = run_daily_decay(state, habits, rules, state.last_decay_check, today)
            if not result.ran:
                return {}, (result, state.hp)
            fields = {"hp": result.character.hp, "last_decay_check": result.new_check_date}
            return fields, (result, state.hp)

        try:
            habits = [HabitState.model_validate(h) for h in self.habit_repo.get_active(self.db, user_id)]
            rules = self.rules_repo.get_or_default(self.db, user_id)
            character, (result, hp_before) = self.character_repo.mutate(
                self.db, user_id, compute
            )
        except PersistenceException:
            self.notifier.notify_error(user_id, "Failed to apply daily HP decay")
            raise

        if not result.ran:
            logger.debug(f"Decay already checked for {user_id} on {today}")
            return character, result

        if result.applied_penalty > 0:
            logger.info(
                f"Decay for {user_id} on {today}: {result.missed_count} missed habit(s), "
                f"penalty {result.applied_penalty}, HP {hp_before} -> {character.hp}"
            )
            self.notifier.notify_decay(user_id, result.hp_lost, result.missed_count)
            report_depletion(self.notifier, user_id, hp_before, character)
        else:
            logger.info(f"Decay check for {user_id} on {today}: no penalty")

        return character, result

    def run_sweep(self, today: Optional[date] = None) -> int:
        """
        Run decay for every character not yet checked today whose rules
        allow automatic decay. One user's failure does not stop the sweep.

        Returns:
            Number of characters that were scanned
        """
        today = today or DateService.today()
        scanned = 0

        pending = [character.user_id for character in self.character_repo.get_pending_decay(self.db, today)]
        for user_id in pending:
            try:
                if not self.rules_repo.get_or_default(self.db, user_id).auto_decay_enabled:
                    continue
                _, result = self.run_for_user(user_id, today)
            except Exception as e:
                logger.error(f"Decay sweep failed for {user_id}: {e}")
                self.db.rollback()
                continue
            if result.ran:
                scanned += 1

        return scanned
