"""
Progression service - XP and leveling.

award_xp() is the pure calculator; ProgressionService wraps it in a
conditional character write and the level-up notification.
"""
import logging
import math
from typing import Optional
from sqlalchemy.orm import Session

from vitality.constants import XP_THRESHOLD_GROWTH, MSG_STATS_UPDATE_FAILED
from vitality.exceptions import PersistenceException, InvariantViolation
from vitality.models import Character
from vitality.repositories.character_repository import CharacterRepository
from vitality.schemas import CharacterState, XpAwardResult
from vitality.services.lockout_service import LockoutGuard
from vitality.services.notification_service import NotificationSink
from vitality.validation import validate_character, validate_xp_amount

logger = logging.getLogger("vitality.progression")


def next_threshold(threshold: int) -> int:
    """XP needed for the level after a level-up"""
    return math.floor(threshold * XP_THRESHOLD_GROWTH)


def award_xp(character: CharacterState, amount: int) -> XpAwardResult:
    """
    Apply an XP award to a character snapshot.

    At most one level is gained per award. Overflow beyond the old
    threshold is carried as current_xp even when it already exceeds the
    new threshold; it is consumed by the next award.

    Args:
        character: Current character snapshot
        amount: Non-negative XP reward

    Returns:
        XpAwardResult with the updated snapshot

    Raises:
        ValidationException: If amount is negative or not an integer
        InvariantViolation: If the input or computed state is out of range
    """
    validate_xp_amount(amount)
    validate_character(character)

    new_xp = character.current_xp + amount
    threshold = character.max_xp_for_next_level

    if new_xp < threshold:
        updated = character.model_copy(update={"current_xp": new_xp})
        return XpAwardResult(character=updated, leveled_up=False, new_level=character.level)

    new_level = character.level + 1
    updated = character.model_copy(update={
        "current_xp": new_xp - threshold,
        "level": new_level,
        "max_xp_for_next_level": next_threshold(threshold),
    })

    validate_character(updated)
    if updated.level != character.level + 1:
        raise InvariantViolation("single level-up per award", updated.model_dump())

    return XpAwardResult(character=updated, leveled_up=True, new_level=new_level)


def progression_fields(result: XpAwardResult) -> dict:
    """Fields to persist for an award result"""
    fields = {"current_xp": result.character.current_xp}
    if result.leveled_up:
        fields["level"] = result.character.level
        fields["max_xp_for_next_level"] = result.character.max_xp_for_next_level
    return fields


class ProgressionService:
    """Service for awarding XP to a user's character"""

    def __init__(self, db: Session, notifier: NotificationSink):
        self.db = db
        self.notifier = notifier
        self.character_repo = CharacterRepository()

    def award(
        self,
        user_id: str,
        amount: int,
        source: Optional[str] = None
    ) -> tuple[Character, XpAwardResult]:
        """
        Award XP from a completed task or habit.

        Rejected while the character is locked out. One conditional write;
        the level-up notification is sent once, after the write succeeded.

        Returns:
            Tuple of (persisted character, award result)
        """
        validate_xp_amount(amount)

        def compute(state: CharacterState):
            LockoutGuard.for_character(state).ensure_unlocked(user_id, "award XP")
            result = award_xp(state, amount)
            return progression_fields(result), result

        try:
            character, result = self.character_repo.mutate(self.db, user_id, compute)
        except PersistenceException:
            self.notifier.notify_error(user_id, MSG_STATS_UPDATE_FAILED)
            raise

        logger.info(
            f"Awarded {amount} XP to {user_id}"
            + (f" from {source}" if source else "")
            + f" (xp={character.current_xp}/{character.max_xp_for_next_level}, level={character.level})"
        )

        if result.leveled_up:
            logger.info(f"{user_id} reached level {result.new_level}")
            self.notifier.notify_level_up(user_id, result.new_level)

        return character, result
