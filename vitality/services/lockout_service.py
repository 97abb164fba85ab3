"""
Lockout service - the zero-HP punishment state machine.

    NORMAL --hp reaches 0--> DEPLETED --confirmed punishment--> RESTORING
    RESTORING --hp=max_hp persisted--> RESTORED (same as NORMAL)
    RESTORING --write failed--> DEPLETED

Only a confirmed restoration leaves DEPLETED. Gameplay services check
is_depleted() on the freshly read character before mutating it.
"""
import logging
from typing import Union
from sqlalchemy.orm import Session

from vitality.constants import (
    LOCKOUT_NORMAL, LOCKOUT_DEPLETED, LOCKOUT_RESTORING, LOCKOUT_RESTORED,
    MSG_CONFIRM_PUNISHMENT, MSG_RESTORE_FAILED
)
from vitality.exceptions import (
    CharacterNotFoundException, CharacterLockedException, LockoutStateException,
    PersistenceException, ValidationException
)
from vitality.models import Character
from vitality.repositories.character_repository import CharacterRepository
from vitality.schemas import CharacterState
from vitality.services.notification_service import NotificationSink

logger = logging.getLogger("vitality.lockout")

CharacterLike = Union[Character, CharacterState]


class LockoutGuard:
    """Lockout state of one character"""

    def __init__(self, state: str = LOCKOUT_NORMAL):
        self.state = state
        self.transitions: list[tuple[str, str]] = []

    @staticmethod
    def is_depleted(character: CharacterLike) -> bool:
        return character.hp == 0

    @classmethod
    def for_character(cls, character: CharacterLike) -> "LockoutGuard":
        return cls(LOCKOUT_DEPLETED if cls.is_depleted(character) else LOCKOUT_NORMAL)

    @property
    def is_locked_out(self) -> bool:
        """Gameplay is blocked while depleted or while a restore is in flight"""
        return self.state in (LOCKOUT_DEPLETED, LOCKOUT_RESTORING)

    def ensure_unlocked(self, user_id: str, action: str) -> None:
        if self.is_locked_out:
            raise CharacterLockedException(user_id, action)

    def observe(self, character: CharacterLike) -> None:
        """
        Follow a mutation made elsewhere.
        Enters DEPLETED when hp reached 0; never leaves DEPLETED.
        """
        if self.is_depleted(character) and self.state in (LOCKOUT_NORMAL, LOCKOUT_RESTORED):
            self._move(LOCKOUT_DEPLETED)

    def confirm_punishment(self, confirmed: bool) -> None:
        """DEPLETED -> RESTORING. Without confirmation nothing changes."""
        if self.state != LOCKOUT_DEPLETED:
            raise LockoutStateException(self.state, "confirm punishment")
        if not confirmed:
            raise ValidationException("confirmed", MSG_CONFIRM_PUNISHMENT)
        self._move(LOCKOUT_RESTORING)

    def restore_succeeded(self) -> None:
        if self.state != LOCKOUT_RESTORING:
            raise LockoutStateException(self.state, "complete restoration")
        self._move(LOCKOUT_RESTORED)

    def restore_failed(self) -> None:
        if self.state != LOCKOUT_RESTORING:
            raise LockoutStateException(self.state, "abort restoration")
        self._move(LOCKOUT_DEPLETED)

    def _move(self, new_state: str) -> None:
        self.transitions.append((self.state, new_state))
        self.state = new_state


def lockout_state_of(character: CharacterLike) -> str:
    """Persisted lockout state (RESTORING only exists inside a restore call)"""
    return LockoutGuard.for_character(character).state


def report_depletion(
    notifier: NotificationSink,
    user_id: str,
    hp_before: int,
    character: CharacterLike
) -> bool:
    """
    Emit the depleted notification when a mutation took hp from positive to 0.

    Returns:
        True if the character just entered DEPLETED
    """
    guard = LockoutGuard(LOCKOUT_DEPLETED if hp_before == 0 else LOCKOUT_NORMAL)
    guard.observe(character)
    if guard.transitions:
        logger.warning(f"{user_id} HP depleted, lockout engaged")
        notifier.notify_depleted(user_id, character.punishment_task)
        return True
    return False


class LockoutService:
    """Service for reading and leaving the lockout state"""

    def __init__(self, db: Session, notifier: NotificationSink):
        self.db = db
        self.notifier = notifier
        self.character_repo = CharacterRepository()

    def get_guard(self, user_id: str) -> tuple[Character, LockoutGuard]:
        character = self.character_repo.get_by_user_id(self.db, user_id)
        if character is None:
            raise CharacterNotFoundException(user_id)
        return character, LockoutGuard.for_character(character)

    def restore(self, user_id: str, confirmed: bool) -> tuple[Character, LockoutGuard]:
        """
        Restore HP to max after the user confirmed their punishment.

        Raises:
            ValidationException: If confirmed is False (state unchanged)
            LockoutStateException: If the character is not depleted
            PersistenceException: If the write failed (state back to DEPLETED)
        """
        character, guard = self.get_guard(user_id)

        try:
            guard.confirm_punishment(confirmed)
        except ValidationException:
            self.notifier.notify_error(user_id, MSG_CONFIRM_PUNISHMENT)
            raise

        def compute(state: CharacterState):
            if not LockoutGuard.is_depleted(state):
                # Another request restored first
                raise LockoutStateException(LOCKOUT_NORMAL, "restore HP")
            return {"hp": state.max_hp}, state.max_hp

        try:
            character, _ = self.character_repo.mutate(self.db, user_id, compute)
        except PersistenceException as e:
            guard.restore_failed()
            logger.error(f"Restoring HP for {user_id} failed: {e}")
            self.notifier.notify_error(user_id, MSG_RESTORE_FAILED)
            raise

        guard.restore_succeeded()
        logger.info(f"{user_id} completed punishment, HP restored to {character.hp}")
        self.notifier.notify_restored(user_id, character.hp)
        return character, guard
