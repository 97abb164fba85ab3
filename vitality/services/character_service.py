"""
Character service.
Account setup, profile edits, explicit HP adjustments and per-user rules.
"""
import logging
from sqlalchemy.orm import Session

from vitality.constants import (
    DEFAULT_STARTING_LEVEL, DEFAULT_XP_THRESHOLD, MSG_STATS_UPDATE_FAILED
)
from vitality.exceptions import (
    CharacterLockedException, CharacterNotFoundException, PersistenceException,
    ValidationException
)
from vitality.models import Character, RulesConfig
from vitality.repositories.character_repository import CharacterRepository
from vitality.repositories.rules_repository import RulesConfigRepository
from vitality.schemas import (
    CharacterCreate, CharacterState, CharacterUpdate, RulesConfigUpdate
)
from vitality.services.lockout_service import LockoutGuard, report_depletion
from vitality.services.notification_service import NotificationSink

logger = logging.getLogger("vitality.characters")


class CharacterService:
    """Service for character lifecycle and direct edits"""

    def __init__(self, db: Session, notifier: NotificationSink):
        self.db = db
        self.notifier = notifier
        self.character_repo = CharacterRepository()
        self.rules_repo = RulesConfigRepository()

    def get_character(self, user_id: str) -> Character:
        character = self.character_repo.get_by_user_id(self.db, user_id)
        if character is None:
            raise CharacterNotFoundException(user_id)
        return character

    def create_character(self, data: CharacterCreate) -> Character:
        """
        Create a character at account setup: full HP, level 1, no XP,
        plus default rules.
        """
        if self.character_repo.get_by_user_id(self.db, data.user_id) is not None:
            raise ValidationException("user_id", f"Character for {data.user_id} already exists")

        character = Character(
            user_id=data.user_id,
            hp=data.max_hp,
            max_hp=data.max_hp,
            current_xp=0,
            max_xp_for_next_level=DEFAULT_XP_THRESHOLD,
            level=DEFAULT_STARTING_LEVEL,
            punishment_task=data.punishment_task,
        )
        try:
            character = self.character_repo.create(
                self.db, character, RulesConfig(user_id=data.user_id)
            )
        except PersistenceException:
            self.notifier.notify_error(data.user_id, MSG_STATS_UPDATE_FAILED)
            raise

        logger.info(f"Created character for {data.user_id} (max_hp={data.max_hp})")
        return character

    def update_character(self, user_id: str, data: CharacterUpdate) -> Character:
        """Edit profile fields; lowering max_hp pulls hp down with it"""
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        def compute(state: CharacterState):
            fields = dict(changes)
            if "max_hp" in fields:
                fields["hp"] = min(state.hp, fields["max_hp"])
            return fields, None

        try:
            character, _ = self.character_repo.mutate(self.db, user_id, compute)
        except PersistenceException:
            self.notifier.notify_error(user_id, MSG_STATS_UPDATE_FAILED)
            raise
        return character

    def adjust_hp(self, user_id: str, delta: int) -> Character:
        """
        Apply an explicit HP change made by the user, clamped to [0, max_hp].

        Raises:
            CharacterLockedException: If delta is positive while depleted
        """
        def compute(state: CharacterState):
            if delta > 0 and LockoutGuard.is_depleted(state):
                raise CharacterLockedException(user_id, "gain HP")
            new_hp = min(max(0, state.hp + delta), state.max_hp)
            return {"hp": new_hp}, state.hp

        try:
            character, hp_before = self.character_repo.mutate(self.db, user_id, compute)
        except PersistenceException:
            self.notifier.notify_error(user_id, MSG_STATS_UPDATE_FAILED)
            raise

        logger.info(f"HP adjusted for {user_id}: {hp_before} -> {character.hp}")
        report_depletion(self.notifier, user_id, hp_before, character)
        return character

    def get_rules(self, user_id: str) -> RulesConfig:
        self.get_character(user_id)
        return self.rules_repo.get_or_create(self.db, user_id)

    def update_rules(self, user_id: str, data: RulesConfigUpdate) -> RulesConfig:
        rules = self.get_rules(user_id)
        for field, value in data.model_dump().items():
            setattr(rules, field, value)
        try:
            return self.rules_repo.update(self.db, rules)
        except PersistenceException:
            self.notifier.notify_error(user_id, MSG_STATS_UPDATE_FAILED)
            raise
