"""
Character repository - Data access layer for Character model.
Every write goes through mutate(), a conditional read-compute-write
guarded by the character's version column.
"""
import logging
from datetime import date
from typing import Any, Callable, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from vitality.config import WRITE_ATTEMPTS
from vitality.exceptions import (
    CharacterNotFoundException, PersistenceException,
    ConcurrencyConflictException, VitalityException
)
from vitality.models import Character
from vitality.schemas import CharacterState
from vitality.validation import validate_character

logger = logging.getLogger("vitality.repository")

# compute(state) -> (fields to write, outcome handed back to the caller)
ComputeFn = Callable[[CharacterState], Tuple[dict, Any]]
# stage(db, outcome) adds extra rows to the same transaction
StageFn = Callable[[Session, Any], None]


class CharacterRepository:
    """Repository for Character data access"""

    @staticmethod
    def get_by_user_id(db: Session, user_id: str) -> Optional[Character]:
        """Get the current persisted character (refreshes stale identity-map copies)"""
        try:
            return db.query(Character).populate_existing().filter(
                Character.user_id == user_id
            ).first()
        except SQLAlchemyError as e:
            raise PersistenceException("read", str(e)) from e

    @staticmethod
    def get_pending_decay(db: Session, today: date) -> List[Character]:
        """Get characters whose decay scan has not run on the given date"""
        return db.query(Character).filter(
            or_(
                Character.last_decay_check.is_(None),
                Character.last_decay_check != today
            )
        ).order_by(Character.id).all()

    @staticmethod
    def create(db: Session, character: Character, *related) -> Character:
        """Create new character, committing any related rows in the same transaction"""
        try:
            db.add(character)
            db.add_all(related)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceException("insert", str(e)) from e
        db.refresh(character)
        return character

    @staticmethod
    def mutate(
        db: Session,
        user_id: str,
        compute: ComputeFn,
        stage: Optional[StageFn] = None,
        attempts: Optional[int] = None
    ) -> Tuple[Character, Any]:
        """
        Apply a computed change to a character as one conditional write.

        Each attempt re-reads the character, hands an immutable snapshot to
        compute(), checks the invariants of the result and commits with
        the version check. A version mismatch means another writer got
        there first: the transaction is rolled back and the change is
        recomputed from the new state.

        Args:
            db: Database session
            user_id: Owner of the character
            compute: Pure function returning (fields, outcome)
            stage: Optional callback adding related rows to the same commit
            attempts: Maximum attempts (defaults to WRITE_ATTEMPTS)

        Returns:
            Tuple of (refreshed character, outcome of the last compute)

        Raises:
            CharacterNotFoundException: If the user has no character
            InvariantViolation: If the computed state is out of range
            PersistenceException: If the write fails
            ConcurrencyConflictException: If every attempt lost a race
        """
        attempts = attempts or WRITE_ATTEMPTS

        for attempt in range(1, attempts + 1):
            character = CharacterRepository.get_by_user_id(db, user_id)
            if character is None:
                raise CharacterNotFoundException(user_id)

            state = CharacterState.model_validate(character)
            fields, outcome = compute(state)

            if not fields and stage is None:
                return character, outcome

            validate_character(state.model_copy(update=fields))

            for name, value in fields.items():
                setattr(character, name, value)

            try:
                if stage is not None:
                    stage(db, outcome)
                db.commit()
            except StaleDataError:
                db.rollback()
                logger.warning(
                    f"Concurrent update on character {user_id}, "
                    f"recomputing (attempt {attempt}/{attempts})"
                )
                continue
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Character write failed for {user_id}: {e}")
                raise PersistenceException("update", str(e)) from e
            except VitalityException:
                db.rollback()
                raise

            db.refresh(character)
            return character, outcome

        logger.error(f"Giving up on character {user_id} after {attempts} conflicting writes")
        raise ConcurrencyConflictException(user_id, attempts)
