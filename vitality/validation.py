"""
Invariant and input checks shared by the engine services.

Invariant failures are programming errors: they abort the mutation
before anything is written and are reported at ERROR level instead of
being clamped away.
"""
import logging

from vitality.schemas import CharacterState
from vitality.exceptions import ValidationException, InvariantViolation

logger = logging.getLogger("vitality.validation")


def _fail(invariant: str, state: CharacterState) -> None:
    snapshot = state.model_dump(include={
        "user_id", "hp", "max_hp", "current_xp", "max_xp_for_next_level", "level"
    })
    logger.error(f"Invariant violated for {state.user_id}: {invariant} {snapshot}")
    raise InvariantViolation(invariant, snapshot)


def validate_character(state: CharacterState) -> None:
    """
    Check the vitals and progression ranges of a character snapshot.

    current_xp is not compared against the threshold here: a single-step
    level-up may legitimately leave overflow above the new threshold.

    Raises:
        InvariantViolation: If any range is broken
    """
    if state.max_hp <= 0:
        _fail("max_hp > 0", state)
    if not 0 <= state.hp <= state.max_hp:
        _fail("0 <= hp <= max_hp", state)
    if state.current_xp < 0:
        _fail("current_xp >= 0", state)
    if state.max_xp_for_next_level <= 0:
        _fail("max_xp_for_next_level > 0", state)
    if state.level < 1:
        _fail("level >= 1", state)


def validate_xp_amount(amount) -> None:
    """Reject XP awards that are not non-negative integers"""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationException("amount", "XP award must be an integer")
    if amount < 0:
        raise ValidationException("amount", "XP award cannot be negative")
