"""
Custom exceptions for the vitality engine.
Provides specific exception types so callers can tell rejected input,
lockout, storage failures and broken invariants apart.
"""


class VitalityException(Exception):
    """Base exception for the vitality engine"""
    pass


class CharacterNotFoundException(VitalityException):
    """Raised when a user has no character"""
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"Character for user {user_id} not found")


class HabitNotFoundException(VitalityException):
    """Raised when a habit is not found"""
    def __init__(self, habit_id: int):
        self.habit_id = habit_id
        super().__init__(f"Habit with ID {habit_id} not found")


class ValidationException(VitalityException):
    """Raised when input is rejected before reaching persistence"""
    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"Validation error for {field}: {message}")


class CharacterLockedException(VitalityException):
    """Raised when a gameplay action is attempted while HP is depleted"""
    def __init__(self, user_id: str, action: str):
        self.user_id = user_id
        self.action = action
        super().__init__(
            f"Cannot {action}: character for user {user_id} is locked out (HP depleted)"
        )


class LockoutStateException(VitalityException):
    """Raised when a lockout transition is requested from the wrong state"""
    def __init__(self, current_state: str, requested: str):
        self.current_state = current_state
        self.requested = requested
        super().__init__(
            f"Cannot {requested} while lockout state is '{current_state}'"
        )


class PersistenceException(VitalityException):
    """Raised when a read or write against the store fails"""
    def __init__(self, operation: str, details: str):
        self.operation = operation
        self.details = details
        super().__init__(f"Database {operation} failed: {details}")


class ConcurrencyConflictException(PersistenceException):
    """Raised when a conditional write keeps losing to concurrent writers"""
    def __init__(self, user_id: str, attempts: int):
        self.user_id = user_id
        self.attempts = attempts
        super().__init__(
            "update",
            f"character for user {user_id} changed concurrently ({attempts} attempts)"
        )


class InvariantViolation(VitalityException):
    """Raised when computed character state breaks an engine invariant"""
    def __init__(self, invariant: str, state: dict):
        self.invariant = invariant
        self.state = state
        super().__init__(f"Invariant violated: {invariant} (state={state})")
