"""
Notification sink.
Formats the user-facing toasts (level-up, decay, lockout, errors) and hands
them to a delivery backend. Delivery is fire-and-forget: a failing sink is
logged and never undoes the state change that triggered it.
"""
import logging
from typing import Optional

from vitality.constants import (
    NOTIFICATION_LEVEL_UP, NOTIFICATION_DECAY, NOTIFICATION_DEPLETED,
    NOTIFICATION_RESTORED, NOTIFICATION_ERROR, MSG_RESTORED
)
from vitality.database import SessionLocal
from vitality.models import Notification
from vitality.repositories.notification_repository import NotificationRepository

logger = logging.getLogger("vitality.notifications")


class NotificationSink:
    """Base sink: subclasses implement emit()"""

    def notify_level_up(self, user_id: str, new_level: int) -> None:
        self._safe_emit(
            user_id, NOTIFICATION_LEVEL_UP,
            f"LEVEL UP! You are now level {new_level}!"
        )

    def notify_decay(self, user_id: str, hp_lost: int, missed_count: int) -> None:
        plural = "s" if missed_count > 1 else ""
        self._safe_emit(
            user_id, NOTIFICATION_DECAY,
            f"HP DECAY: -{hp_lost} HP",
            f"{missed_count} habit{plural} missed yesterday. "
            f"Complete your habits to stay healthy!"
        )

    def notify_depleted(self, user_id: str, punishment_task: str) -> None:
        self._safe_emit(
            user_id, NOTIFICATION_DEPLETED,
            "HP DEPLETED",
            f"Your health has reached zero. Complete your punishment to continue: "
            f"{punishment_task}"
        )

    def notify_restored(self, user_id: str, hp: int) -> None:
        self._safe_emit(user_id, NOTIFICATION_RESTORED, MSG_RESTORED, f"HP: {hp}")

    def notify_error(self, user_id: str, message: str) -> None:
        self._safe_emit(user_id, NOTIFICATION_ERROR, message)

    def emit(self, user_id: str, kind: str, title: str, message: Optional[str]) -> None:
        raise NotImplementedError

    def _safe_emit(
        self,
        user_id: str,
        kind: str,
        title: str,
        message: Optional[str] = None
    ) -> None:
        try:
            self.emit(user_id, kind, title, message)
        except Exception as e:
            logger.error(f"Notification '{kind}' for {user_id} was not delivered: {e}")


class LoggingNotificationSink(NotificationSink):
    """Writes notifications to the application log only"""

    def emit(self, user_id: str, kind: str, title: str, message: Optional[str]) -> None:
        logger.info(f"[{kind}] {user_id}: {title}" + (f" - {message}" if message else ""))


class DatabaseNotificationSink(NotificationSink):
    """
    Persists notifications for the client to poll.

    Uses its own session so a notification is never part of (and can never
    roll back) the transaction that changed the character.
    """

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def emit(self, user_id: str, kind: str, title: str, message: Optional[str]) -> None:
        db = self.session_factory()
        try:
            NotificationRepository.create(db, Notification(
                user_id=user_id,
                kind=kind,
                title=title,
                message=message
            ))
            logger.info(f"[{kind}] {user_id}: {title}")
        finally:
            db.close()
