"""
Notification repository - Data access layer for Notification model.
"""
from typing import List
from sqlalchemy.orm import Session

from vitality.models import Notification


class NotificationRepository:
    """Repository for Notification data access"""

    @staticmethod
    def create(db: Session, notification: Notification) -> Notification:
        """Create new notification"""
        db.add(notification)
        db.commit()
        db.refresh(notification)
        return notification

    @staticmethod
    def get_unread(db: Session, user_id: str, limit: int = 50) -> List[Notification]:
        """Get unread notifications, oldest first"""
        return db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read == False
        ).order_by(Notification.created_at.asc(), Notification.id.asc()).limit(limit).all()

    @staticmethod
    def mark_read(db: Session, notifications: List[Notification]) -> None:
        """Mark notifications as read"""
        for notification in notifications:
            notification.is_read = True
        db.commit()
