"""
Habit repository - Data access layer for Habit and HabitLog models.
"""
from typing import List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vitality.exceptions import PersistenceException
from vitality.models import Habit, HabitLog


class HabitRepository:
    """Repository for Habit data access"""

    @staticmethod
    def get_by_id(db: Session, habit_id: int) -> Optional[Habit]:
        """Get habit by ID"""
        return db.query(Habit).filter(Habit.id == habit_id).first()

    @staticmethod
    def get_all(db: Session, user_id: str) -> List[Habit]:
        """Get all habits of a user, active and inactive"""
        return db.query(Habit).filter(Habit.user_id == user_id).order_by(Habit.id).all()

    @staticmethod
    def get_active(db: Session, user_id: str) -> List[Habit]:
        """Get habits that take part in decay scanning"""
        try:
            return db.query(Habit).filter(
                Habit.user_id == user_id,
                Habit.is_active == True
            ).order_by(Habit.id).all()
        except SQLAlchemyError as e:
            raise PersistenceException("read", str(e)) from e

    @staticmethod
    def create(db: Session, habit: Habit) -> Habit:
        """Create new habit"""
        try:
            db.add(habit)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceException("insert", str(e)) from e
        db.refresh(habit)
        return habit

    @staticmethod
    def update(db: Session, habit: Habit) -> Habit:
        """Update existing habit"""
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceException("update", str(e)) from e
        db.refresh(habit)
        return habit


class HabitLogRepository:
    """Repository for HabitLog data access"""

    @staticmethod
    def add(db: Session, log: HabitLog) -> HabitLog:
        """Stage a log row; committed together with the character write"""
        db.add(log)
        return log

    @staticmethod
    def get_for_habit(db: Session, habit_id: int) -> List[HabitLog]:
        """Get completion logs for a habit, newest first"""
        return db.query(HabitLog).filter(
            HabitLog.habit_id == habit_id
        ).order_by(HabitLog.completed_at.desc()).all()
