"""
Rules repository - Data access layer for RulesConfig model.
"""
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vitality.exceptions import PersistenceException
from vitality.models import RulesConfig
from vitality.schemas import RulesState


class RulesConfigRepository:
    """Repository for RulesConfig data access"""

    @staticmethod
    def get(db: Session, user_id: str) -> Optional[RulesConfig]:
        """Get stored rules for a user"""
        try:
            return db.query(RulesConfig).filter(RulesConfig.user_id == user_id).first()
        except SQLAlchemyError as e:
            raise PersistenceException("read", str(e)) from e

    @staticmethod
    def get_or_default(db: Session, user_id: str) -> RulesState:
        """
        Get rules as an engine snapshot.

        Returns:
            Stored rules, or the default rules when the user has none
        """
        rules = RulesConfigRepository.get(db, user_id)
        if rules is None:
            return RulesState()
        return RulesState.model_validate(rules)

    @staticmethod
    def get_or_create(db: Session, user_id: str) -> RulesConfig:
        """
        Get rules (creates with defaults if not exists).

        Returns:
            RulesConfig object
        """
        rules = RulesConfigRepository.get(db, user_id)
        if not rules:
            rules = RulesConfig(user_id=user_id)
            try:
                db.add(rules)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise PersistenceException("insert", str(e)) from e
            db.refresh(rules)
        return rules

    @staticmethod
    def update(db: Session, rules: RulesConfig) -> RulesConfig:
        """
        Update rules.

        Args:
            db: Database session
            rules: RulesConfig object with updated values

        Returns:
            Updated rules
        """
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceException("update", str(e)) from e
        db.refresh(rules)
        return rules
