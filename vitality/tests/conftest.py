"""
Shared fixtures for the vitality engine tests.
"""
import os
import tempfile

# Must be set before vitality.config is imported
os.environ.setdefault("VITALITY_LOG_DIR", os.path.join(tempfile.gettempdir(), "vitality-test-logs"))
os.environ.setdefault("VITALITY_SCHEDULER_ENABLED", "false")
os.environ.setdefault("VITALITY_DATABASE_URL", "sqlite://")

import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from vitality.database import Base
from vitality.models import Character, Habit, RulesConfig
from vitality.schemas import CharacterState, HabitState, RulesState
from vitality.services.notification_service import NotificationSink

USER_ID = "player-1"


class RecordingNotificationSink(NotificationSink):
    """Keeps emitted notifications in memory"""

    def __init__(self):
        self.sent = []

    def emit(self, user_id, kind, title, message):
        self.sent.append({"user_id": user_id, "kind": kind, "title": title, "message": message})

    def kinds(self):
        return [n["kind"] for n in self.sent]


class FailingNotificationSink(NotificationSink):
    """Delivery always fails"""

    def emit(self, user_id, kind, title, message):
        raise RuntimeError("toast surface unavailable")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def file_session_factory(tmp_path):
    """File-backed database so two sessions can interleave their writes"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'vitality.db'}",
        connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def notifier():
    return RecordingNotificationSink()


@pytest.fixture
def today():
    return date(2026, 3, 15)


@pytest.fixture
def yesterday(today):
    return today - timedelta(days=1)


def make_state(**overrides) -> CharacterState:
    """Character snapshot with sensible defaults"""
    values = {
        "user_id": USER_ID,
        "hp": 100,
        "max_hp": 100,
        "current_xp": 0,
        "max_xp_for_next_level": 100,
        "level": 1,
        "credits": Decimal("0"),
        "punishment_task": "50 push-ups",
    }
    values.update(overrides)
    return CharacterState(**values)


def make_habit(habit_id: int = 1, **overrides) -> HabitState:
    values = {"id": habit_id, "name": f"Habit {habit_id}", "hp_impact": 5, "xp_reward": 10}
    values.update(overrides)
    return HabitState(**values)


def make_rules(**overrides) -> RulesState:
    return RulesState(**overrides)


def create_character(db, user_id: str = USER_ID, **overrides) -> Character:
    values = {
        "user_id": user_id,
        "hp": 100,
        "max_hp": 100,
        "current_xp": 0,
        "max_xp_for_next_level": 100,
        "level": 1,
        "punishment_task": "50 push-ups",
    }
    values.update(overrides)
    character = Character(**values)
    db.add(character)
    db.commit()
    db.refresh(character)
    return character


def create_habit(db, user_id: str = USER_ID, **overrides) -> Habit:
    values = {"user_id": user_id, "name": "Workout", "hp_impact": 5, "xp_reward": 25}
    values.update(overrides)
    habit = Habit(**values)
    db.add(habit)
    db.commit()
    db.refresh(habit)
    return habit


def create_rules(db, user_id: str = USER_ID, **overrides) -> RulesConfig:
    rules = RulesConfig(user_id=user_id, **overrides)
    db.add(rules)
    db.commit()
    db.refresh(rules)
    return rules


def at(day: date, hour: int = 12, minute: int = 0) -> datetime:
    return datetime.combine(day, datetime.min.time()).replace(hour=hour, minute=minute)
