from fastapi import FastAPI, Depends, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import List, Optional
import logging
from pathlib import Path

from vitality import config
from vitality.constants import DEFAULT_LOG_DIRECTORY_DEV, MSG_LOCKED_OUT
from vitality.database import engine, get_db, Base, SessionLocal
from vitality import models  # Import all models to register them with Base
from vitality.exceptions import (
    VitalityException, ValidationException, CharacterNotFoundException,
    HabitNotFoundException, CharacterLockedException, LockoutStateException,
    PersistenceException, InvariantViolation
)
from vitality.repositories.notification_repository import NotificationRepository
from vitality.schemas import (
    CharacterCreate, CharacterUpdate, CharacterResponse,
    XpAwardRequest, XpAwardResponse, HpAdjustRequest,
    SessionStartRequest, DecayResponse,
    LockoutResponse, RestoreRequest,
    RulesConfigUpdate, RulesConfigResponse,
    HabitCreate, HabitUpdate, HabitResponse, HabitCompletionResponse, HabitLogResponse,
    NotificationResponse
)
from vitality.services.character_service import CharacterService
from vitality.services.decay_service import DecayService
from vitality.services.habit_service import HabitService
from vitality.services.lockout_service import LockoutService, LockoutGuard, lockout_state_of
from vitality.services.notification_service import NotificationSink, DatabaseNotificationSink
from vitality.services.progression_service import ProgressionService
from vitality.services.scheduler_service import start_scheduler, stop_scheduler

LOG_DIR = config.LOG_DIR

# Create log directory if it doesn't exist (for development)
try:
    Path(LOG_DIR).mkdir(parents=True, exist_ok=True)
    log_path = Path(LOG_DIR) / config.LOG_FILE
except PermissionError:
    # Fallback to local directory if no permissions for /var/log
    LOG_DIR = DEFAULT_LOG_DIRECTORY_DEV
    Path(LOG_DIR).mkdir(parents=True, exist_ok=True)
    log_path = Path(LOG_DIR) / config.LOG_FILE

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(log_path),
        logging.StreamHandler()  # Also log to console
    ]
)

logger = logging.getLogger("vitality")

app = FastAPI(
    title="Vitality Engine API",
    description="HP, XP and lockout rules for the life gamification app",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Startup event
@app.on_event("startup")
async def startup_event():
    config.validate_config()
    Base.metadata.create_all(bind=engine)
    logger.info(f"Vitality Engine API started. Logging to: {log_path}")
    if config.SCHEDULER_ENABLED:
        start_scheduler()


# Shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down Vitality Engine API")
    stop_scheduler()


# Error mapping
_STATUS_BY_EXCEPTION = [
    (ValidationException, status.HTTP_400_BAD_REQUEST),
    (CharacterNotFoundException, status.HTTP_404_NOT_FOUND),
    (HabitNotFoundException, status.HTTP_404_NOT_FOUND),
    (CharacterLockedException, status.HTTP_423_LOCKED),
    (LockoutStateException, status.HTTP_409_CONFLICT),
    (PersistenceException, status.HTTP_503_SERVICE_UNAVAILABLE),
    (InvariantViolation, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


@app.exception_handler(VitalityException)
async def vitality_exception_handler(request: Request, exc: VitalityException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for exc_type, code in _STATUS_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            status_code = code
            break

    body = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, ValidationException):
        body["detail"] = exc.message
        body["field"] = exc.field
    elif isinstance(exc, CharacterLockedException):
        body["detail"] = MSG_LOCKED_OUT
    elif isinstance(exc, PersistenceException):
        body["retryable"] = True

    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status_code, content=body)


def get_notifier() -> NotificationSink:
    return DatabaseNotificationSink(SessionLocal)


def _character_response(character: models.Character) -> CharacterResponse:
    state = lockout_state_of(character)
    return CharacterResponse.model_validate({
        **{column.name: getattr(character, column.name) for column in models.Character.__table__.columns},
        "lockout_state": state,
        "is_locked_out": LockoutGuard(state).is_locked_out,
    })


# Health check
@app.get("/")
def root():
    return {"message": "Vitality Engine API", "status": "active"}


# Characters
@app.post("/api/characters", response_model=CharacterResponse, status_code=status.HTTP_201_CREATED)
def create_character(
    data: CharacterCreate,
    db: Session = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier)
):
    """Create a character at account setup"""
    character = CharacterService(db, notifier).create_character(data)
    return _character_response(character)


@app.get("/api/characters/{user_id}", response_model=CharacterResponse)
def get_character(
    user_id: str,
    db: Session = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier)
):
    """Get character with its lockout state"""
    return _character_response(CharacterService(db, notifier).get_character(user_id))


@app.patch("/api/characters/{user_id}", response_model=CharacterResponse)
def update_character(
    user_id: str,
    data: CharacterUpdate,
    db: Session = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier)
):
    """Edit punishment task, max HP or onboarding flag"""
    return _character_response(CharacterService(db, notifier).update_character(user_id, data))


@app.post("/api/characters/{user_id}/xp", response_model=XpAwardResponse)
def award_xp(
    user_id: str,
    data: XpAwardRequest,
    db: Session = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier)
):
    """Award XP for a completed task"""
    character, result = ProgressionService(db, notifier).award(user_id, data.amount, data.source)
    return XpAwardResponse(
        character=_character_response(character),
        leveled_up=result.leveled_up,
        new_level=result.new_level
    )


@app.post("/api/characters/{user_id}/hp", response_model=CharacterResponse)
def adjust_hp(
    user_id: str,
    data: HpAdjustRequest,
    db: Session = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier)
):
    """Explicit HP change made by the user"""
    return _character_response(CharacterService(db, notifier).adjust_hp(user_id, data.delta))


@app.post("/api/characters/{user_id}/session-start", response_model=DecayResponse)
def session_start(
    user_id: str,
    data: Optional[SessionStartRequest] = None,
    db: Session = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier)
):
    """App foreground: run the daily decay check"""
    today = data.today if data else None
    character, result = DecayService(db, notifier).run_for_user(user_id, today)
    return DecayResponse(
        character=_character_response(character),
        ran=result.ran,
        applied_penalty=result.applied_penalty,
        missed_count=result.missed_count,
        hp_lost=result.hp_lost,
        new_check_date=result.new_check_date
    )


# Lockout
@app.get("/api/characters/{user_id}/lockout", response_model=LockoutResponse)
def get_lockout(
    user_id: str,
    db: Session = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier)
):
    """Lockout state; clients block gameplay while is_locked_out"""
    character, guard = LockoutService(db, notifier).get_guard(user_id)
    return LockoutResponse(
        state=guard.state,
        is_locked_out=guard.is_locked_out,
        punishment_task=character.punishment_task,
        hp=character.hp,
        max_hp=character.max_hp
    )


@app.post("/api/characters/{user_id}/lockout/restore", response_model=LockoutResponse)
def restore_hp(
    user_id: str,
    data: RestoreRequest,
    db: Session = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier)
):
    """Confirm the punishment is done and restore HP"""
    character, guard = LockoutService(db, notifier).restore(user_id, data.confirmed)
    return LockoutResponse(
        state=guard.state,
        is_locked_out=guard.is_locked_out,
        punishment_task=character.punishment_task,
        hp=character.hp,
        max_hp=character.max_hp
    )


# Rules
@app.get("/api/characters/{user_id}/rules", response_model=RulesConfigResponse)
def get_rules(
    user_id: str,
    db: Session = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier)
):
    return CharacterService(db, notifier).get_rules(user_id)


@app.put("/api/characters/{user_id}/rules", response_model=RulesConfigResponse)
def update_rules(
    user_id: str,
    data: RulesConfigUpdate,
    db: Session = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier)
):
    return CharacterService(db, notifier).update_rules(user_id, data)


# Habits
@app.get("/api/characters/{user_id}/habits", response_model=List[HabitResponse])
def list_habits(
    user_id: str,
    db: Session = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier)
):
    return HabitService(db, notifier).list_habits(user_id)


@app.post("/api/characters/{user_id}/habits", response_model=HabitResponse, status_code=status.HTTP_201_CREATED)
def create_habit(
    user_id: str,
    data: HabitCreate,
    db: Session = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier)
):
    return HabitService(db, notifier).create_habit(user_id, data)


@app.patch("/api/habits/{habit_id}", response_model=HabitResponse)
def update_habit(
    habit_id: int,
    data: HabitUpdate,
    db: Session = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier)
):
    """Edit a habit; is_active=false removes it from decay"""
    return HabitService(db, notifier).update_habit(habit_id, data)


@app.post("/api/habits/{habit_id}/complete", response_model=HabitCompletionResponse)
def complete_habit(
    habit_id: int,
    db: Session = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier)
):
    """Complete a habit: heal by hp_impact and award xp_reward"""
    habit, character, hp_gained, result = HabitService(db, notifier).complete_habit(habit_id)
    return HabitCompletionResponse(
        habit=HabitResponse.model_validate(habit),
        character=_character_response(character),
        hp_gained=hp_gained,
        xp_earned=habit.xp_reward,
        leveled_up=result.leveled_up,
        new_level=result.new_level
    )


@app.get("/api/habits/{habit_id}/logs", response_model=List[HabitLogResponse])
def get_habit_logs(
    habit_id: int,
    db: Session = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier)
):
    """Completion history of a habit, newest first"""
    return HabitService(db, notifier).get_habit_logs(habit_id)


# Notifications
@app.get("/api/characters/{user_id}/notifications", response_model=List[NotificationResponse])
def get_notifications(user_id: str, db: Session = Depends(get_db)):
    """Unread notifications; returned ones are marked read"""
    notifications = NotificationRepository.get_unread(db, user_id)
    response = [NotificationResponse.model_validate(n) for n in notifications]
    NotificationRepository.mark_read(db, notifications)
    return response
