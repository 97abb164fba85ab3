"""Configuration management"""
import os

from vitality.constants import DEFAULT_LOG_DIRECTORY_PROD

# Database
DATABASE_URL: str = os.getenv("VITALITY_DATABASE_URL", "sqlite:///./vitality.db")
DATABASE_TIMEOUT: float = float(os.getenv("VITALITY_DATABASE_TIMEOUT", "10"))

# Conditional writes: how many read-compute-write attempts before giving up
WRITE_ATTEMPTS: int = int(os.getenv("VITALITY_WRITE_ATTEMPTS", "3"))

# Logging
LOG_DIR: str = os.getenv("VITALITY_LOG_DIR", DEFAULT_LOG_DIRECTORY_PROD)
LOG_FILE: str = os.getenv("VITALITY_LOG_FILE", "vitality.log")
LOG_LEVEL: str = os.getenv("VITALITY_LOG_LEVEL", "INFO")

# Background decay sweep
SCHEDULER_ENABLED: bool = os.getenv("VITALITY_SCHEDULER_ENABLED", "true").lower() == "true"
DECAY_SWEEP_TIME: str = os.getenv("VITALITY_DECAY_SWEEP_TIME", "00:05")

# CORS for the web client
CORS_ALLOWED_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.getenv("VITALITY_CORS_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]


def validate_config() -> None:
    """Validate configuration values"""
    if not DATABASE_URL:
        raise ValueError("VITALITY_DATABASE_URL is required")
    if WRITE_ATTEMPTS < 1:
        raise ValueError("VITALITY_WRITE_ATTEMPTS must be at least 1")
    if DATABASE_TIMEOUT <= 0:
        raise ValueError("VITALITY_DATABASE_TIMEOUT must be positive")
