"""
Database engine and session factory.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from vitality.config import DATABASE_URL, DATABASE_TIMEOUT


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        # timeout bounds how long a write waits on a locked database
        return {"check_same_thread": False, "timeout": DATABASE_TIMEOUT}
    return {"connect_timeout": int(DATABASE_TIMEOUT)}


engine = create_engine(DATABASE_URL, connect_args=_connect_args(DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: one session per request"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
