# FILE: app/db.py
"""
Database engine and session factory.

SQLite by default (./data/autoplanner.db); AUTOPLANNER_DATABASE_URL
overrides it. Tables come from the ORM models and are created by init_db().
"""
import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

DATABASE_URL = os.getenv("AUTOPLANNER_DATABASE_URL", "sqlite:///./data/autoplanner.db")

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, echo=False)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: one session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    """FastAPI dependency for code that outlives the request (SSE streams)."""
    return SessionLocal


def _ensure_sqlite_dir(url: str) -> None:
    prefix = "sqlite:///"
    if not url.startswith(prefix) or url.endswith(":memory:"):
        return
    directory = os.path.dirname(url[len(prefix):])
    if directory:
        os.makedirs(directory, exist_ok=True)


def init_db(bind=None):
    """Create all tables. Call once at startup."""
    # Import models so Base.metadata knows about them
    from app.projects import models  # noqa: F401
    from app.providers import models as provider_models  # noqa: F401

    if bind is None:
        _ensure_sqlite_dir(DATABASE_URL)
        bind = engine
    Base.metadata.create_all(bind=bind)
