"""
Database setup for the Street Art CTF backend.
Uses SQLite locally; use DATABASE_URL (e.g. Heroku Postgres) for production.
"""

import os
from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# Heroku sets DATABASE_URL to postgres://; SQLAlchemy 2.x expects postgresql://
_raw_url = os.environ.get("DATABASE_URL")
if _raw_url and _raw_url.startswith("postgres://"):
    DATABASE_URL = _raw_url.replace("postgres://", "postgresql://", 1)
elif _raw_url:
    DATABASE_URL = _raw_url
else:
    DB_DIR = os.path.dirname(os.path.abspath(__file__))
    DATABASE_URL = f"sqlite:///{os.path.join(DB_DIR, 'streetart.db')}"

Base = declarative_base()


def make_engine(url: str) -> Engine:
    """SQLite needs check_same_thread=False; in-memory SQLite also needs a single shared connection."""
    if not url.startswith("sqlite"):
        return create_engine(url)
    connect_args = {"check_same_thread": False}
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(url, connect_args=connect_args, poolclass=StaticPool)
    return create_engine(url, connect_args=connect_args)


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_session_factory(url: str) -> sessionmaker:
    """Engine + session factory for an explicit URL, with all tables created."""
    bind = make_engine(url)
    init_db(bind)
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


def get_db(request: Request):
    """Dependency that yields a DB session from the app's session factory."""
    factory = getattr(request.app.state, "session_factory", None) or SessionLocal
    db = factory()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine | None = None):
    """Create all tables."""
    from . import models  # noqa: F401  (register models on Base.metadata)
    Base.metadata.create_all(bind=bind if bind is not None else engine)
