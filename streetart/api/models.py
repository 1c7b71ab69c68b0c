"""
SQLAlchemy models for player accounts and the document store.
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text, Integer

from .database import Base


class Player(Base):
    __tablename__ = "players"

    id = Column(String(36), primary_key=True)  # uuid
    username = Column(String(64), unique=True, nullable=False, index=True)  # no spaces/special
    password_hash = Column(String(255), nullable=False)
    team = Column(String(16), nullable=True)  # null until a team is joined
    created_at = Column(DateTime, default=datetime.utcnow)


class Document(Base):
    """One JSON document in a named collection (captures, cooldowns, teams, players...)."""
    __tablename__ = "documents"

    collection = Column(String(64), primary_key=True)
    doc_id = Column(String(128), primary_key=True)
    data = Column(Text, nullable=False)  # JSON object
    version = Column(Integer, nullable=False, default=0)  # collection version at last write
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CollectionVersion(Base):
    """Monotonic write counter per collection; bumped on every set/increment/delete."""
    __tablename__ = "collection_versions"

    collection = Column(String(64), primary_key=True)
    version = Column(Integer, nullable=False, default=0)
