"""
SQLite Database Layer for Wheelcast
Stores owner accounts and their weighted wheel items.
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator

from sqlalchemy import (
    create_engine, Column, Integer, Float, String, DateTime, ForeignKey,
    Index, event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from wheelcast import config
from wheelcast.core.errors import Unavailable

logger = logging.getLogger(__name__)

Base = declarative_base()


def _new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class Owner(Base):
    """A tenant account holding a wheel and its capability token."""
    __tablename__ = "owners"

    id = Column(String(32), primary_key=True, default=_new_id)
    username = Column(String(64), nullable=False)
    username_key = Column(String(64), nullable=False, unique=True)  # lower-cased username
    password_hash = Column(String(255), nullable=False)
    role = Column(String(16), nullable=False, default="user")       # admin or user
    wheel_key = Column(String(128), nullable=True, unique=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class Item(Base):
    """A weighted wheel slice ("category") belonging to one owner."""
    __tablename__ = "items"

    id = Column(String(32), primary_key=True, default=_new_id)
    owner_id = Column(String(32), ForeignKey("owners.id"), nullable=False)
    label = Column(String(255), nullable=False)
    weight = Column(Float, nullable=False)
    position = Column(Integer, nullable=False)  # insertion order within the owner
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_items_owner_position", "owner_id", "position"),
    )


# ---------------------------------------------------------------------------
# Engine / session setup
# ---------------------------------------------------------------------------

def create_engine_for(url: str) -> Engine:
    """Build an engine for ``url``. In-memory SQLite shares one connection."""
    kwargs = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url.rstrip("/") == "sqlite:":
            kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)

    if url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


engine = create_engine_for(config.DATABASE_URL)
SessionLocal = make_session_factory(engine)


def init_db(bind: Engine = None):
    """Create all tables if they don't exist."""
    Base.metadata.create_all(bind=bind or engine)


@contextmanager
def session_scope(factory: Callable[[], Session] = None) -> Iterator[Session]:
    """Yield a session that commits on success and rolls back on failure.

    Driver/ORM faults surface as ``Unavailable``; domain errors raised inside
    the block propagate unchanged after the rollback.
    """
    db = (factory or SessionLocal)()
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Database operation failed")
        raise Unavailable("Storage unavailable") from exc
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
