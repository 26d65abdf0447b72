import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from salon_booking.core.db import (
    DEFERRED_BEGIN_OPTION,
    enable_sqlite_write_locking,
    register_query_timing,
)

logger = logging.getLogger(__name__)

# Create Base class for models
Base = declarative_base()

# Internal lazy globals
_engine = None
_SessionLocal = None
_ReadSessionLocal = None
_database_url = None

DEFAULT_DATABASE_URL = "sqlite:///./salon_booking.db"


def build_engine(database_url: str):
    """Create an engine configured for the target backend.

    PostgreSQL gets a production pool. File-backed SQLite gets BEGIN
    IMMEDIATE transactions. In-memory SQLite shares one connection through
    StaticPool so DDL is visible to every session.
    """
    url = make_url(database_url)
    if url.drivername.startswith("postgres"):
        engine = create_engine(
            database_url,
            pool_size=20,
            max_overflow=40,
            pool_pre_ping=True,
            pool_recycle=3600,
            connect_args={
                "application_name": "salon_booking",
                "connect_timeout": 10,
            },
            echo=False,
        )
    elif url.drivername.startswith("sqlite") and (
        url.database in (None, "", ":memory:")
    ):
        engine = create_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    elif url.drivername.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        enable_sqlite_write_locking(engine)
    else:
        engine = create_engine(database_url, echo=False)

    register_query_timing(engine)
    return engine


def get_engine():
    """Return a cached SQLAlchemy engine, creating it from DATABASE_URL on
    first call. This allows tests to set DATABASE_URL before the engine is
    constructed."""
    global _engine
    global _database_url
    global _SessionLocal
    global _ReadSessionLocal
    database_url = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    if _engine is None or _database_url != database_url:
        if _engine is not None:
            _engine.dispose()
        _engine = build_engine(database_url)
        _database_url = database_url
        _SessionLocal = None
        _ReadSessionLocal = None
        logger.debug(
            "SQLAlchemy engine created",
            extra={
                "context": {
                    "url": _engine.url.render_as_string(hide_password=True),
                    "dialect": _engine.dialect.name,
                }
            },
        )
    return _engine


def read_only_engine(engine):
    """View of ``engine`` whose SQLite transactions begin deferred.

    Shares the pool and listeners of ``engine``. Sessions bound to it must
    not run check-then-write sequences.
    """
    return engine.execution_options(**{DEFERRED_BEGIN_OPTION: True})


def get_sessionmaker():
    """Return a cached sessionmaker bound to the lazy engine."""
    global _SessionLocal
    engine = get_engine()
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
        )
    return _SessionLocal


def SessionLocal():
    """Return a new Session bound to the current engine."""
    return get_sessionmaker()()


def ReadSessionLocal():
    """Return a new Session for read-only work on the current engine."""
    global _ReadSessionLocal
    engine = get_engine()
    if _ReadSessionLocal is None:
        _ReadSessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=read_only_engine(engine),
        )
    return _ReadSessionLocal()


def create_tables():
    """Create all tables in database using the lazy engine."""
    # Register models on Base.metadata
    from salon_booking.db import base  # noqa: F401

    Base.metadata.create_all(bind=get_engine())
