"""
SQLAlchemy 2.0 Database Configuration

Synchronous engine and session factory for the SQL-backed ledger store.
"""

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from subledger.settings import get_settings


class Base(DeclarativeBase):
    """Base class for all database models using SQLAlchemy 2.0 declarative mapping."""

    pass


# ==========================================
# Engine and Session Management
# ==========================================

_sync_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def build_engine(url: str, echo: bool = False, pool_pre_ping: bool = True) -> Engine:
    """Create an engine, with SQLite connections usable across threads."""
    connect_args: dict[str, object] = {}
    if make_url(url).get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False
    return create_engine(url, echo=echo, connect_args=connect_args, pool_pre_ping=pool_pre_ping)


def get_sync_engine() -> Engine:
    """Get or create the synchronous engine."""
    global _sync_engine
    if _sync_engine is None:
        database = get_settings().database
        _sync_engine = build_engine(
            database.url, echo=database.echo, pool_pre_ping=database.pool_pre_ping
        )
    return _sync_engine


def get_session_factory() -> sessionmaker[Session]:
    """Get or create the session factory bound to the global engine."""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(
            bind=get_sync_engine(),
            autoflush=False,
            expire_on_commit=False,
            class_=Session,
        )
    return _session_factory


def reset_engine() -> None:
    """Dispose the global engine (mainly for testing)."""
    global _sync_engine, _session_factory
    if _sync_engine is not None:
        _sync_engine.dispose()
    _sync_engine = None
    _session_factory = None


# ==========================================
# Database Initialization
# ==========================================


def create_all_tables(engine: Engine | None = None) -> None:
    """Create all tables in the database."""
    # Register ledger tables on the metadata.
    import subledger.ledger.sql_store  # noqa: F401

    Base.metadata.create_all(bind=engine or get_sync_engine())


def drop_all_tables(engine: Engine | None = None) -> None:
    """Drop all tables from the database. Use with caution!"""
    Base.metadata.drop_all(bind=engine or get_sync_engine())


def check_database_health() -> bool:
    """Check if the database is accessible."""
    try:
        with get_sync_engine().connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        return False


def init_db() -> None:
    """Initialize the database (create tables if needed)."""
    create_all_tables()


__all__ = [
    "Base",
    "build_engine",
    "get_sync_engine",
    "get_session_factory",
    "reset_engine",
    "create_all_tables",
    "drop_all_tables",
    "check_database_health",
    "init_db",
]
