"""Database connection and session management."""

from typing import Optional
from sqlalchemy import create_engine, Engine, event
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Base class for all database models
Base = declarative_base()

# Global engine and session factory
_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str,
                 echo: bool = False,
                 connect_args: Optional[dict] = None,
                 pool_size: int = 5,
                 max_overflow: int = 10) -> Engine:
    """Create an engine for the given URL with per-backend settings."""
    if connect_args is None:
        if database_url.startswith("sqlite"):
            connect_args = {"check_same_thread": False}
        else:
            connect_args = {}

    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args=connect_args,
            poolclass=StaticPool,
            echo=echo
        )
        # Cascading deletes rely on SQLite enforcing foreign keys
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args=connect_args,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True
        )

    return engine


def get_database_engine(database_url: Optional[str] = None,
                        echo: Optional[bool] = None) -> Engine:
    """Get or create the global database engine from configuration."""
    global _engine

    if _engine is None:
        from ..config import get_config
        config = get_config()

        _engine = build_engine(
            database_url or config.database_url,
            echo=config.database_echo if echo is None else echo,
            connect_args=config.get_database_connect_args(),
            pool_size=config.database_pool_size,
            max_overflow=config.database_max_overflow
        )

    return _engine


def get_session_factory() -> sessionmaker:
    """Get the session factory bound to the global engine."""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=get_database_engine())
    return _session_factory


def reset_database_engine():
    """Reset the global database engine (mainly for testing)."""
    global _engine, _session_factory
    if _engine:
        _engine.dispose()
    _engine = None
    _session_factory = None


def get_db():
    """Dependency to get database session."""
    db: Session = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


def create_tables(engine: Optional[Engine] = None):
    """Create all database tables."""
    # Model classes must be imported so they register on Base.metadata
    from . import models  # noqa: F401
    Base.metadata.create_all(bind=engine or get_database_engine())


def drop_tables(engine: Optional[Engine] = None):
    """Drop all database tables."""
    from . import models  # noqa: F401
    Base.metadata.drop_all(bind=engine or get_database_engine())
