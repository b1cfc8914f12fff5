"""Database engine, session factory and declarative base.

Nothing here is created at import time: callers build an engine from a URL
(usually ``settings.database_url``) and hand sessions to the services that
need them.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .core.config import Settings, settings as default_settings

# Create base class for models
Base = declarative_base()


def _unicode_lower(value):
    return None if value is None else str(value).lower()


def build_engine(url: Optional[str] = None, app_settings: Optional[Settings] = None, **kwargs) -> Engine:
    """Create an engine with database-specific tuning.

    SQLite gets foreign keys switched on for every connection and a busy
    timeout so concurrent writers wait for the lock instead of failing.
    PostgreSQL gets a connection pool sized from settings.
    """
    cfg = app_settings or default_settings
    url = url or cfg.database_url

    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", 30)
        engine = create_engine(url, connect_args=connect_args, **kwargs)

        # SQLite defaults foreign_keys to OFF, so CASCADE constraints are
        # silently ignored unless we enable them on every connection.
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
            # Built-in lower() only folds ASCII; search lowers patterns with str.lower().
            dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)

        return engine

    return create_engine(
        url,
        pool_size=cfg.db_pool_size,
        max_overflow=cfg.db_max_overflow,
        pool_timeout=cfg.db_pool_timeout,
        pool_recycle=cfg.db_pool_recycle,
        # Detects stale connections before use.
        pool_pre_ping=True,
        **kwargs,
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to *engine*."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create all forum tables that do not exist yet."""
    from . import models  # noqa: F401  (registers the mappers on Base)

    Base.metadata.create_all(bind=engine)


@contextmanager
def session_scope(factory: sessionmaker) -> Iterator[Session]:
    """Provide a session that commits on success and rolls back on error.

    Rolls back the transaction on unhandled exceptions so that the
    connection is returned to the pool in a clean state.
    """
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
