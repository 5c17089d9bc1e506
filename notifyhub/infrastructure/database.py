"""Database configuration and session management."""

from __future__ import annotations

from collections.abc import Generator
from typing import Any

import logging

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from notifyhub.config import Settings, get_settings


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


logger = logging.getLogger(__name__)


def build_engine(database_url: str, *, lock_timeout_seconds: float | None = None) -> Engine:
    """Create an engine for ``database_url`` with backend specific options."""

    connect_args: dict[str, Any] = {}
    if database_url.startswith("sqlite"):
        # Sessions are used from dispatcher and request threads alike.
        connect_args["check_same_thread"] = False
        if lock_timeout_seconds is not None:
            connect_args["timeout"] = lock_timeout_seconds
    return create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Return the session factory used by repositories and use cases."""

    return sessionmaker(
        autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
    )


def _settings_engine(settings: Settings) -> Engine:
    return build_engine(
        settings.database_url, lock_timeout_seconds=settings.notify_timeout_seconds
    )


settings = get_settings()
engine = _settings_engine(settings)
SessionLocal = build_session_factory(engine)


def initialize_database(bind: Engine | None = None) -> None:
    """Ensure all ORM models have corresponding database tables."""

    from notifyhub.infrastructure import models  # noqa: F401  # ensure models are imported

    target = bind or engine
    Base.metadata.create_all(bind=target, checkfirst=True)
    logger.debug("Database schema ensured for %s", target.url.render_as_string())


def get_db() -> Generator:
    """Yield a database session and close it afterwards."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def dialect_insert(session: Session, model: type[Base]):
    """Return an ``INSERT`` construct supporting ``ON CONFLICT`` for ``model``.

    ``None`` is returned when the bound dialect has no native upsert; callers
    then fall back to update-then-insert inside a savepoint.
    """

    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert

        return insert(model)
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert

        return insert(model)
    return None


LOCK_NOT_AVAILABLE_SQLSTATE = "55P03"


def apply_lock_timeout(session: Session, seconds: float) -> None:
    """Bound row-lock waits for the rest of the current transaction.

    PostgreSQL gets a transaction-local ``lock_timeout``. SQLite already
    bounds waits with the connection ``timeout`` set by :func:`build_engine`.
    """

    if session.get_bind().dialect.name != "postgresql":
        return
    milliseconds = max(1, int(seconds * 1000))
    session.execute(
        text("SELECT set_config('lock_timeout', :value, true)"),
        {"value": f"{milliseconds}ms"},
    )


def is_lock_timeout(exc: OperationalError) -> bool:
    """Return ``True`` when ``exc`` reports giving up on a lock wait."""

    orig = exc.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate == LOCK_NOT_AVAILABLE_SQLSTATE:
        return True
    return "database is locked" in str(orig)
