"""
Engine and session plumbing.

The app keeps one engine and one sessionmaker in ``app.extensions``; request
handlers share a session on ``g`` that is closed at teardown. CLI scripts build
their own engine through ``create_db_engine`` so pool settings stay in one place.
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from contextlib import contextmanager

from flask import Flask, current_app, g
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)

POSTGRES_POOL_OPTIONS = {
    "pool_recycle": 1800,
    "pool_size": 5,
    "max_overflow": 10,
    "pool_timeout": 30,
}


def create_db_engine(db_url: str, *, trace_checkouts: bool = False) -> Engine:
    options: dict[str, object] = {"future": True, "pool_pre_ping": True}
    if db_url.startswith("postgres"):
        options.update(POSTGRES_POOL_OPTIONS)
    engine = create_engine(db_url, **options)
    if trace_checkouts:
        @event.listens_for(engine, "checkout")
        def _on_checkout(dbapi_connection, connection_record, connection_proxy):  # type: ignore[no-redef]
            logger.debug("DB connection checkout from pool")
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False)


def init_db(app: Flask) -> None:
    engine = create_db_engine(
        app.config["DATABASE_URL"],
        trace_checkouts=app.config.get("ENV") != "production",
    )
    app.extensions["sqlalchemy_engine"] = engine
    app.extensions["sqlalchemy_sessionmaker"] = create_session_factory(engine)


def db_session() -> Session:
    """Session shared by everything that runs inside the current request."""
    s: Session | None = getattr(g, "db_session", None)
    if s is None:
        s = current_app.extensions["sqlalchemy_sessionmaker"]()
        g.db_session = s
    return s


def teardown_db_session(exc: BaseException | None) -> None:
    s: Session | None = g.pop("db_session", None)
    if s is None:
        return
    if exc is not None:
        s.rollback()
    s.close()


@contextmanager
def transaction(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    s = factory()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()


@contextmanager
def session_scope(app: Flask) -> Generator[Session, None, None]:
    """Out-of-request session on the app's engine; commits on success."""
    with transaction(app.extensions["sqlalchemy_sessionmaker"]) as s:
        yield s
