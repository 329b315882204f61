from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy.orm import Session

from app.crm.db import create_db_engine, create_session_factory, transaction


@contextmanager
def script_session(db_url: str) -> Generator[Session, None, None]:
    """One-off session for CLI scripts; commits on success and disposes the engine."""
    engine = create_db_engine(db_url)
    try:
        with transaction(create_session_factory(engine)) as s:
            yield s
    finally:
        engine.dispose()
