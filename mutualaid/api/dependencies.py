from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy.orm import Session

from .. import config


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session; resolved through ``config`` so tests can swap the factory."""
    db = config.SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for work outside a request (startup, scripts); rolls back on error."""
    session = config.SessionLocal()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
