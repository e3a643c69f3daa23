"""Engine construction and the per-request session dependency.

The engine is owned by the application lifespan (see main.py) and lives
on ``app.state.engine``; nothing here keeps a module-level connection.
"""
import logging
import time

from fastapi import Request
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

logger = logging.getLogger(__name__)


def make_engine(database_url: str):
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    else:
        connect_args = {}

    kwargs = {}
    # in-memory sqlite: every session must share the one connection
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool

    return create_engine(
        database_url,
        connect_args=connect_args,
        echo=False,
        **kwargs,
    )


def create_tables(engine, retries: int = 10, delay: float = 2) -> None:
    """Create all tables, waiting for the database to accept connections."""
    last_exc: Exception | None = None

    for attempt in range(1, retries + 1):
        try:
            SQLModel.metadata.create_all(engine)
            return
        except OperationalError as exc:
            last_exc = exc
            logger.warning(
                "Database not ready yet (attempt %d/%d); waiting %ss...",
                attempt, retries, delay,
            )
            time.sleep(delay)

    logger.error("Giving up connecting to the database.")
    if last_exc:
        raise last_exc
    raise RuntimeError("Database not reachable on startup.")


#This function gives me a session (temporary connection) to the database.
# It opens before each request and closes automatically after.
def get_session(request: Request):
    """Provide a database session per request."""
    with Session(request.app.state.engine) as session:
        yield session


def save_and_refresh(session: Session, instance):
    """Persist and refresh an instance in the current session."""
    session.add(instance)
    session.commit()
    session.refresh(instance)
    return instance
