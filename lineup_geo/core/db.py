"""Database connection and session management."""

from collections.abc import Generator
from contextlib import contextmanager
from typing import Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from lineup_geo.database.base import Base


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine for the given URL.

    In-memory SQLite shares one connection so every session sees the same
    database.
    """
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )
    return create_engine(database_url, echo=echo)


def create_session_factory(
    database_url: Optional[str] = None, engine: Optional[Engine] = None
) -> sessionmaker[Session]:
    """Create a session factory bound to an explicit engine or URL.

    Args:
        database_url: Database URL, defaults to ``settings.DATABASE_URL``
        engine: Existing engine, takes precedence over the URL

    Returns:
        sessionmaker: Factory producing synchronous sessions
    """
    if engine is None:
        if database_url is None:
            from lineup_geo.core.config import settings

            database_url = settings.DATABASE_URL
        engine = create_db_engine(database_url)

    return sessionmaker(
        bind=engine,
        expire_on_commit=False,
        autoflush=False,
    )


def init_db(engine: Engine) -> None:
    """Create missing tables."""
    # Registers the model tables on Base.metadata
    from lineup_geo.database import models  # noqa: F401

    Base.metadata.create_all(engine)


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Provide a session that rolls back on error and always closes.

    Yields:
        Session: Database session
    """
    session = factory()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
