from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from redflow.settings import get_settings

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _engine() -> Engine:
    url = get_settings().sqlalchemy_database_url
    if url.startswith("sqlite"):
        # Recording workers write from worker threads
        return create_engine(url, future=True, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_pre_ping=True,
        future=True,
        pool_size=20,
        max_overflow=30,
        pool_recycle=3600,
        pool_timeout=30,
    )


@lru_cache(maxsize=1)
def _session_factory() -> sessionmaker[Session]:
    return sessionmaker(bind=_engine(), autoflush=False, autocommit=False, future=True)


def get_engine() -> Engine:
    """Get the SQLAlchemy engine instance."""
    return _engine()


def session_factory() -> sessionmaker[Session]:
    return _session_factory()


@contextmanager
def db_session(factory: sessionmaker[Session] | None = None) -> Iterator[Session]:
    """
    Context manager for database sessions with guaranteed cleanup.

    Usage:
        with db_session() as session:
            flow = repository.get_flow(session, flow_id)
    """
    session = (factory or _session_factory())()
    try:
        yield session
    except Exception as e:
        logger.warning("Database session error, rolling back: %s", e)
        session.rollback()
        raise
    finally:
        try:
            session.close()
        except Exception as e:
            logger.error("Failed to close database session: %s", e)


@contextmanager
def db_transaction(factory: sessionmaker[Session] | None = None) -> Iterator[Session]:
    """
    Context manager for database transactions with automatic commit/rollback.

    Usage:
        with db_transaction() as session:
            repository.update_task_status(session, task_id, UnitStatus.running)
        # Committed and closed here
    """
    session = (factory or _session_factory())()
    try:
        yield session
        session.commit()
        logger.debug("Database transaction committed successfully")
    except Exception as e:
        logger.warning("Database transaction failed, rolling back: %s", e)
        session.rollback()
        raise
    finally:
        try:
            session.close()
        except Exception as e:
            logger.error("Failed to close database session: %s", e)
