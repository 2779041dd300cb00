# WORKFLOW: Database session management and the import unit of work.
# Used by: Import pipeline, persistence writer, master-data resolver
# Functions:
# 1. get_engine() / get_session_factory() - Lazy engine and session factory
# 2. init_db() - Create schema tables
# 3. check_db_connection() - Fail-fast connectivity check before a live import
# 4. UnitOfWork - One transaction per import run, committed or rolled back exactly once
#
# Database lifecycle for an import:
# Start: UnitOfWork(factory) -> BEGIN
# Runtime: every insert/delete takes the unit of work explicitly
# End: commit() on success, rollback() on any failure -> close session

import logging
from typing import Callable, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session

from core.config import settings
from core.exceptions import UnitOfWorkError

logger = logging.getLogger(__name__)

# Created on first use so tests can bind their own factory
_engine = None
_SessionLocal = None


def get_engine():
    """Engine for settings.database_url, created on first call."""
    global _engine
    if _engine is None:
        connect_args = {}
        if settings.database_url.startswith("postgresql"):
            connect_args["options"] = "-c timezone=utc"
        _engine = create_engine(
            settings.database_url,
            pool_pre_ping=True,
            echo=settings.debug,
            connect_args=connect_args
        )
    return _engine


def get_session_factory():
    """Session factory bound to get_engine(), created on first call."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal


def init_db(engine=None):
    """
    Create the contract, shipment, document and master-data tables.

    Args:
        engine: Engine to create them on (defaults to get_engine())
    """
    from db.models import Base

    try:
        Base.metadata.create_all(bind=engine or get_engine())
        logger.info(f"Created {len(Base.metadata.tables)} reimport tables")
    except Exception as e:
        logger.error(f"Schema creation failed: {e}")
        raise


def check_db_connection() -> bool:
    """Run SELECT 1 through the session factory; False if the database is unreachable."""
    try:
        with get_session_factory()() as db:
            db.execute(text("SELECT 1")).fetchone()
        return True
    except Exception as e:
        logger.error(f"Cannot reach database: {e}")
        return False


class UnitOfWork:
    """
    Scoped transaction shared by every write of one import run.

    Used as a context manager. ``commit()`` or ``rollback()`` may be called
    exactly once; leaving the block with an exception, or without having
    committed, rolls the transaction back.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory or get_session_factory()
        self._session: Optional[Session] = None
        self._finalized = False

    def __enter__(self) -> "UnitOfWork":
        self._session = self._session_factory()
        self._session.begin()
        logger.info("Database transaction started")
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if not self._finalized:
                if exc_type is None:
                    logger.warning("Unit of work closed without commit; rolling back")
                self.rollback()
        finally:
            self._session.close()
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise UnitOfWorkError("Unit of work has not been entered")
        if self._finalized:
            raise UnitOfWorkError("Unit of work already finalized")
        return self._session

    @property
    def finalized(self) -> bool:
        return self._finalized

    def add(self, obj):
        """Add ``obj`` and flush so generated keys are available."""
        self.session.add(obj)
        self.session.flush()
        return obj

    def execute(self, statement):
        return self.session.execute(statement)

    def commit(self) -> None:
        session = self.session
        session.commit()
        self._finalized = True
        logger.info("Database transaction committed")

    def rollback(self) -> None:
        if self._finalized:
            raise UnitOfWorkError("Unit of work already finalized")
        self._session.rollback()
        self._finalized = True
        logger.info("Database transaction rolled back")
