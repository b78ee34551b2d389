"""Base model configuration."""
import logging
from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import DateTime, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator

from lingolearn import monitoring
from lingolearn.config import settings
from lingolearn.exceptions import ConcurrencyConflictError

logger = logging.getLogger(__name__)


# Create SQLAlchemy engine
engine = create_engine(settings.database.url, echo=settings.database.echo)


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Enforce foreign keys on SQLite connections."""
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create declarative base class
Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """DateTime stored as naive UTC and always loaded back as aware UTC.

    SQLite drops tzinfo, so comparisons only stay correct if every value
    is normalised to UTC on the way in.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.replace(tzinfo=None)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


def create_session_factory(url: str, echo: bool = False) -> sessionmaker:
    """Build an independent engine and session factory with all tables created.

    In-memory SQLite URLs share one connection so every session sees the same data.
    """
    from lingolearn.models import models  # noqa: F401

    if url in ("sqlite://", "sqlite:///:memory:"):
        own_engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        own_engine = create_engine(url, echo=echo)
    Base.metadata.create_all(bind=own_engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=own_engine)


def commit_or_raise(db: Session) -> None:
    """Commit the session, translating lost updates into ConcurrencyConflictError."""
    try:
        db.commit()
    except StaleDataError as e:
        db.rollback()
        monitoring.concurrency_conflicts.inc()
        logger.warning(f"Concurrent update detected, rolled back: {e}")
        raise ConcurrencyConflictError(str(e)) from e
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Database commit failed, rolled back")
        raise


def flush_or_raise(db: Session) -> None:
    """Flush pending rows, translating a lost find-or-create race into ConcurrencyConflictError."""
    try:
        db.flush()
    except (StaleDataError, IntegrityError) as e:
        db.rollback()
        monitoring.concurrency_conflicts.inc()
        logger.warning(f"Concurrent insert or update detected, rolled back: {e}")
        raise ConcurrencyConflictError(str(e)) from e
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Database flush failed, rolled back")
        raise


def init_db() -> None:
    """Initialize database."""
    # Import models so their tables are registered on the metadata
    from lingolearn.models import models  # noqa: F401

    Base.metadata.create_all(bind=engine)  # Create tables if they don't exist
