import structlog
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from opsdesk.core.config import DATABASE_URL
from opsdesk.core.errors import StaleRevision

logger = structlog.get_logger(__name__)

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, pool_pre_ping=True, connect_args=connect_args)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def commit_or_rollback(db: Session, event: str, **fields) -> None:
    """Commit the unit of work, or roll it back and re-raise.

    A concurrent write to a versioned row surfaces as ``StaleRevision``.
    """
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        logger.warning("stale_revision", operation=event, **fields)
        raise StaleRevision("The record was changed by another request; reload and retry")
    except SQLAlchemyError:
        db.rollback()
        logger.exception("store_error", operation=event, **fields)
        raise
