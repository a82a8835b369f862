import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .config import settings
from .errors import StorageUnavailable

logger = logging.getLogger(__name__)

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True, future=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

def get_session() -> Iterator[Session]:
    """
    FastAPI dependency: yields a DB session and closes it afterwards.
    NOTE: Do NOT decorate this with @contextmanager. FastAPI expects a generator.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

@contextmanager
def unit_of_work(db: Session, what: str) -> Iterator[Session]:
    """
    Everything inside the block is committed once, or rolled back as a whole.
    Flush-time failures (stale version, duplicate insert) count the same as a
    failed commit, so the caller can retry from the persisted state.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("%s failed: %s", what, e)
        raise StorageUnavailable(f"could not save {what}") from e
    except BaseException:
        db.rollback()
        raise
