# fantasy_market/db/session.py
import logging
from typing import Iterator

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from fantasy_market.db.engine import SessionLocal, engine
from fantasy_market.db.models import Base

logger = logging.getLogger(__name__)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
        # services commit their own units of work; this flushes anything left over
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
    finally:
        try:
            db.close()
        except OperationalError:
            # underlying socket already dead; dispose pool to force fresh conns next time
            logger.warning("DB close failed; disposing connection pool")
            engine.dispose()


def get_session_factory():
    """Factory for work that outlives the request session (e.g. background tasks)."""
    return SessionLocal


def init_db(bind=None) -> None:
    Base.metadata.create_all(bind=bind or engine)
