# fantasy_market/services/maintenance.py
"""
Batch sweep for offers nobody touched after their deadline.

Expiry is otherwise lazy (on accept/reject/cancel/list); this keeps the table
tidy when run from cron:  fantasy-market-expire-offers [--league LEAGUE_ID]
"""
import argparse
import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from fantasy_market.core.config import settings
from fantasy_market.core.logging_config import setup_logging
from fantasy_market.db.session import get_session_factory
from fantasy_market.services import offers

logger = logging.getLogger(__name__)


def expire_stale_offers(
    session_factory: Callable[[], Session],
    now: Optional[datetime] = None,
    league_id: Optional[str] = None,
) -> int:
    db = session_factory()
    try:
        count = offers.expire_stale(db, now or offers.utcnow(), league_id=league_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
    logger.info("Expired %d stale offers%s", count, f" in league {league_id}" if league_id else "")
    return count


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Mark pending offers past their deadline as expired.")
    ap.add_argument("--league", default=None, help="Only sweep this league id")
    args = ap.parse_args(argv)

    setup_logging(settings.LOG_LEVEL)
    expire_stale_offers(get_session_factory(), league_id=args.league)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
