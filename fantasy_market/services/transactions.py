# fantasy_market/services/transactions.py
"""
Append-only audit trail of purchases, sales and trades.

Rows are written *after* the marketplace commits, through `record`, which owns
its own session and never raises: ownership, ledgers and offers are the
authoritative state and this log can always be rebuilt from them with
`sync_from_history`.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from fantasy_market.core.errors import UpstreamUnavailable
from fantasy_market.db.models import MarketTransaction
from fantasy_market.schemas.player import CatalogPlayer
from fantasy_market.schemas.transaction import TransactionCounts, TransactionOut
from fantasy_market.services import memberships, offers, ownership
from fantasy_market.services.catalog import PlayerCatalog

logger = logging.getLogger(__name__)

UNKNOWN_PLAYER = "Unknown player"
# ownership acquired within this window without a purchase row gets one on sync
PURCHASE_SYNC_WINDOW = timedelta(days=7)


@dataclass(frozen=True)
class TransactionEvent:
    type: str
    league_id: str
    player_id: str
    player_name: str
    price: Decimal
    player_team: Optional[str] = None
    player_position: Optional[str] = None
    user_id: Optional[str] = None
    seller_user_id: Optional[str] = None
    buyer_user_id: Optional[str] = None
    offer_id: Optional[int] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_row(self) -> MarketTransaction:
        return MarketTransaction(**asdict(self))


def purchase_event(league_id: str, player: CatalogPlayer, position: str, user_id: str) -> TransactionEvent:
    return TransactionEvent(
        type="purchase", league_id=league_id, player_id=player.id, player_name=player.name,
        player_team=player.team, player_position=position, price=player.price, user_id=user_id,
    )

def sale_event(league_id: str, player: CatalogPlayer, position: str, price: Decimal, user_id: str) -> TransactionEvent:
    return TransactionEvent(
        type="sale", league_id=league_id, player_id=player.id, player_name=player.name,
        player_team=player.team, player_position=position, price=price, user_id=user_id,
    )

def trade_event(
    league_id: str,
    player_id: str,
    player: Optional[CatalogPlayer],
    position: str,
    price: Decimal,
    seller_user_id: str,
    buyer_user_id: str,
    offer_id: int,
) -> TransactionEvent:
    return TransactionEvent(
        type="trade", league_id=league_id, player_id=player_id,
        player_name=player.name if player else UNKNOWN_PLAYER,
        player_team=player.team if player else None,
        player_position=position, price=price,
        seller_user_id=seller_user_id, buyer_user_id=buyer_user_id, offer_id=offer_id,
    )


# ---------- fire-and-forget writer ----------

def record(session_factory: Callable[[], Session], event: TransactionEvent) -> bool:
    """Persist one event. Failures are logged and reported as False, never raised."""
    db = session_factory()
    try:
        row = event.to_row()
        db.add(row)
        db.commit()
        logger.info("%s transaction registered: %s (player=%s league=%s)", event.type, row.id, event.player_id, event.league_id)
        return True
    except Exception:
        db.rollback()
        logger.exception("Error registering %s transaction for player %s", event.type, event.player_id)
        return False
    finally:
        db.close()


# ---------- reads ----------

def _rows(db: Session, league_id: str) -> List[MarketTransaction]:
    stmt = (
        select(MarketTransaction)
        .where(MarketTransaction.league_id == league_id)
        .order_by(MarketTransaction.created_at.desc(), MarketTransaction.id.desc())
    )
    return list(db.scalars(stmt))

def _to_out(rows: List[MarketTransaction], names: Dict[str, str]) -> List[TransactionOut]:
    return [
        TransactionOut(
            id=r.id, type=r.type, league_id=r.league_id, player_id=r.player_id,
            player_name=r.player_name, player_team=r.player_team, player_position=r.player_position,
            price=r.price,
            user_id=r.user_id, username=names.get(r.user_id),
            seller_user_id=r.seller_user_id, seller_username=names.get(r.seller_user_id),
            buyer_user_id=r.buyer_user_id, buyer_username=names.get(r.buyer_user_id),
            offer_id=r.offer_id, created_at=r.created_at,
        )
        for r in rows
    ]

def list_for_league(db: Session, catalog: PlayerCatalog, league_id: str) -> List[TransactionOut]:
    """Newest first. An empty log is first rebuilt from ownership and offer history."""
    rows = _rows(db, league_id)
    if not rows:
        created = sync_from_history(db, catalog, league_id)
        if created:
            rows = _rows(db, league_id)
    ids = {uid for r in rows for uid in (r.user_id, r.seller_user_id, r.buyer_user_id)}
    return _to_out(rows, memberships.usernames(db, ids))

def count_by_type(db: Session, league_id: str) -> TransactionCounts:
    rows = db.execute(
        select(MarketTransaction.type, func.count(MarketTransaction.id))
        .where(MarketTransaction.league_id == league_id)
        .group_by(MarketTransaction.type)
    ).all()
    counts = {t: n for t, n in rows}
    purchases, sales, trades = counts.get("purchase", 0), counts.get("sale", 0), counts.get("trade", 0)
    return TransactionCounts(purchases=purchases, sales=sales, trades=trades, total=purchases + sales + trades)


# ---------- reconstruction ----------

def _safe_lookup(catalog: PlayerCatalog, player_id: str) -> Optional[CatalogPlayer]:
    try:
        return catalog.lookup(player_id)
    except UpstreamUnavailable:
        logger.warning("sync: catalog unavailable for player %s", player_id)
        return None

def sync_from_history(
    db: Session,
    catalog: PlayerCatalog,
    league_id: str,
    now: Optional[datetime] = None,
) -> int:
    """
    Recreate missing rows: one trade per completed offer, one purchase per
    recent ownership that no purchase or trade explains. Safe to run repeatedly.
    """
    now = offers.as_utc(now or datetime.now(timezone.utc))
    existing = _rows(db, league_id)
    logged_offers = {r.offer_id for r in existing if r.offer_id is not None}
    logged_purchases = {(r.player_id, r.user_id) for r in existing if r.type == "purchase"}

    completed = offers.list_completed(db, league_id)
    traded_to = {(o.player_id, o.buyer_user_id) for o in completed}
    held = {(r.player_id, r.user_id): r.position for r in ownership.list_league(db, league_id)}

    to_create: List[MarketTransaction] = []

    for offer in completed:
        if offer.id in logged_offers:
            continue
        player = _safe_lookup(catalog, offer.player_id)
        # the buyer's stored position is what the trade was made at
        position = held.get((offer.player_id, offer.buyer_user_id)) or (player.position if player else None)
        row = trade_event(
            league_id, offer.player_id, player, position,
            offer.price, offer.seller_user_id, offer.buyer_user_id, offer.id,
        ).to_row()
        row.created_at = offer.created_at
        to_create.append(row)

    cutoff = now - PURCHASE_SYNC_WINDOW
    for rec in ownership.list_league(db, league_id):
        key = (rec.player_id, rec.user_id)
        if key in logged_purchases or key in traded_to:
            continue
        if rec.acquired_at is None or offers.as_utc(rec.acquired_at) < cutoff:
            continue
        player = _safe_lookup(catalog, rec.player_id)
        if player is None:
            continue
        # the price paid was not stored; the current catalog price stands in for it
        row = purchase_event(league_id, player, rec.position, rec.user_id).to_row()
        row.created_at = rec.acquired_at
        to_create.append(row)

    if not to_create:
        logger.info("sync: nothing to reconstruct for league %s", league_id)
        return 0

    try:
        db.add_all(to_create)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("sync: created %d transactions for league %s", len(to_create), league_id)
    return len(to_create)
