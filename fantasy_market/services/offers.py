# fantasy_market/services/offers.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from fantasy_market.core.config import settings
from fantasy_market.core.errors import InvalidState, OfferNotFound
from fantasy_market.db.models import PlayerOffer


class OfferStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


TERMINAL_STATUSES = frozenset(
    {OfferStatus.REJECTED, OfferStatus.EXPIRED, OfferStatus.CANCELLED, OfferStatus.COMPLETED}
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value

def is_expired(offer: PlayerOffer, now: datetime) -> bool:
    return as_utc(now) > as_utc(offer.expires_at)


def create(
    db: Session,
    *,
    player_id: str,
    league_id: str,
    seller_user_id: str,
    buyer_user_id: str,
    price: Decimal,
    now: Optional[datetime] = None,
    ttl_hours: Optional[int] = None,
) -> PlayerOffer:
    created = as_utc(now or utcnow())
    ttl = settings.OFFER_TTL_HOURS if ttl_hours is None else ttl_hours
    offer = PlayerOffer(
        player_id=player_id,
        league_id=league_id,
        seller_user_id=seller_user_id,
        buyer_user_id=buyer_user_id,
        price=price,
        status=OfferStatus.PENDING.value,
        created_at=created,
        expires_at=created + timedelta(hours=ttl),
    )
    db.add(offer)
    db.flush()
    return offer

def get(db: Session, offer_id: int, *, for_update: bool = False) -> PlayerOffer:
    stmt = select(PlayerOffer).where(PlayerOffer.id == offer_id)
    if for_update:
        stmt = stmt.with_for_update()
    offer = db.scalars(stmt).first()
    if offer is None:
        raise OfferNotFound("Offer not found", offer_id=offer_id)
    return offer

def require_pending(offer: PlayerOffer) -> None:
    if offer.status != OfferStatus.PENDING.value:
        raise InvalidState(f"Offer is already {offer.status}", offer_id=offer.id, status=offer.status)

def transition(db: Session, offer: PlayerOffer, new_status: OfferStatus) -> PlayerOffer:
    """
    pending -> new_status as a compare-and-set; a concurrent transition that got
    there first makes this one fail with InvalidState.
    """
    require_pending(offer)
    res = db.execute(
        update(PlayerOffer)
        .where(PlayerOffer.id == offer.id, PlayerOffer.status == OfferStatus.PENDING.value)
        .values(status=new_status.value)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        db.refresh(offer)
        raise InvalidState(f"Offer is already {offer.status}", offer_id=offer.id, status=offer.status)
    offer.status = new_status.value
    return offer

def expire_if_stale(db: Session, offer: PlayerOffer, now: datetime) -> bool:
    if offer.status == OfferStatus.PENDING.value and is_expired(offer, now):
        transition(db, offer, OfferStatus.EXPIRED)
        return True
    return False

def cancel_pending_for_player(db: Session, seller_user_id: str, player_id: str, league_id: str) -> int:
    res = db.execute(
        update(PlayerOffer)
        .where(
            PlayerOffer.seller_user_id == seller_user_id,
            PlayerOffer.player_id == player_id,
            PlayerOffer.league_id == league_id,
            PlayerOffer.status == OfferStatus.PENDING.value,
        )
        .values(status=OfferStatus.CANCELLED.value)
        .execution_options(synchronize_session="fetch")
    )
    return res.rowcount

def cancel_pending_for_user(db: Session, user_id: str, league_id: str) -> int:
    """Cancel every pending offer in the league where the user is seller or buyer."""
    res = db.execute(
        update(PlayerOffer)
        .where(
            PlayerOffer.league_id == league_id,
            PlayerOffer.status == OfferStatus.PENDING.value,
            or_(PlayerOffer.seller_user_id == user_id, PlayerOffer.buyer_user_id == user_id),
        )
        .values(status=OfferStatus.CANCELLED.value)
        .execution_options(synchronize_session="fetch")
    )
    return res.rowcount

def expire_stale(db: Session, now: Optional[datetime] = None, league_id: Optional[str] = None) -> int:
    """Batch sweep: mark every pending offer past its deadline as expired."""
    stmt = (
        update(PlayerOffer)
        .where(PlayerOffer.status == OfferStatus.PENDING.value, PlayerOffer.expires_at < as_utc(now or utcnow()))
        .values(status=OfferStatus.EXPIRED.value)
        .execution_options(synchronize_session="fetch")
    )
    if league_id is not None:
        stmt = stmt.where(PlayerOffer.league_id == league_id)
    return db.execute(stmt).rowcount

def list_pending(db: Session, user_id: str, league_id: str) -> Tuple[List[PlayerOffer], List[PlayerOffer]]:
    """(incoming, outgoing) pending offers for the user, oldest first."""
    base = (
        select(PlayerOffer)
        .where(PlayerOffer.league_id == league_id, PlayerOffer.status == OfferStatus.PENDING.value)
        .order_by(PlayerOffer.created_at)
    )
    incoming = list(db.scalars(base.where(PlayerOffer.buyer_user_id == user_id)))
    outgoing = list(db.scalars(base.where(PlayerOffer.seller_user_id == user_id)))
    return incoming, outgoing

def list_completed(db: Session, league_id: str) -> List[PlayerOffer]:
    stmt = select(PlayerOffer).where(
        PlayerOffer.league_id == league_id,
        PlayerOffer.status.in_([OfferStatus.COMPLETED.value, OfferStatus.ACCEPTED.value]),
    )
    return list(db.scalars(stmt))
