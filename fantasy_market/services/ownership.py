# fantasy_market/services/ownership.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fantasy_market.core.errors import AlreadyOwned
from fantasy_market.db.models import PlayerOwnership
from fantasy_market.services.positions import Position


def get_record(db: Session, player_id: str, league_id: str, *, for_update: bool = False) -> Optional[PlayerOwnership]:
    stmt = select(PlayerOwnership).where(
        PlayerOwnership.player_id == player_id, PlayerOwnership.league_id == league_id
    )
    if for_update:
        stmt = stmt.with_for_update()
    return db.scalars(stmt).first()

def owner(db: Session, player_id: str, league_id: str) -> Optional[str]:
    stmt = select(PlayerOwnership.user_id).where(
        PlayerOwnership.player_id == player_id, PlayerOwnership.league_id == league_id
    )
    return db.execute(stmt).scalar_one_or_none()

def assign(
    db: Session,
    player_id: str,
    league_id: str,
    user_id: str,
    position: Position,
    acquired_at: Optional[datetime] = None,
) -> PlayerOwnership:
    """
    Bind the player to `user_id`. Never overwrites: an existing binding (or a
    concurrent insert that wins the unique constraint) raises AlreadyOwned.
    """
    current = owner(db, player_id, league_id)
    if current is not None:
        raise AlreadyOwned("This player is already owned in this league", owner_id=current)

    record = PlayerOwnership(
        player_id=player_id,
        league_id=league_id,
        user_id=user_id,
        position=Position(position).value,
        acquired_at=acquired_at or datetime.now(timezone.utc),
    )
    try:
        with db.begin_nested():
            db.add(record)
    except IntegrityError as exc:
        raise AlreadyOwned(
            "This player was just acquired by another user",
            owner_id=owner(db, player_id, league_id),
        ) from exc
    return record

def revoke(db: Session, player_id: str, league_id: str, user_id: Optional[str] = None) -> bool:
    """Remove the binding; with `user_id`, only if that user is still the owner. No-op when absent."""
    stmt = delete(PlayerOwnership).where(
        PlayerOwnership.player_id == player_id, PlayerOwnership.league_id == league_id
    )
    if user_id is not None:
        stmt = stmt.where(PlayerOwnership.user_id == user_id)
    res = db.execute(stmt.execution_options(synchronize_session="fetch"))
    return res.rowcount > 0

def revoke_all_for_user(db: Session, user_id: str, league_id: str) -> int:
    """Release every player the user holds in the league back to the market."""
    res = db.execute(
        delete(PlayerOwnership)
        .where(PlayerOwnership.user_id == user_id, PlayerOwnership.league_id == league_id)
        .execution_options(synchronize_session="fetch")
    )
    return res.rowcount

def list_by_owner(db: Session, user_id: str, league_id: str) -> List[Tuple[str, str]]:
    return [(r.player_id, r.position) for r in list_records_by_owner(db, user_id, league_id)]

def list_records_by_owner(db: Session, user_id: str, league_id: str) -> List[PlayerOwnership]:
    stmt = (
        select(PlayerOwnership)
        .where(PlayerOwnership.user_id == user_id, PlayerOwnership.league_id == league_id)
        .order_by(PlayerOwnership.acquired_at, PlayerOwnership.id)
    )
    return list(db.scalars(stmt))

def list_league(db: Session, league_id: str) -> List[PlayerOwnership]:
    stmt = (
        select(PlayerOwnership)
        .where(PlayerOwnership.league_id == league_id)
        .order_by(PlayerOwnership.user_id, PlayerOwnership.acquired_at)
    )
    return list(db.scalars(stmt))
