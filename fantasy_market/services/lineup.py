# fantasy_market/services/lineup.py
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from fantasy_market.core.errors import InvalidPosition, MarketError, NotOwned, PositionMismatch
from fantasy_market.db.models import LineupSlot, PlayerOwnership
from fantasy_market.schemas.player import LineupEntry
from fantasy_market.services import ownership
from fantasy_market.services.catalog import PlayerCatalog
from fantasy_market.services.positions import CANONICAL_POSITIONS, normalize_position

logger = logging.getLogger(__name__)

DEFAULT_MATCHDAY = 1


def set_starter(
    db: Session,
    user_id: str,
    league_id: str,
    player_id: str,
    position: Optional[str],
    matchday: int = DEFAULT_MATCHDAY,
) -> LineupSlot:
    """
    Put an owned player in the (position, matchday) slot, replacing whoever
    held it. Commits on success.
    """
    pos = normalize_position(position)
    if pos is None:
        raise InvalidPosition(
            f"Position must be one of: {', '.join(CANONICAL_POSITIONS)}",
            position=position,
        )

    record: Optional[PlayerOwnership] = ownership.get_record(db, player_id, league_id)
    if record is None or record.user_id != user_id:
        raise NotOwned("You don't own this player", player_id=player_id)

    assigned = normalize_position(record.position)
    if assigned != pos:
        raise PositionMismatch(
            f"This player is a {record.position}, not a {position}",
            assigned_position=record.position,
            requested_position=position,
        )

    try:
        slot = db.scalars(
            select(LineupSlot).where(
                LineupSlot.user_id == user_id,
                LineupSlot.league_id == league_id,
                LineupSlot.position == pos.value,
                LineupSlot.matchday == matchday,
            ).with_for_update()
        ).first()
        if slot is None:
            slot = LineupSlot(
                user_id=user_id, league_id=league_id, position=pos.value, matchday=matchday, player_id=player_id
            )
            db.add(slot)
        else:
            slot.player_id = player_id
        db.commit()
    except Exception:
        db.rollback()
        raise
    return slot

def get_lineup(
    db: Session,
    catalog: PlayerCatalog,
    user_id: str,
    league_id: str,
    matchday: int = DEFAULT_MATCHDAY,
) -> List[LineupEntry]:
    """Slots for one matchday; catalog info is best-effort and may be None per slot."""
    slots = db.scalars(
        select(LineupSlot)
        .where(LineupSlot.user_id == user_id, LineupSlot.league_id == league_id, LineupSlot.matchday == matchday)
        .order_by(LineupSlot.position)
    ).all()

    return [to_entry(catalog, slot) for slot in slots]

def to_entry(catalog: PlayerCatalog, slot: LineupSlot) -> LineupEntry:
    try:
        player = catalog.lookup(slot.player_id)
    except MarketError as exc:
        logger.warning("lineup: catalog lookup failed for %s: %s", slot.player_id, exc)
        player = None
    return LineupEntry(player_id=slot.player_id, position=slot.position, matchday=slot.matchday, player=player)

def clear_player(db: Session, user_id: str, league_id: str, player_id: str) -> int:
    """Drop the player from every matchday slot of this user; part of the caller's unit of work."""
    res = db.execute(
        delete(LineupSlot)
        .where(LineupSlot.user_id == user_id, LineupSlot.league_id == league_id, LineupSlot.player_id == player_id)
        .execution_options(synchronize_session="fetch")
    )
    return res.rowcount

def clear_user(db: Session, user_id: str, league_id: str) -> int:
    res = db.execute(
        delete(LineupSlot)
        .where(LineupSlot.user_id == user_id, LineupSlot.league_id == league_id)
        .execution_options(synchronize_session="fetch")
    )
    return res.rowcount
