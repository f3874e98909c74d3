# fantasy_market/services/memberships.py
"""
Thin league-membership collaborator.

League creation and joining live outside the marketplace; this module only
answers "is this user in this league?" and keeps the ledger account in step
with membership (opened on join, closed on leave, along with the leaver's
players, lineup and pending offers).
"""
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from fantasy_market.core.errors import Conflict, Forbidden, NotFound
from fantasy_market.db.models import League, LeagueMember, User
from fantasy_market.services import ledger, lineup, offers, ownership

logger = logging.getLogger(__name__)


def get_league(db: Session, league_id: str) -> League:
    league = db.get(League, league_id)
    if league is None:
        raise NotFound("League not found", league_id=league_id)
    return league

def is_participant(db: Session, user_id: str, league_id: str) -> bool:
    stmt = select(LeagueMember.id).where(
        LeagueMember.user_id == user_id, LeagueMember.league_id == league_id
    )
    return db.execute(stmt).first() is not None

def require_participant(db: Session, user_id: str, league_id: str) -> League:
    league = get_league(db, league_id)
    if not is_participant(db, user_id, league_id):
        raise Forbidden("You are not a participant in this league", league_id=league_id)
    return league

def list_participants(db: Session, league_id: str, exclude_user_id: Optional[str] = None) -> List[User]:
    stmt = (
        select(User)
        .join(LeagueMember, LeagueMember.user_id == User.id)
        .where(LeagueMember.league_id == league_id)
        .order_by(LeagueMember.joined_at, User.username)
    )
    if exclude_user_id:
        stmt = stmt.where(User.id != exclude_user_id)
    return list(db.scalars(stmt))

def usernames(db: Session, user_ids) -> dict[str, str]:
    ids = {u for u in user_ids if u}
    if not ids:
        return {}
    rows = db.execute(select(User.id, User.username).where(User.id.in_(ids))).all()
    return {uid: name for uid, name in rows}


# ---------- membership lifecycle (external collaborator) ----------

def create_league(db: Session, name: str, created_by: str) -> League:
    """Create a league with its creator as first participant."""
    league = League(name=name, created_by=created_by)
    db.add(league)
    db.flush()
    join_league(db, created_by, league.id)
    return league

def join_league(db: Session, user_id: str, league_id: str) -> LeagueMember:
    """Add a participant and open their ledger account at the starting budget."""
    get_league(db, league_id)
    if is_participant(db, user_id, league_id):
        raise Conflict("User is already a member of this league", league_id=league_id)
    member = LeagueMember(user_id=user_id, league_id=league_id)
    db.add(member)
    ledger.open_account(db, user_id, league_id)
    db.flush()
    logger.info("user %s joined league %s", user_id, league_id)
    return member

def leave_league(db: Session, user_id: str, league_id: str) -> None:
    """
    Remove a participant. Their players go back to the market, their lineup and
    pending offers (as seller or buyer) go with them, and the account is closed.
    Everything is flushed into the caller's unit of work.
    """
    league = get_league(db, league_id)
    if league.created_by == user_id:
        raise Forbidden("The league creator cannot leave the league", league_id=league_id)
    member = db.scalars(
        select(LeagueMember).where(LeagueMember.user_id == user_id, LeagueMember.league_id == league_id)
    ).first()
    if member is None:
        raise NotFound("You are not a member of this league", league_id=league_id)
    released = ownership.revoke_all_for_user(db, user_id, league_id)
    lineup.clear_user(db, user_id, league_id)
    cancelled = offers.cancel_pending_for_user(db, user_id, league_id)
    db.delete(member)
    ledger.close_account(db, user_id, league_id)
    db.flush()
    logger.info(
        "user %s left league %s: released %d players, cancelled %d offers",
        user_id, league_id, released, cancelled,
    )
