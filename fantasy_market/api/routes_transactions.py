# fantasy_market/api/routes_transactions.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fantasy_market.db.session import get_db
from fantasy_market.deps import get_catalog, get_current_user
from fantasy_market.schemas.transaction import TransactionCounts, TransactionOut, TransactionSyncResponse
from fantasy_market.services import memberships, transactions
from fantasy_market.services.catalog import PlayerCatalog

router = APIRouter(prefix="/transactions", tags=["transactions"])


# static segment first so "count" is never taken for a league id
@router.get("/count/{league_id}", response_model=TransactionCounts)
def transaction_counts(
    league_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user),
):
    memberships.require_participant(db, user_id, league_id)
    return transactions.count_by_type(db, league_id)


@router.post("/sync/{league_id}", response_model=TransactionSyncResponse)
def sync_transactions(
    league_id: str,
    db: Session = Depends(get_db),
    catalog: PlayerCatalog = Depends(get_catalog),
    user_id: str = Depends(get_current_user),
):
    """Rebuild missing log rows from ownership and completed offers."""
    memberships.require_participant(db, user_id, league_id)
    created = transactions.sync_from_history(db, catalog, league_id)
    rows = transactions.list_for_league(db, catalog, league_id)
    return TransactionSyncResponse(
        message=f"Synchronized {created} transactions" if created else "Transactions already up to date",
        created=created,
        transaction_count=len(rows),
        transactions=rows,
    )


@router.get("/{league_id}", response_model=List[TransactionOut])
def league_transactions(
    league_id: str,
    db: Session = Depends(get_db),
    catalog: PlayerCatalog = Depends(get_catalog),
    user_id: str = Depends(get_current_user),
):
    memberships.require_participant(db, user_id, league_id)
    return transactions.list_for_league(db, catalog, league_id)
