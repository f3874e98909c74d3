# fantasy_market/schemas/transaction.py
from __future__ import annotations
from datetime import datetime
from typing import List, Literal, Optional

from fantasy_market.schemas.common import CamelModel, MoneyValue

TransactionType = Literal["purchase", "sale", "trade"]


class TransactionOut(CamelModel):
    id: int
    type: TransactionType
    league_id: str
    player_id: str
    player_name: str
    player_team: Optional[str] = None
    player_position: Optional[str] = None
    price: MoneyValue
    user_id: Optional[str] = None
    username: Optional[str] = None
    seller_user_id: Optional[str] = None
    seller_username: Optional[str] = None
    buyer_user_id: Optional[str] = None
    buyer_username: Optional[str] = None
    offer_id: Optional[int] = None
    created_at: Optional[datetime] = None


class TransactionCounts(CamelModel):
    purchases: int
    sales: int
    trades: int
    total: int


class TransactionSyncResponse(CamelModel):
    message: str
    created: int
    transaction_count: int
    transactions: List[TransactionOut]
