# fantasy_market/schemas/market.py
from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from fantasy_market.schemas.common import CamelModel, MoneyValue
from fantasy_market.schemas.player import CatalogPlayer


# ---------- requests ----------

class BuyRequest(CamelModel):
    player_id: str = Field(..., min_length=1)
    league_id: str = Field(..., min_length=1)
    position: Optional[str] = Field(default=None, description="Overrides the catalog role, e.g. 'adc'")


class SellRequest(CamelModel):
    player_id: str = Field(..., min_length=1)
    league_id: str = Field(..., min_length=1)


class OfferCreateRequest(CamelModel):
    player_id: str = Field(..., min_length=1)
    league_id: str = Field(..., min_length=1)
    target_user_id: str = Field(..., min_length=1)
    price: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)


class LineupRequest(CamelModel):
    player_id: str = Field(..., min_length=1)
    league_id: str = Field(..., min_length=1)
    position: str = Field(..., min_length=1)
    matchday: int = Field(default=1, ge=1)


# ---------- responses ----------

class BuyResponse(CamelModel):
    message: str = "Player purchased successfully"
    player: CatalogPlayer
    remaining_money: MoneyValue


class SellResponse(CamelModel):
    message: str = "Player sold successfully"
    sell_price: MoneyValue
    new_balance: MoneyValue
    cancelled_offers: int


class OfferCreatedResponse(CamelModel):
    message: str = "Offer created successfully"
    offer_id: int


class AcceptOfferResponse(CamelModel):
    message: str = "Transfer completed successfully"
    player_id: str
    player: Optional[CatalogPlayer] = None


class OfferOut(CamelModel):
    id: int
    player_id: str
    league_id: str
    seller_user_id: str
    seller_username: Optional[str] = None
    buyer_user_id: str
    buyer_username: Optional[str] = None
    price: MoneyValue
    status: str
    created_at: datetime
    expires_at: datetime
    player: Optional[CatalogPlayer] = None


class OffersResponse(CamelModel):
    incoming: List[OfferOut]
    outgoing: List[OfferOut]


class BalanceOut(CamelModel):
    user_id: str
    league_id: str
    money: MoneyValue


class LeagueUser(CamelModel):
    id: str
    username: str
