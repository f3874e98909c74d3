# fantasy_market/schemas/player.py
from __future__ import annotations
from datetime import datetime
from typing import Optional

from fantasy_market.schemas.common import CamelModel, MoneyValue


class CatalogPlayer(CamelModel):
    id: str
    name: str
    summoner_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image: Optional[str] = None
    team: str                        # team code, e.g. "G2"
    team_name: Optional[str] = None
    team_id: Optional[str] = None
    position: Optional[str] = None   # canonical position, None when the catalog role is unknown
    role: Optional[str] = None       # raw catalog role as published upstream
    price: MoneyValue


class OwnedPlayer(CatalogPlayer):
    acquired_at: Optional[datetime] = None


class OwnerEntry(CamelModel):
    player_id: str
    user_id: str
    owner_username: str
    position: str
    acquired_at: Optional[datetime] = None


class LineupEntry(CamelModel):
    player_id: str
    position: str
    matchday: int
    player: Optional[CatalogPlayer] = None  # None when the player is gone from the catalog
