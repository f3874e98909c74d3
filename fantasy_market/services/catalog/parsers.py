# fantasy_market/services/catalog/parsers.py
from __future__ import annotations

import zlib
from decimal import Decimal
from typing import Any, Iterable, List, Optional

from fantasy_market.schemas.player import CatalogPlayer
from fantasy_market.services.positions import normalize_position

# Catalog prices live in [PRICE_FLOOR, PRICE_FLOOR + PRICE_SPREAD)
PRICE_FLOOR = 5
PRICE_SPREAD = 5


def price_for(player_id: str) -> Decimal:
    """Stable per-player price so listing and purchase agree."""
    return Decimal(PRICE_FLOOR + zlib.crc32(str(player_id).encode()) % PRICE_SPREAD)

def _get(d: Any, *keys) -> Any:
    cur = d
    for k in keys:
        if isinstance(cur, dict) and k in cur:
            cur = cur[k]
        else:
            return None
    return cur

def _as_list(x: Any) -> List:
    if x is None:
        return []
    if isinstance(x, list):
        return x
    return [x]

def _is_excluded(player: dict, excluded: Iterable[str]) -> bool:
    names = {player.get("summonerName"), player.get("name")}
    return any(n in names for n in excluded)

def teams_from_payload(payload: Any) -> List[dict]:
    """`getTeams` answers {"data": {"teams": [...]}}; anything else yields []."""
    return [t for t in _as_list(_get(payload, "data", "teams")) if isinstance(t, dict)]

def team_in_league(team: dict, league_name: Optional[str]) -> bool:
    if not league_name:
        return True
    return _get(team, "homeLeague", "name") == league_name

def player_from_node(player: dict, team: dict) -> Optional[CatalogPlayer]:
    pid = player.get("id")
    if not pid:
        return None
    summoner = player.get("summonerName")
    full_name = " ".join(p for p in (player.get("firstName"), player.get("lastName")) if p)
    role = player.get("role")
    pos = normalize_position(role)
    return CatalogPlayer(
        id=str(pid),
        name=summoner or player.get("name") or full_name or "Unknown player",
        summoner_name=summoner,
        first_name=player.get("firstName"),
        last_name=player.get("lastName"),
        image=player.get("image"),
        team=team.get("code") or team.get("slug") or "",
        team_name=team.get("name"),
        team_id=str(team["id"]) if team.get("id") is not None else None,
        position=pos.value if pos else None,
        role=role,
        price=price_for(str(pid)),
    )

def parse_players(
    payload: Any,
    league_name: Optional[str] = "LEC",
    excluded: Iterable[str] = ("Ben01",),
) -> List[CatalogPlayer]:
    """Flatten a getTeams payload into priced catalog players of one home league."""
    excluded = tuple(excluded)
    out: List[CatalogPlayer] = []
    for team in teams_from_payload(payload):
        if not team_in_league(team, league_name):
            continue
        for node in _as_list(team.get("players")):
            if not isinstance(node, dict) or _is_excluded(node, excluded):
                continue
            player = player_from_node(node, team)
            if player is not None:
                out.append(player)
    return out
