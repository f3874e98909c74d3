# fantasy_market/services/catalog/players.py
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from fantasy_market.core.config import settings
from fantasy_market.schemas.player import CatalogPlayer
from fantasy_market.services.cache import memoize_ttl
from fantasy_market.services.catalog.client import lolesports_get
from fantasy_market.services.catalog.parsers import parse_players, price_for
from fantasy_market.services.positions import normalize_position

logger = logging.getLogger(__name__)


class PlayerCatalog(Protocol):
    """Read-only source of real-world players. Raises UpstreamUnavailable when it can't answer."""

    def lookup(self, player_id: str) -> Optional[CatalogPlayer]: ...

    def list_players(self) -> List[CatalogPlayer]: ...


# =========================
# LoL Esports (HTTP)
# =========================

@memoize_ttl(namespace="catalog_players", ttl_seconds=lambda: settings.CATALOG_CACHE_TTL_SECONDS)
def _fetch_league_players(league_name: str, excluded: Tuple[str, ...]) -> List[CatalogPlayer]:
    payload = lolesports_get("/getTeams")
    players = parse_players(payload, league_name=league_name, excluded=excluded)
    logger.info("Loaded %d %s players from LoL Esports", len(players), league_name)
    return players


class LolEsportsCatalog:
    def __init__(self, league_name: Optional[str] = None, excluded: Optional[Iterable[str]] = None) -> None:
        self.league_name = league_name or settings.CATALOG_LEAGUE_NAME
        self.excluded = tuple(excluded if excluded is not None else settings.CATALOG_EXCLUDED_PLAYERS)

    def list_players(self) -> List[CatalogPlayer]:
        return list(_fetch_league_players(self.league_name, self.excluded))

    def lookup(self, player_id: str) -> Optional[CatalogPlayer]:
        return next((p for p in self.list_players() if p.id == str(player_id)), None)


# =========================
# Static (fake mode / tests)
# =========================

class StaticCatalog:
    def __init__(self, players: Iterable[CatalogPlayer] = ()) -> None:
        self._players: Dict[str, CatalogPlayer] = {p.id: p for p in players}

    def add(self, player: CatalogPlayer) -> None:
        self._players[player.id] = player

    def remove(self, player_id: str) -> None:
        self._players.pop(player_id, None)

    def list_players(self) -> List[CatalogPlayer]:
        return list(self._players.values())

    def lookup(self, player_id: str) -> Optional[CatalogPlayer]:
        return self._players.get(str(player_id))


def _fake(pid: str, name: str, team: str, team_name: str, role: str) -> CatalogPlayer:
    return CatalogPlayer(
        id=pid, name=name, summoner_name=name, team=team, team_name=team_name,
        team_id=f"team-{team.lower()}", position=normalize_position(role).value, role=role,
        price=price_for(pid),
    )

FAKE_PLAYERS: List[CatalogPlayer] = [
    _fake("fake-g2-top", "BrokenBlade", "G2", "G2 Esports", "top"),
    _fake("fake-g2-jng", "SkewMond", "G2", "G2 Esports", "jungle"),
    _fake("fake-g2-mid", "Caps", "G2", "G2 Esports", "mid"),
    _fake("fake-g2-bot", "Hans Sama", "G2", "G2 Esports", "bottom"),
    _fake("fake-g2-sup", "Labrov", "G2", "G2 Esports", "support"),
    _fake("fake-fnc-top", "Oscarinin", "FNC", "Fnatic", "top"),
    _fake("fake-fnc-jng", "Razork", "FNC", "Fnatic", "jungle"),
    _fake("fake-fnc-mid", "Humanoid", "FNC", "Fnatic", "mid"),
    _fake("fake-fnc-bot", "Upset", "FNC", "Fnatic", "bottom"),
    _fake("fake-fnc-sup", "Mikyx", "FNC", "Fnatic", "support"),
    _fake("fake-kc-top", "Canna", "KC", "Karmine Corp", "top"),
    _fake("fake-kc-jng", "Yike", "KC", "Karmine Corp", "jungle"),
    _fake("fake-kc-mid", "Vladi", "KC", "Karmine Corp", "mid"),
    _fake("fake-kc-bot", "Caliste", "KC", "Karmine Corp", "bottom"),
    _fake("fake-kc-sup", "Targamas", "KC", "Karmine Corp", "support"),
]


# =========================
# listing helpers
# =========================

def players_by_team(catalog: PlayerCatalog, team_id: str) -> List[CatalogPlayer]:
    key = str(team_id).strip().lower()
    return [
        p for p in catalog.list_players()
        if (p.team_id or "").lower() == key or p.team.lower() == key
    ]

def players_by_position(catalog: PlayerCatalog, position: str) -> List[CatalogPlayer]:
    pos = normalize_position(position)
    if pos is None:
        return []
    return [p for p in catalog.list_players() if p.position == pos.value]
