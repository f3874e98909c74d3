"""
Player catalog package: where real-world players, teams, roles and prices come from.
"""

from fantasy_market.core.config import settings

from .client import lolesports_get
from .parsers import parse_players, price_for
from .players import (
    FAKE_PLAYERS,
    LolEsportsCatalog,
    PlayerCatalog,
    StaticCatalog,
    players_by_position,
    players_by_team,
)


def build_catalog() -> PlayerCatalog:
    """Catalog selected by configuration (fake mode serves the static roster)."""
    if settings.CATALOG_FAKE_MODE:
        return StaticCatalog(FAKE_PLAYERS)
    return LolEsportsCatalog()
