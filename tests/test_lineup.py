import pytest

from fantasy_market.core.errors import InvalidPosition, NotOwned, PositionMismatch, UpstreamUnavailable
from fantasy_market.services import lineup
from fantasy_market.services.marketplace import MarketplaceEngine


@pytest.fixture
def owned(db, catalog, league, alice):
    market = MarketplaceEngine(db, catalog)
    market.buy(alice.id, league.id, "g2-bot", requested_position="adc")
    market.buy(alice.id, league.id, "fnc-sup")
    market.buy(alice.id, league.id, "mkoi-sup")
    return market


def test_adc_purchase_fills_bottom_slot(db, catalog, owned, league, alice):
    slot = lineup.set_starter(db, alice.id, league.id, "g2-bot", "bottom")
    assert slot.position == "bottom"
    entries = lineup.get_lineup(db, catalog, alice.id, league.id)
    assert [(e.player_id, e.position, e.matchday) for e in entries] == [("g2-bot", "bottom", 1)]
    assert entries[0].player.team == "G2"


def test_alias_accepted_on_lineup_too(db, owned, league, alice):
    assert lineup.set_starter(db, alice.id, league.id, "g2-bot", "AD Carry").position == "bottom"


def test_slot_is_replaced_not_duplicated(db, catalog, owned, league, alice):
    lineup.set_starter(db, alice.id, league.id, "fnc-sup", "support")
    lineup.set_starter(db, alice.id, league.id, "mkoi-sup", "sup")
    entries = lineup.get_lineup(db, catalog, alice.id, league.id)
    assert [e.player_id for e in entries] == ["mkoi-sup"]


def test_matchdays_are_independent(db, catalog, owned, league, alice):
    lineup.set_starter(db, alice.id, league.id, "fnc-sup", "support", matchday=1)
    lineup.set_starter(db, alice.id, league.id, "mkoi-sup", "support", matchday=2)
    assert [e.player_id for e in lineup.get_lineup(db, catalog, alice.id, league.id, 1)] == ["fnc-sup"]
    assert [e.player_id for e in lineup.get_lineup(db, catalog, alice.id, league.id, 2)] == ["mkoi-sup"]


def test_position_must_be_canonical(db, owned, league, alice):
    with pytest.raises(InvalidPosition):
        lineup.set_starter(db, alice.id, league.id, "g2-bot", "flex")


def test_player_must_be_owned(db, owned, league, bob):
    with pytest.raises(NotOwned):
        lineup.set_starter(db, bob.id, league.id, "g2-bot", "bottom")


def test_position_must_match_assignment(db, owned, league, alice):
    with pytest.raises(PositionMismatch):
        lineup.set_starter(db, alice.id, league.id, "g2-bot", "mid")


def test_catalog_outage_degrades_to_bare_slots(db, owned, league, alice):
    class Down:
        def lookup(self, player_id):
            raise UpstreamUnavailable("down")

    lineup.set_starter(db, alice.id, league.id, "g2-bot", "bottom")
    entries = lineup.get_lineup(db, Down(), alice.id, league.id)
    assert entries[0].player is None
    assert entries[0].player_id == "g2-bot"
