from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from fantasy_market.core.errors import (
    AlreadyOwned,
    Forbidden,
    InsufficientFunds,
    InvalidPosition,
    InvalidPrice,
    InvalidState,
    InvalidTarget,
    NotFound,
    NotOwned,
    OfferExpired,
    PlayerNotFound,
    RosterLimitExceeded,
    SellerNoLongerOwns,
    UpstreamUnavailable,
)
from fantasy_market.services import ledger, lineup, memberships, offers, ownership
from fantasy_market.services.marketplace import MarketplaceEngine, market_sell_price

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class Clock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


class BrokenCatalog:
    def lookup(self, player_id):
        raise UpstreamUnavailable("Player catalog is unavailable")

    def list_players(self):
        raise UpstreamUnavailable("Player catalog is unavailable")


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def market(db, catalog, clock):
    return MarketplaceEngine(db, catalog, clock=clock)


def _balance(db, user, league):
    return ledger.get_balance(db, user.id, league.id)


# ---------- buy ----------

def test_buy_debits_price_and_assigns_owner(db, market, league, alice):
    result = market.buy(alice.id, league.id, "g2-top")
    assert result.remaining_money == Decimal("67.00")
    assert result.player.position == "top"
    assert ownership.owner(db, "g2-top", league.id) == alice.id
    assert result.event.type == "purchase"
    assert result.event.price == Decimal("8")


def test_buy_requires_participant(market, league, carol):
    with pytest.raises(Forbidden):
        market.buy(carol.id, league.id, "g2-top")


def test_buy_unknown_league(market, alice):
    with pytest.raises(NotFound):
        market.buy(alice.id, "no-such-league", "g2-top")


def test_buy_unknown_player(market, league, alice):
    with pytest.raises(PlayerNotFound):
        market.buy(alice.id, league.id, "lck-faker")


def test_already_owned_messages_distinguish_owner(market, league, alice, bob):
    market.buy(alice.id, league.id, "g2-top")
    with pytest.raises(AlreadyOwned, match="You already own"):
        market.buy(alice.id, league.id, "g2-top")
    with pytest.raises(AlreadyOwned, match="owned by alice"):
        market.buy(bob.id, league.id, "g2-top")


def test_requested_position_is_normalized(db, market, league, alice):
    result = market.buy(alice.id, league.id, "g2-top", requested_position="ADC")
    assert result.player.position == "bottom"
    assert ownership.list_by_owner(db, alice.id, league.id) == [("g2-top", "bottom")]


def test_invalid_requested_position(db, market, league, alice):
    with pytest.raises(InvalidPosition):
        market.buy(alice.id, league.id, "g2-top", requested_position="coach")
    assert _balance(db, alice, league) == Decimal("75.00")


def test_insufficient_funds_leaves_nothing_behind(db, market, league, alice):
    ledger.debit(db, alice.id, league.id, 70)
    db.commit()
    with pytest.raises(InsufficientFunds):
        market.buy(alice.id, league.id, "g2-top")
    assert ownership.owner(db, "g2-top", league.id) is None
    assert _balance(db, alice, league) == Decimal("5.00")


def test_roster_caps_scenario(db, market, league, alice):
    market.buy(alice.id, league.id, "g2-top")
    assert _balance(db, alice, league) == Decimal("67.00")

    market.buy(alice.id, league.id, "fnc-top")   # second top
    market.buy(alice.id, league.id, "g2-mid")    # second G2

    with pytest.raises(RosterLimitExceeded) as err:
        market.buy(alice.id, league.id, "kc-top")
    assert err.value.rule == "position"

    with pytest.raises(RosterLimitExceeded) as err:
        market.buy(alice.id, league.id, "g2-jng")
    assert err.value.rule == "team"
    assert "G2 Esports" in err.value.message

    assert ownership.owner(db, "kc-top", league.id) is None
    assert _balance(db, alice, league) == Decimal("75") - 8 - 7 - 9


def test_roster_size_cap(db, catalog, league, alice):
    from fantasy_market.services.roster_policy import RosterLimits

    market = MarketplaceEngine(db, catalog, limits=RosterLimits(max_size=1))
    market.buy(alice.id, league.id, "fnc-sup")
    with pytest.raises(RosterLimitExceeded) as err:
        market.buy(alice.id, league.id, "mkoi-sup")
    assert err.value.rule == "size"


def test_catalog_outage_aborts_without_writes(db, league, alice):
    market = MarketplaceEngine(db, BrokenCatalog())
    with pytest.raises(UpstreamUnavailable):
        market.buy(alice.id, league.id, "g2-top")
    assert ownership.owner(db, "g2-top", league.id) is None
    assert _balance(db, alice, league) == Decimal("75.00")


# ---------- sell to market ----------

@pytest.mark.parametrize(
    "price, expected",
    [(5, 3), (6, 4), (7, 5), (8, 5), (9, 6)],
)
def test_market_pays_two_thirds_rounded_half_up(price, expected):
    assert market_sell_price(Decimal(price), Decimal(2) / Decimal(3)) == Decimal(expected)


def test_sell_to_market_credits_and_frees_player(db, market, league, alice):
    market.buy(alice.id, league.id, "g2-top")
    result = market.sell_to_market(alice.id, league.id, "g2-top")
    assert result.sell_price == Decimal("5")
    assert result.new_balance == Decimal("72.00")
    assert result.cancelled_offers == 0
    assert ownership.owner(db, "g2-top", league.id) is None
    assert result.event.type == "sale"


def test_sell_requires_ownership(market, league, alice, bob):
    market.buy(alice.id, league.id, "g2-top")
    with pytest.raises(NotOwned):
        market.sell_to_market(bob.id, league.id, "g2-top")


def test_sell_clears_lineup_slots(db, market, league, alice):
    market.buy(alice.id, league.id, "g2-top")
    lineup.set_starter(db, alice.id, league.id, "g2-top", "top", matchday=1)
    lineup.set_starter(db, alice.id, league.id, "g2-top", "top", matchday=2)
    market.sell_to_market(alice.id, league.id, "g2-top")
    assert lineup.get_lineup(db, market.catalog, alice.id, league.id, 1) == []
    assert lineup.get_lineup(db, market.catalog, alice.id, league.id, 2) == []


def test_sell_cancels_pending_offers_then_accept_fails(db, market, league, alice, bob):
    market.buy(alice.id, league.id, "g2-top")
    offer = market.create_offer(alice.id, league.id, "g2-top", bob.id, 10)

    result = market.sell_to_market(alice.id, league.id, "g2-top")
    assert result.cancelled_offers == 1
    assert offers.get(db, offer.id).status == "cancelled"

    with pytest.raises(InvalidState):
        market.accept_offer(offer.id, bob.id)


# ---------- offers ----------

def test_create_offer_validations(market, league, alice, bob, carol):
    market.buy(alice.id, league.id, "g2-top")
    with pytest.raises(NotOwned):
        market.create_offer(bob.id, league.id, "g2-top", alice.id, 10)
    with pytest.raises(InvalidTarget):
        market.create_offer(alice.id, league.id, "g2-top", alice.id, 10)
    with pytest.raises(InvalidTarget):
        market.create_offer(alice.id, league.id, "g2-top", carol.id, 10)
    with pytest.raises(InvalidPrice):
        market.create_offer(alice.id, league.id, "g2-top", bob.id, 0)


def test_create_offer_expires_in_48_hours(market, league, alice, bob):
    market.buy(alice.id, league.id, "g2-top")
    offer = market.create_offer(alice.id, league.id, "g2-top", bob.id, Decimal("12.5"))
    assert offer.status == "pending"
    assert offer.price == Decimal("12.50")
    assert offers.as_utc(offer.expires_at) == NOW + timedelta(hours=48)


def test_accept_transfers_player_and_money(db, market, league, alice, bob):
    market.buy(alice.id, league.id, "g2-top", requested_position="top")
    offer = market.create_offer(alice.id, league.id, "g2-top", bob.id, 10)

    result = market.accept_offer(offer.id, bob.id)

    assert ownership.owner(db, "g2-top", league.id) == bob.id
    assert ownership.list_by_owner(db, bob.id, league.id) == [("g2-top", "top")]
    assert result.buyer_balance == Decimal("65.00")
    assert result.seller_balance == Decimal("77.00")
    assert offers.get(db, offer.id).status == "completed"
    assert result.event.type == "trade"
    assert result.event.offer_id == offer.id


def test_accept_preserves_assigned_position(db, market, league, alice, bob):
    market.buy(alice.id, league.id, "g2-top", requested_position="mid")
    offer = market.create_offer(alice.id, league.id, "g2-top", bob.id, 10)
    result = market.accept_offer(offer.id, bob.id)
    assert result.player.position == "mid"
    assert ownership.get_record(db, "g2-top", league.id).position == "mid"


def test_accept_with_insufficient_funds_keeps_offer_pending(db, market, league, alice, bob):
    market.buy(alice.id, league.id, "g2-top")
    offer = market.create_offer(alice.id, league.id, "g2-top", bob.id, 10)
    ledger.debit(db, bob.id, league.id, 70)
    db.commit()

    with pytest.raises(InsufficientFunds):
        market.accept_offer(offer.id, bob.id)

    assert offers.get(db, offer.id).status == "pending"
    assert ownership.owner(db, "g2-top", league.id) == alice.id
    assert _balance(db, bob, league) == Decimal("5.00")


def test_only_buyer_may_accept(market, league, alice, bob):
    market.buy(alice.id, league.id, "g2-top")
    offer = market.create_offer(alice.id, league.id, "g2-top", bob.id, 10)
    with pytest.raises(Forbidden):
        market.accept_offer(offer.id, alice.id)


def test_expired_offer_is_marked_on_accept(db, market, clock, league, alice, bob):
    market.buy(alice.id, league.id, "g2-top")
    offer = market.create_offer(alice.id, league.id, "g2-top", bob.id, 10)
    clock.now = NOW + timedelta(hours=49)

    with pytest.raises(OfferExpired):
        market.accept_offer(offer.id, bob.id)
    assert offers.get(db, offer.id).status == "expired"

    with pytest.raises(InvalidState):
        market.accept_offer(offer.id, bob.id)


def test_accept_when_seller_no_longer_owns(db, market, league, alice, bob):
    market.buy(alice.id, league.id, "g2-top")
    offer = market.create_offer(alice.id, league.id, "g2-top", bob.id, 10)
    # ownership moved outside the offer flow
    ownership.revoke(db, "g2-top", league.id)
    db.commit()

    with pytest.raises(SellerNoLongerOwns):
        market.accept_offer(offer.id, bob.id)
    assert offers.get(db, offer.id).status == "pending"
    assert _balance(db, bob, league) == Decimal("75.00")


def test_accept_respects_buyer_roster_caps(db, market, league, alice, bob):
    market.buy(bob.id, league.id, "fnc-top")
    market.buy(bob.id, league.id, "kc-top")
    market.buy(alice.id, league.id, "g2-top")
    offer = market.create_offer(alice.id, league.id, "g2-top", bob.id, 10)

    with pytest.raises(RosterLimitExceeded):
        market.accept_offer(offer.id, bob.id)
    assert ownership.owner(db, "g2-top", league.id) == alice.id


def test_accept_clears_seller_lineup(db, market, league, alice, bob):
    market.buy(alice.id, league.id, "g2-top")
    lineup.set_starter(db, alice.id, league.id, "g2-top", "top")
    offer = market.create_offer(alice.id, league.id, "g2-top", bob.id, 10)
    market.accept_offer(offer.id, bob.id)
    assert lineup.get_lineup(db, market.catalog, alice.id, league.id) == []


def test_accept_player_missing_from_catalog(db, market, catalog, league, alice, bob):
    market.buy(alice.id, league.id, "g2-top")
    offer = market.create_offer(alice.id, league.id, "g2-top", bob.id, 10)
    catalog.remove("g2-top")
    result = market.accept_offer(offer.id, bob.id)
    assert result.player is None
    assert result.event.player_name == "Unknown player"
    assert ownership.owner(db, "g2-top", league.id) == bob.id


def test_reject_by_either_party(db, market, league, alice, bob, carol):
    market.buy(alice.id, league.id, "g2-top")
    first = market.create_offer(alice.id, league.id, "g2-top", bob.id, 10)
    second = market.create_offer(alice.id, league.id, "g2-top", bob.id, 11)

    with pytest.raises(Forbidden):
        market.reject_offer(first.id, carol.id)

    assert market.reject_offer(first.id, bob.id).status == "rejected"
    assert market.reject_offer(second.id, alice.id).status == "rejected"
    with pytest.raises(InvalidState):
        market.reject_offer(first.id, bob.id)
    assert ownership.owner(db, "g2-top", league.id) == alice.id
    assert _balance(db, bob, league) == Decimal("75.00")


def test_cancel_is_seller_only(market, league, alice, bob):
    market.buy(alice.id, league.id, "g2-top")
    offer = market.create_offer(alice.id, league.id, "g2-top", bob.id, 10)
    with pytest.raises(Forbidden):
        market.cancel_offer(offer.id, bob.id)
    assert market.cancel_offer(offer.id, alice.id).status == "cancelled"
    with pytest.raises(InvalidState):
        market.accept_offer(offer.id, bob.id)


# ---------- reads ----------

def test_owned_players_use_stored_position(market, catalog, league, alice):
    market.buy(alice.id, league.id, "g2-top", requested_position="jungle")
    market.buy(alice.id, league.id, "fnc-mid")
    catalog.remove("fnc-mid")
    owned = market.owned_players(alice.id, league.id)
    assert [(p.id, p.position) for p in owned] == [("g2-top", "jungle")]


def test_pending_offers_expire_lazily(market, clock, league, alice, bob):
    market.buy(alice.id, league.id, "g2-top")
    market.create_offer(alice.id, league.id, "g2-top", bob.id, 10)

    view = market.pending_offers(bob.id, league.id)
    assert len(view.incoming) == 1 and view.outgoing == []
    assert view.incoming[0].seller_username == "alice"
    assert view.incoming[0].player.name == "BrokenBlade"

    clock.now = NOW + timedelta(days=3)
    assert market.pending_offers(bob.id, league.id).incoming == []


def test_balance_owners_and_league_users(market, league, alice, bob):
    market.buy(bob.id, league.id, "kc-bot")
    assert market.balance(bob.id, league.id).money == Decimal("66.00")
    owners = market.owners(alice.id, league.id)
    assert [(o.player_id, o.owner_username) for o in owners] == [("kc-bot", "bob")]
    assert [u.username for u in market.league_users(alice.id, league.id)] == ["bob"]


# ---------- leaving the league ----------

def test_leaving_releases_players_lineup_and_offers(db, market, league, alice, bob):
    market.buy(bob.id, league.id, "g2-top")
    market.buy(alice.id, league.id, "fnc-mid")
    lineup.set_starter(db, bob.id, league.id, "g2-top", "top")
    outgoing = market.create_offer(bob.id, league.id, "g2-top", alice.id, 10)
    incoming = market.create_offer(alice.id, league.id, "fnc-mid", bob.id, 10)

    memberships.leave_league(db, bob.id, league.id)
    db.commit()

    assert ownership.owner(db, "g2-top", league.id) is None
    assert lineup.get_lineup(db, market.catalog, bob.id, league.id) == []
    assert offers.get(db, outgoing.id).status == "cancelled"
    assert offers.get(db, incoming.id).status == "cancelled"
    # alice keeps her own player and can pick up the released one
    assert ownership.owner(db, "fnc-mid", league.id) == alice.id
    market.buy(alice.id, league.id, "g2-top")
    assert ownership.owner(db, "g2-top", league.id) == alice.id


# ---------- money supply ----------

def test_sell_then_rebuy_accounts_for_every_million(db, market, league, alice, bob):
    market.buy(alice.id, league.id, "g2-top")
    market.sell_to_market(alice.id, league.id, "g2-top")
    market.buy(bob.id, league.id, "g2-top")

    assert _balance(db, alice, league) == Decimal("72.00")
    assert _balance(db, bob, league) == Decimal("67.00")
    # 150 to start, two purchases at 8, one market refund of 5
    assert _balance(db, alice, league) + _balance(db, bob, league) == Decimal("139.00")
    assert ownership.owner(db, "g2-top", league.id) == bob.id
