from decimal import Decimal

import pytest

from fantasy_market.core.errors import Conflict, InsufficientFunds, NotFound
from fantasy_market.services import ledger, memberships


def test_joining_opens_account_at_starting_budget(db, league, bob):
    assert ledger.get_balance(db, bob.id, league.id) == Decimal("75.00")


def test_debit_and_credit_move_balance(db, league, bob):
    assert ledger.debit(db, bob.id, league.id, 8) == Decimal("67.00")
    assert ledger.credit(db, bob.id, league.id, Decimal("5.5")) == Decimal("72.50")


def test_debit_never_goes_below_zero(db, league, bob):
    with pytest.raises(InsufficientFunds) as err:
        ledger.debit(db, bob.id, league.id, 76)
    assert "You have 75M€ but need 76M€" in err.value.message
    assert ledger.get_balance(db, bob.id, league.id) == Decimal("75.00")


def test_exact_balance_can_be_spent(db, league, bob):
    assert ledger.debit(db, bob.id, league.id, 75) == Decimal("0.00")


def test_missing_account_is_not_repaired(db, league, carol):
    with pytest.raises(NotFound):
        ledger.get_balance(db, carol.id, league.id)
    with pytest.raises(NotFound):
        ledger.credit(db, carol.id, league.id, 10)


def test_account_cannot_be_opened_twice(db, league, bob):
    with pytest.raises(Conflict):
        ledger.open_account(db, bob.id, league.id)
    # savepoint rollback leaves the existing account intact
    assert ledger.get_balance(db, bob.id, league.id) == Decimal("75.00")


def test_leaving_closes_account(db, league, bob):
    memberships.leave_league(db, bob.id, league.id)
    db.commit()
    with pytest.raises(NotFound):
        ledger.get_balance(db, bob.id, league.id)
