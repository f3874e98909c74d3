# fantasy_market/services/ledger.py
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fantasy_market.core.config import settings
from fantasy_market.core.errors import Conflict, InsufficientFunds, NotFound
from fantasy_market.db.models import LedgerAccount

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)

def _fmt(value: Decimal) -> str:
    return f"{value.normalize():f}"

def _where(user_id: str, league_id: str):
    return (LedgerAccount.user_id == user_id, LedgerAccount.league_id == league_id)


def open_account(db: Session, user_id: str, league_id: str, balance: Optional[Decimal] = None) -> LedgerAccount:
    """Create the (user, league) account; called once when the membership is created."""
    opening = to_money(settings.STARTING_BUDGET if balance is None else balance)
    account = LedgerAccount(user_id=user_id, league_id=league_id, balance=opening)
    try:
        with db.begin_nested():
            db.add(account)
    except IntegrityError as exc:
        raise Conflict("Ledger account already exists", user_id=user_id, league_id=league_id) from exc
    return account

def close_account(db: Session, user_id: str, league_id: str) -> None:
    db.execute(delete(LedgerAccount).where(*_where(user_id, league_id)))

def get_balance(db: Session, user_id: str, league_id: str, *, for_update: bool = False) -> Decimal:
    stmt = select(LedgerAccount.balance).where(*_where(user_id, league_id))
    if for_update:
        stmt = stmt.with_for_update()
    balance = db.execute(stmt).scalar_one_or_none()
    if balance is None:
        raise NotFound("User league data not found", user_id=user_id, league_id=league_id)
    return to_money(balance)

def debit(db: Session, user_id: str, league_id: str, amount) -> Decimal:
    """
    Take `amount` from the account and return the new balance.

    The balance check and the decrement are one conditional UPDATE, so two
    concurrent spends can never push the balance below zero.
    """
    amount = to_money(amount)
    if amount < 0:
        raise ValueError("debit amount must be >= 0")
    res = db.execute(
        update(LedgerAccount)
        .where(*_where(user_id, league_id), LedgerAccount.balance >= amount)
        .values(balance=LedgerAccount.balance - amount)
        .execution_options(synchronize_session="fetch")
    )
    if res.rowcount == 0:
        balance = get_balance(db, user_id, league_id)  # NotFound when the account is missing
        raise InsufficientFunds(
            f"Insufficient funds. You have {_fmt(balance)}M€ but need {_fmt(amount)}M€",
            balance=balance,
            required=amount,
        )
    return get_balance(db, user_id, league_id)

def credit(db: Session, user_id: str, league_id: str, amount) -> Decimal:
    amount = to_money(amount)
    if amount < 0:
        raise ValueError("credit amount must be >= 0")
    res = db.execute(
        update(LedgerAccount)
        .where(*_where(user_id, league_id))
        .values(balance=LedgerAccount.balance + amount)
        .execution_options(synchronize_session="fetch")
    )
    if res.rowcount == 0:
        raise NotFound("User league data not found", user_id=user_id, league_id=league_id)
    return get_balance(db, user_id, league_id)

def ensure_sufficient(db: Session, user_id: str, league_id: str, amount, *, for_update: bool = False) -> Decimal:
    """Pre-check used before any write so failures leave nothing to roll back."""
    amount = to_money(amount)
    balance = get_balance(db, user_id, league_id, for_update=for_update)
    if balance < amount:
        raise InsufficientFunds(
            f"Insufficient funds. You have {_fmt(balance)}M€ but need {_fmt(amount)}M€",
            balance=balance,
            required=amount,
        )
    return balance
