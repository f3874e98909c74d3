# fantasy_market/db/models.py
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

Money = Numeric(12, 2)


def _uuid() -> str:
    return uuid.uuid4().hex


def _league_code() -> str:
    return uuid.uuid4().hex[:6].upper()


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"
    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    username: Mapped[str] = mapped_column(String(255), unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class League(Base):
    __tablename__ = "leagues"
    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255))
    # short join code shared with friends
    code: Mapped[str] = mapped_column(String(16), unique=True, default=_league_code)
    created_by: Mapped[str] = mapped_column(ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class LeagueMember(Base):
    __tablename__ = "league_members"
    __table_args__ = (UniqueConstraint("user_id", "league_id", name="uq_member_user_league"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True)
    league_id: Mapped[str] = mapped_column(ForeignKey("leagues.id", ondelete="CASCADE"), index=True)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class LedgerAccount(Base):
    __tablename__ = "ledger_accounts"
    __table_args__ = (
        UniqueConstraint("user_id", "league_id", name="uq_ledger_user_league"),
        CheckConstraint("balance >= 0", name="ck_ledger_balance_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True)
    league_id: Mapped[str] = mapped_column(ForeignKey("leagues.id", ondelete="CASCADE"), index=True)
    balance: Mapped[Decimal] = mapped_column(Money)  # millions
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now(), nullable=True)


class PlayerOwnership(Base):
    __tablename__ = "player_ownerships"
    # one owner per player per league
    __table_args__ = (UniqueConstraint("player_id", "league_id", name="uq_ownership_player_league"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    player_id: Mapped[str] = mapped_column(String(64), index=True)
    league_id: Mapped[str] = mapped_column(ForeignKey("leagues.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True)
    position: Mapped[str] = mapped_column(String(16))
    acquired_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class LineupSlot(Base):
    __tablename__ = "lineup_slots"
    __table_args__ = (
        UniqueConstraint("user_id", "league_id", "position", "matchday", name="uq_lineup_slot"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True)
    league_id: Mapped[str] = mapped_column(ForeignKey("leagues.id", ondelete="CASCADE"), index=True)
    position: Mapped[str] = mapped_column(String(16))
    matchday: Mapped[int] = mapped_column(Integer, default=1)
    player_id: Mapped[str] = mapped_column(String(64))


class PlayerOffer(Base):
    __tablename__ = "player_offers"
    __table_args__ = (CheckConstraint("price > 0", name="ck_offer_price_positive"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    player_id: Mapped[str] = mapped_column(String(64), index=True)
    league_id: Mapped[str] = mapped_column(ForeignKey("leagues.id", ondelete="CASCADE"), index=True)
    seller_user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True)
    buyer_user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True)
    price: Mapped[Decimal] = mapped_column(Money)
    status: Mapped[str] = mapped_column(String(16), default="pending", index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class MarketTransaction(Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    type: Mapped[str] = mapped_column(String(16), index=True)  # purchase | sale | trade
    league_id: Mapped[str] = mapped_column(ForeignKey("leagues.id", ondelete="CASCADE"), index=True)
    player_id: Mapped[str] = mapped_column(String(64))
    player_name: Mapped[str] = mapped_column(String(255))
    player_team: Mapped[str | None] = mapped_column(String(64), nullable=True)
    player_position: Mapped[str | None] = mapped_column(String(16), nullable=True)
    price: Mapped[Decimal] = mapped_column(Money)
    # purchase / sale
    user_id: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    # trade
    seller_user_id: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    buyer_user_id: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    offer_id: Mapped[int | None] = mapped_column(ForeignKey("player_offers.id"), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
