# fantasy_market/services/marketplace.py
"""
MarketplaceEngine: buying, selling to the market, and peer offers.

Every mutating operation validates first (catalog lookups included), then
performs all of its writes inside one unit of work that commits together or
rolls back together. Transaction-log events are returned to the caller and
written only after that commit.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Dict, Iterator, List, Optional

from sqlalchemy.orm import Session

from fantasy_market.core.config import settings
from fantasy_market.core.errors import (
    AlreadyOwned,
    Forbidden,
    InvalidPosition,
    InvalidPrice,
    InvalidTarget,
    NotOwned,
    OfferExpired,
    PlayerNotFound,
    SellerNoLongerOwns,
    UpstreamUnavailable,
)
from fantasy_market.db.models import PlayerOffer
from fantasy_market.schemas.market import BalanceOut, LeagueUser, OfferOut, OffersResponse
from fantasy_market.schemas.player import CatalogPlayer, OwnedPlayer, OwnerEntry
from fantasy_market.services import ledger, lineup, memberships, offers, ownership, roster_policy
from fantasy_market.services.catalog import PlayerCatalog
from fantasy_market.services.offers import OfferStatus
from fantasy_market.services.positions import CANONICAL_POSITIONS, Position, normalize_position
from fantasy_market.services.roster_policy import RosterEntry, RosterLimits
from fantasy_market.services.transactions import TransactionEvent, purchase_event, sale_event, trade_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PurchaseResult:
    player: CatalogPlayer
    remaining_money: Decimal
    event: TransactionEvent


@dataclass(frozen=True)
class SaleResult:
    player: CatalogPlayer
    sell_price: Decimal
    new_balance: Decimal
    cancelled_offers: int
    event: TransactionEvent


@dataclass(frozen=True)
class TransferResult:
    offer: PlayerOffer
    player_id: str
    player: Optional[CatalogPlayer]
    buyer_balance: Decimal
    seller_balance: Decimal
    event: TransactionEvent


def market_sell_price(price: Decimal, ratio: Decimal) -> Decimal:
    """What the market pays back: price x ratio, rounded half-up to whole millions."""
    return (Decimal(price) * ratio).quantize(Decimal(1), rounding=ROUND_HALF_UP)


class MarketplaceEngine:
    def __init__(
        self,
        db: Session,
        catalog: PlayerCatalog,
        limits: Optional[RosterLimits] = None,
        clock: Callable[[], datetime] = offers.utcnow,
        sell_ratio: Optional[Decimal] = None,
    ) -> None:
        self.db = db
        self.catalog = catalog
        self.limits = limits or RosterLimits.from_settings()
        self.clock = clock
        self.sell_ratio = settings.MARKET_SELL_RATIO if sell_ratio is None else Decimal(sell_ratio)

    # =========================
    # helpers
    # =========================

    @contextmanager
    def _unit_of_work(self) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def _lookup(self, player_id: str) -> CatalogPlayer:
        player = self.catalog.lookup(player_id)
        if player is None:
            raise PlayerNotFound("Player not found", player_id=player_id)
        return player

    def _effective_position(self, requested: Optional[str], player: CatalogPlayer) -> Position:
        if requested:
            pos = normalize_position(requested)
            if pos is None:
                raise InvalidPosition(
                    f"Position must be one of: {', '.join(CANONICAL_POSITIONS)}", position=requested
                )
            return pos
        pos = normalize_position(player.position or player.role)
        if pos is None:
            raise InvalidPosition(
                "Player has no known position; pass one explicitly", player_id=player.id, role=player.role
            )
        return pos

    def _team_map(self, player_ids: List[str]) -> Dict[str, Optional[str]]:
        teams: Dict[str, Optional[str]] = {}
        for pid in player_ids:
            info = self.catalog.lookup(pid)
            teams[pid] = info.team if info else None
        return teams

    def _roster(self, user_id: str, league_id: str, teams: Dict[str, Optional[str]]) -> List[RosterEntry]:
        entries = []
        for player_id, position in ownership.list_by_owner(self.db, user_id, league_id):
            if player_id not in teams:
                teams.update(self._team_map([player_id]))
            entries.append(RosterEntry(player_id=player_id, team=teams[player_id], position=Position(position)))
        return entries

    def _check_roster(
        self,
        user_id: str,
        league_id: str,
        team: Optional[str],
        team_name: Optional[str],
        position: Position,
        teams: Dict[str, Optional[str]],
    ) -> None:
        roster = self._roster(user_id, league_id, teams)
        roster_policy.evaluate(roster, team, position, self.limits, team_name).raise_for_violation()

    def _already_owned_error(self, owner_id: str, user_id: str) -> AlreadyOwned:
        if owner_id == user_id:
            return AlreadyOwned("You already own this player in this league", owner_id=owner_id)
        name = memberships.usernames(self.db, [owner_id]).get(owner_id, "another user")
        return AlreadyOwned(f"This player is already owned by {name} in this league", owner_id=owner_id)

    def _owned_teams(self, user_id: str, league_id: str) -> Dict[str, Optional[str]]:
        return self._team_map([pid for pid, _ in ownership.list_by_owner(self.db, user_id, league_id)])

    def _commit_expiry(self, offer: PlayerOffer) -> bool:
        """Lazily expire a stale pending offer; the status change sticks even if the caller then fails."""
        with self._unit_of_work():
            expired = offers.expire_if_stale(self.db, offer, self.clock())
        if expired:
            logger.info("offer %s expired", offer.id)
        return expired

    # =========================
    # buy
    # =========================

    def buy(
        self,
        buyer_id: str,
        league_id: str,
        player_id: str,
        requested_position: Optional[str] = None,
    ) -> PurchaseResult:
        memberships.require_participant(self.db, buyer_id, league_id)

        current_owner = ownership.owner(self.db, player_id, league_id)
        if current_owner is not None:
            raise self._already_owned_error(current_owner, buyer_id)

        player = self._lookup(player_id)
        position = self._effective_position(requested_position, player)
        teams = self._owned_teams(buyer_id, league_id)

        with self._unit_of_work():
            # row lock serializes concurrent spends by the same buyer
            ledger.ensure_sufficient(self.db, buyer_id, league_id, player.price, for_update=True)
            self._check_roster(buyer_id, league_id, player.team, player.team_name, position, teams)
            try:
                ownership.assign(self.db, player_id, league_id, buyer_id, position, acquired_at=self.clock())
            except AlreadyOwned as exc:
                raise self._already_owned_error(exc.owner_id, buyer_id) from exc
            remaining = ledger.debit(self.db, buyer_id, league_id, player.price)

        logger.info("user %s bought %s in league %s for %s", buyer_id, player_id, league_id, player.price)
        bought = player.model_copy(update={"position": position.value})
        return PurchaseResult(
            player=bought,
            remaining_money=remaining,
            event=purchase_event(league_id, player, position.value, buyer_id),
        )

    # =========================
    # sell to market
    # =========================

    def sell_to_market(self, seller_id: str, league_id: str, player_id: str) -> SaleResult:
        record = ownership.get_record(self.db, player_id, league_id)
        if record is None or record.user_id != seller_id:
            raise NotOwned("You don't own this player", player_id=player_id)
        position = record.position

        player = self._lookup(player_id)
        sell_price = market_sell_price(player.price, self.sell_ratio)

        with self._unit_of_work():
            cancelled = offers.cancel_pending_for_player(self.db, seller_id, player_id, league_id)
            if not ownership.revoke(self.db, player_id, league_id, user_id=seller_id):
                raise NotOwned("You don't own this player", player_id=player_id)
            lineup.clear_player(self.db, seller_id, league_id, player_id)
            new_balance = ledger.credit(self.db, seller_id, league_id, sell_price)

        if cancelled:
            logger.info("Cancelled %d pending offers for player %s", cancelled, player_id)
        logger.info("user %s sold %s to the market in league %s for %s", seller_id, player_id, league_id, sell_price)
        return SaleResult(
            player=player,
            sell_price=sell_price,
            new_balance=new_balance,
            cancelled_offers=cancelled,
            event=sale_event(league_id, player, position, sell_price, seller_id),
        )

    # =========================
    # offers
    # =========================

    def create_offer(
        self,
        seller_id: str,
        league_id: str,
        player_id: str,
        buyer_id: str,
        price,
    ) -> PlayerOffer:
        if ownership.owner(self.db, player_id, league_id) != seller_id:
            raise NotOwned("You don't own this player", player_id=player_id)

        if buyer_id == seller_id:
            raise InvalidTarget("You cannot make an offer to yourself", target_user_id=buyer_id)
        if not memberships.is_participant(self.db, buyer_id, league_id):
            raise InvalidTarget("Target user is not in this league", target_user_id=buyer_id)

        amount = ledger.to_money(price)
        if amount <= 0:
            raise InvalidPrice("Offer price must be greater than zero", price=amount)

        with self._unit_of_work():
            offer = offers.create(
                self.db,
                player_id=player_id,
                league_id=league_id,
                seller_user_id=seller_id,
                buyer_user_id=buyer_id,
                price=amount,
                now=self.clock(),
            )
        logger.info("offer %s created: %s -> %s for player %s at %s", offer.id, seller_id, buyer_id, player_id, amount)
        return offer

    def accept_offer(self, offer_id: int, acting_user_id: str) -> TransferResult:
        offer = offers.get(self.db, offer_id)
        offers.require_pending(offer)
        if self._commit_expiry(offer):
            raise OfferExpired("This offer has expired", offer_id=offer.id, expires_at=offer.expires_at)

        if offer.buyer_user_id != acting_user_id:
            raise Forbidden("You are not the buyer of this offer", offer_id=offer.id)

        league_id, player_id = offer.league_id, offer.player_id
        seller_id, buyer_id = offer.seller_user_id, offer.buyer_user_id

        player = self.catalog.lookup(player_id)  # may be None if the player left the league
        teams = self._owned_teams(buyer_id, league_id)

        with self._unit_of_work():
            offer = offers.get(self.db, offer_id, for_update=True)
            offers.require_pending(offer)
            ledger.ensure_sufficient(self.db, buyer_id, league_id, offer.price, for_update=True)

            record = ownership.get_record(self.db, player_id, league_id, for_update=True)
            if record is None or record.user_id != seller_id:
                raise SellerNoLongerOwns("Seller no longer owns this player", offer_id=offer.id)
            position = Position(record.position)

            self._check_roster(
                buyer_id, league_id,
                player.team if player else None, player.team_name if player else None,
                position, teams,
            )

            if not ownership.revoke(self.db, player_id, league_id, user_id=seller_id):
                raise SellerNoLongerOwns("Seller no longer owns this player", offer_id=offer.id)
            ownership.assign(self.db, player_id, league_id, buyer_id, position, acquired_at=self.clock())
            lineup.clear_player(self.db, seller_id, league_id, player_id)
            buyer_balance = ledger.debit(self.db, buyer_id, league_id, offer.price)
            seller_balance = ledger.credit(self.db, seller_id, league_id, offer.price)
            offers.transition(self.db, offer, OfferStatus.COMPLETED)

        logger.info("offer %s completed: %s moved %s -> %s for %s", offer.id, player_id, seller_id, buyer_id, offer.price)
        transferred = player.model_copy(update={"position": position.value}) if player else None
        return TransferResult(
            offer=offer,
            player_id=player_id,
            player=transferred,
            buyer_balance=buyer_balance,
            seller_balance=seller_balance,
            event=trade_event(
                league_id, player_id, player, position.value, offer.price, seller_id, buyer_id, offer.id
            ),
        )

    def reject_offer(self, offer_id: int, acting_user_id: str) -> PlayerOffer:
        offer = offers.get(self.db, offer_id)
        if acting_user_id not in (offer.buyer_user_id, offer.seller_user_id):
            raise Forbidden("You are not part of this offer", offer_id=offer.id)
        self._commit_expiry(offer)
        with self._unit_of_work():
            offers.transition(self.db, offer, OfferStatus.REJECTED)
        logger.info("offer %s rejected by %s", offer.id, acting_user_id)
        return offer

    def cancel_offer(self, offer_id: int, acting_user_id: str) -> PlayerOffer:
        offer = offers.get(self.db, offer_id)
        if acting_user_id != offer.seller_user_id:
            raise Forbidden("Only the seller can withdraw this offer", offer_id=offer.id)
        self._commit_expiry(offer)
        with self._unit_of_work():
            offers.transition(self.db, offer, OfferStatus.CANCELLED)
        logger.info("offer %s withdrawn by seller %s", offer.id, acting_user_id)
        return offer

    # =========================
    # reads
    # =========================

    def owned_players(self, user_id: str, league_id: str) -> List[OwnedPlayer]:
        """The caller's roster; the stored position wins over the catalog role."""
        memberships.require_participant(self.db, user_id, league_id)
        out: List[OwnedPlayer] = []
        for rec in ownership.list_records_by_owner(self.db, user_id, league_id):
            info = self.catalog.lookup(rec.player_id)
            if info is None:
                logger.warning("owned player %s no longer in catalog", rec.player_id)
                continue
            data = info.model_dump()
            data.update(position=rec.position, acquired_at=rec.acquired_at)
            out.append(OwnedPlayer(**data))
        return out

    def owners(self, user_id: str, league_id: str) -> List[OwnerEntry]:
        memberships.require_participant(self.db, user_id, league_id)
        records = ownership.list_league(self.db, league_id)
        names = memberships.usernames(self.db, [r.user_id for r in records])
        return [
            OwnerEntry(
                player_id=r.player_id,
                user_id=r.user_id,
                owner_username=names.get(r.user_id, "Unknown user"),
                position=r.position,
                acquired_at=r.acquired_at,
            )
            for r in records
        ]

    def balance(self, user_id: str, league_id: str) -> BalanceOut:
        memberships.require_participant(self.db, user_id, league_id)
        return BalanceOut(user_id=user_id, league_id=league_id, money=ledger.get_balance(self.db, user_id, league_id))

    def league_users(self, user_id: str, league_id: str) -> List[LeagueUser]:
        memberships.require_participant(self.db, user_id, league_id)
        return [
            LeagueUser(id=u.id, username=u.username)
            for u in memberships.list_participants(self.db, league_id, exclude_user_id=user_id)
        ]

    def pending_offers(self, user_id: str, league_id: str) -> OffersResponse:
        memberships.require_participant(self.db, user_id, league_id)
        with self._unit_of_work():
            offers.expire_stale(self.db, self.clock(), league_id=league_id)
        incoming, outgoing = offers.list_pending(self.db, user_id, league_id)
        names = memberships.usernames(
            self.db, {uid for o in incoming + outgoing for uid in (o.seller_user_id, o.buyer_user_id)}
        )
        players: Dict[str, Optional[CatalogPlayer]] = {}
        for o in incoming + outgoing:
            if o.player_id not in players:
                try:
                    players[o.player_id] = self.catalog.lookup(o.player_id)
                except UpstreamUnavailable:
                    logger.warning("offers: catalog unavailable for player %s", o.player_id)
                    players[o.player_id] = None

        def _out(o: PlayerOffer) -> OfferOut:
            return OfferOut(
                id=o.id, player_id=o.player_id, league_id=o.league_id,
                seller_user_id=o.seller_user_id, seller_username=names.get(o.seller_user_id),
                buyer_user_id=o.buyer_user_id, buyer_username=names.get(o.buyer_user_id),
                price=o.price, status=o.status, created_at=o.created_at, expires_at=o.expires_at,
                player=players.get(o.player_id),
            )

        return OffersResponse(incoming=[_out(o) for o in incoming], outgoing=[_out(o) for o in outgoing])
