# fantasy_market/api/routes_players.py
from typing import Annotated, List

from fastapi import APIRouter, BackgroundTasks, Depends, Path, Response, status
from sqlalchemy.orm import Session

from fantasy_market.core.errors import InvalidPosition, NotFound
from fantasy_market.db.session import get_db, get_session_factory
from fantasy_market.deps import get_catalog, get_current_user, get_engine
from fantasy_market.schemas.common import MessageResponse
from fantasy_market.schemas.market import (
    AcceptOfferResponse,
    BalanceOut,
    BuyRequest,
    BuyResponse,
    LeagueUser,
    LineupRequest,
    OfferCreateRequest,
    OfferCreatedResponse,
    OffersResponse,
    SellRequest,
    SellResponse,
)
from fantasy_market.schemas.player import CatalogPlayer, LineupEntry, OwnedPlayer, OwnerEntry
from fantasy_market.services import lineup, memberships, transactions
from fantasy_market.services.cache import cache_route, key_tuple
from fantasy_market.services.catalog import PlayerCatalog, players_by_position, players_by_team
from fantasy_market.services.marketplace import MarketplaceEngine
from fantasy_market.services.positions import CANONICAL_POSITIONS, normalize_position

router = APIRouter(prefix="/players", tags=["players"])

CATALOG_TTL = 10 * 60  # 10m


# ------------------------------------------------------------
# CATALOG (public, cached)
# ------------------------------------------------------------

@router.get("", response_model=List[CatalogPlayer], summary="All catalog players")
@cache_route(
    namespace="players_all",
    ttl_seconds=CATALOG_TTL,
    key_builder=lambda *a, **k: key_tuple("all"),
    cache_control=f"public, max-age={CATALOG_TTL}",
)
def list_players(
    catalog: PlayerCatalog = Depends(get_catalog),
    response: Response = None,
):
    return catalog.list_players()


@router.get("/team/{team_id}", response_model=List[CatalogPlayer], summary="Catalog players of one team")
@cache_route(
    namespace="players_by_team",
    ttl_seconds=CATALOG_TTL,
    key_builder=lambda *a, **k: key_tuple("team", k["team_id"].lower()),
    cache_control=f"public, max-age={CATALOG_TTL}",
)
def list_team_players(
    team_id: str,
    catalog: PlayerCatalog = Depends(get_catalog),
    response: Response = None,
):
    players = players_by_team(catalog, team_id)
    if not players:
        raise NotFound("No players found for this team", team_id=team_id)
    return players


@router.get("/position/{position}", response_model=List[CatalogPlayer], summary="Catalog players by role")
@cache_route(
    namespace="players_by_position",
    ttl_seconds=CATALOG_TTL,
    key_builder=lambda *a, **k: key_tuple("position", k["position"].lower()),
    cache_control=f"public, max-age={CATALOG_TTL}",
)
def list_position_players(
    position: str,
    catalog: PlayerCatalog = Depends(get_catalog),
    response: Response = None,
):
    if normalize_position(position) is None:
        raise InvalidPosition(
            f"Position must be one of: {', '.join(CANONICAL_POSITIONS)}", position=position
        )
    players = players_by_position(catalog, position)
    if not players:
        raise NotFound("No players found for this position", position=position)
    return players


# ------------------------------------------------------------
# MARKET (authenticated)
# ------------------------------------------------------------

@router.post("/buy", response_model=BuyResponse, status_code=status.HTTP_201_CREATED)
def buy_player(
    body: BuyRequest,
    background: BackgroundTasks,
    engine: MarketplaceEngine = Depends(get_engine),
    user_id: str = Depends(get_current_user),
    session_factory=Depends(get_session_factory),
):
    result = engine.buy(user_id, body.league_id, body.player_id, body.position)
    background.add_task(transactions.record, session_factory, result.event)
    return BuyResponse(player=result.player, remaining_money=result.remaining_money)


@router.post("/sell/market", response_model=SellResponse)
def sell_to_market(
    body: SellRequest,
    background: BackgroundTasks,
    engine: MarketplaceEngine = Depends(get_engine),
    user_id: str = Depends(get_current_user),
    session_factory=Depends(get_session_factory),
):
    result = engine.sell_to_market(user_id, body.league_id, body.player_id)
    background.add_task(transactions.record, session_factory, result.event)
    return SellResponse(
        sell_price=result.sell_price,
        new_balance=result.new_balance,
        cancelled_offers=result.cancelled_offers,
    )


@router.post("/sell/offer", response_model=OfferCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_offer(
    body: OfferCreateRequest,
    engine: MarketplaceEngine = Depends(get_engine),
    user_id: str = Depends(get_current_user),
):
    offer = engine.create_offer(user_id, body.league_id, body.player_id, body.target_user_id, body.price)
    return OfferCreatedResponse(offer_id=offer.id)


@router.post("/offer/accept/{offer_id}", response_model=AcceptOfferResponse)
def accept_offer(
    offer_id: int,
    background: BackgroundTasks,
    engine: MarketplaceEngine = Depends(get_engine),
    user_id: str = Depends(get_current_user),
    session_factory=Depends(get_session_factory),
):
    result = engine.accept_offer(offer_id, user_id)
    background.add_task(transactions.record, session_factory, result.event)
    return AcceptOfferResponse(player_id=result.player_id, player=result.player)


@router.post("/offer/reject/{offer_id}", response_model=MessageResponse)
def reject_offer(
    offer_id: int,
    engine: MarketplaceEngine = Depends(get_engine),
    user_id: str = Depends(get_current_user),
):
    engine.reject_offer(offer_id, user_id)
    return MessageResponse(message="Offer rejected")


@router.post("/offer/cancel/{offer_id}", response_model=MessageResponse)
def cancel_offer(
    offer_id: int,
    engine: MarketplaceEngine = Depends(get_engine),
    user_id: str = Depends(get_current_user),
):
    engine.cancel_offer(offer_id, user_id)
    return MessageResponse(message="Offer cancelled")


@router.get("/offers/{league_id}", response_model=OffersResponse)
def list_offers(
    league_id: str,
    engine: MarketplaceEngine = Depends(get_engine),
    user_id: str = Depends(get_current_user),
):
    return engine.pending_offers(user_id, league_id)


@router.get("/user/{league_id}", response_model=List[OwnedPlayer])
def list_owned_players(
    league_id: str,
    engine: MarketplaceEngine = Depends(get_engine),
    user_id: str = Depends(get_current_user),
):
    return engine.owned_players(user_id, league_id)


@router.get("/owners/{league_id}", response_model=List[OwnerEntry])
def list_owners(
    league_id: str,
    engine: MarketplaceEngine = Depends(get_engine),
    user_id: str = Depends(get_current_user),
):
    return engine.owners(user_id, league_id)


@router.get("/user-league/{league_id}", response_model=BalanceOut)
def user_league_balance(
    league_id: str,
    engine: MarketplaceEngine = Depends(get_engine),
    user_id: str = Depends(get_current_user),
):
    return engine.balance(user_id, league_id)


@router.get("/league-users/{league_id}", response_model=List[LeagueUser])
def league_users(
    league_id: str,
    engine: MarketplaceEngine = Depends(get_engine),
    user_id: str = Depends(get_current_user),
):
    return engine.league_users(user_id, league_id)


# ------------------------------------------------------------
# LINEUP
# ------------------------------------------------------------

@router.post("/lineup", response_model=LineupEntry)
def set_lineup(
    body: LineupRequest,
    db: Session = Depends(get_db),
    catalog: PlayerCatalog = Depends(get_catalog),
    user_id: str = Depends(get_current_user),
):
    memberships.require_participant(db, user_id, body.league_id)
    slot = lineup.set_starter(db, user_id, body.league_id, body.player_id, body.position, body.matchday)
    return lineup.to_entry(catalog, slot)


@router.get("/lineup/{league_id}", response_model=List[LineupEntry])
def get_current_lineup(
    league_id: str,
    db: Session = Depends(get_db),
    catalog: PlayerCatalog = Depends(get_catalog),
    user_id: str = Depends(get_current_user),
):
    return lineup.get_lineup(db, catalog, user_id, league_id, lineup.DEFAULT_MATCHDAY)


@router.get("/lineup/{league_id}/{matchday}", response_model=List[LineupEntry])
def get_matchday_lineup(
    league_id: str,
    matchday: Annotated[int, Path(ge=1)],
    db: Session = Depends(get_db),
    catalog: PlayerCatalog = Depends(get_catalog),
    user_id: str = Depends(get_current_user),
):
    return lineup.get_lineup(db, catalog, user_id, league_id, matchday)
