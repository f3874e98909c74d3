from decimal import Decimal

import pytest
from sqlalchemy.pool import StaticPool

from fantasy_market.core.auth import create_session_token
from fantasy_market.db.engine import build_engine, build_sessionmaker
from fantasy_market.db.models import User
from fantasy_market.db.session import init_db
from fantasy_market.schemas.player import CatalogPlayer
from fantasy_market.services import memberships
from fantasy_market.services.cache import clear_cache
from fantasy_market.services.catalog import StaticCatalog



def make_player(pid, team, position, price, name=None, team_name=None, role=None):
    return CatalogPlayer(
        id=pid,
        name=name or pid,
        summoner_name=name or pid,
        team=team,
        team_name=team_name or f"{team} Esports",
        team_id=f"team-{team.lower()}",
        position=position,
        role=role or position,
        price=Decimal(price),
    )


CATALOG_PLAYERS = [
    make_player("g2-top", "G2", "top", 8, name="BrokenBlade"),
    make_player("g2-jng", "G2", "jungle", 6),
    make_player("g2-mid", "G2", "mid", 9, name="Caps"),
    make_player("g2-bot", "G2", "bottom", 7, role="adc"),
    make_player("fnc-top", "FNC", "top", 7),
    make_player("fnc-mid", "FNC", "mid", 8),
    make_player("fnc-sup", "FNC", "support", 5),
    make_player("kc-top", "KC", "top", 6),
    make_player("kc-bot", "KC", "bottom", 9),
    make_player("mkoi-sup", "MKOI", "support", 5),
]


@pytest.fixture
def engine():
    eng = build_engine("sqlite://", poolclass=StaticPool)
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def catalog():
    return StaticCatalog(CATALOG_PLAYERS)


@pytest.fixture(autouse=True)
def _fresh_caches():
    clear_cache()
    yield
    clear_cache()


def _user(db, username):
    user = User(username=username)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def alice(db):
    return _user(db, "alice")


@pytest.fixture
def bob(db):
    return _user(db, "bob")


@pytest.fixture
def carol(db):
    return _user(db, "carol")


@pytest.fixture
def league(db, alice, bob):
    lg = memberships.create_league(db, "Friday LEC", created_by=alice.id)
    memberships.join_league(db, bob.id, lg.id)
    db.commit()
    return lg


@pytest.fixture
def auth_header():
    def _header(user):
        return {"Authorization": f"Bearer {create_session_token(user.id)}"}
    return _header


@pytest.fixture
def client(session_factory, catalog):
    from fastapi.testclient import TestClient

    from fantasy_market.db.session import get_db, get_session_factory
    from fantasy_market.deps import get_catalog
    from fantasy_market.main import app

    def _get_db():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    # no lifespan: tables come from the engine fixture
    yield TestClient(app)
    app.dependency_overrides.clear()
