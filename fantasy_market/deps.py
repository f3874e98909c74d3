# fantasy_market/deps.py
from typing import Optional

from fastapi import Cookie, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from fantasy_market.core.auth import decode_session_token
from fantasy_market.db.session import get_db
from fantasy_market.services.catalog import PlayerCatalog, build_catalog
from fantasy_market.services.marketplace import MarketplaceEngine

_catalog: Optional[PlayerCatalog] = None


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_user(
    session_token: Optional[str] = Cookie(default=None),
    authorization: Optional[str] = Header(default=None),
) -> str:
    """
    Resolves the caller from the session cookie or an `Authorization: Bearer` header.
    Returns the user id or raises 401 if invalid/absent.
    """
    token = session_token or _bearer(authorization)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    user_id = decode_session_token(token)
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired session")
    return user_id


def get_catalog() -> PlayerCatalog:
    global _catalog
    if _catalog is None:
        _catalog = build_catalog()
    return _catalog


def get_engine(
    db: Session = Depends(get_db),
    catalog: PlayerCatalog = Depends(get_catalog),
) -> MarketplaceEngine:
    return MarketplaceEngine(db, catalog)
