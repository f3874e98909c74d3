# fantasy_market/core/errors.py
"""
Domain errors raised by the marketplace services.

Each error carries the HTTP status the API layer answers with and a stable
`code` string so clients can branch without parsing messages.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class MarketError(Exception):
    status_code: int = 400
    code: str = "market_error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.context:
            body["context"] = self.context
        return body


# ---------- lookups ----------

class NotFound(MarketError):
    status_code = 404
    code = "not_found"

class PlayerNotFound(NotFound):
    code = "player_not_found"

class OfferNotFound(NotFound):
    code = "offer_not_found"


# ---------- authorization ----------

class Forbidden(MarketError):
    status_code = 403
    code = "forbidden"


# ---------- ownership ----------

class AlreadyOwned(MarketError):
    code = "already_owned"

    def __init__(self, message: str, owner_id: Optional[str] = None, **context: Any) -> None:
        super().__init__(message, **context)
        self.owner_id = owner_id

class NotOwned(MarketError):
    code = "not_owned"

class SellerNoLongerOwns(MarketError):
    code = "seller_no_longer_owns"

class InvalidTarget(MarketError):
    code = "invalid_target"


# ---------- funds / roster ----------

class InsufficientFunds(MarketError):
    code = "insufficient_funds"

class RosterLimitExceeded(MarketError):
    code = "roster_limit_exceeded"

    def __init__(self, message: str, rule: str, limit: int, **context: Any) -> None:
        super().__init__(message, rule=rule, limit=limit, **context)
        self.rule = rule
        self.limit = limit


# ---------- positions / lineup ----------

class InvalidPosition(MarketError):
    code = "invalid_position"

class PositionMismatch(MarketError):
    code = "position_mismatch"


# ---------- offers ----------

class InvalidPrice(MarketError):
    code = "invalid_price"

class InvalidState(MarketError):
    code = "invalid_state"

class OfferExpired(MarketError):
    code = "offer_expired"


# ---------- infrastructure ----------

class UpstreamUnavailable(MarketError):
    status_code = 502
    code = "upstream_unavailable"

class Conflict(MarketError):
    status_code = 409
    code = "conflict"
