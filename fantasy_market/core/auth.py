# fantasy_market/core/auth.py
import base64
import binascii
import hashlib
import hmac
import json
import time
from typing import Optional

from fantasy_market.core.config import settings


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode().rstrip("=")

def _b64decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)

def _sign(payload_b64: str) -> bytes:
    return hmac.new(settings.SECRET_KEY.encode(), payload_b64.encode(), hashlib.sha256).digest()

def create_session_token(user_id: str, ttl_seconds: Optional[int] = None) -> str:
    """Signed `<payload>.<signature>` token carrying the caller's user id."""
    ttl = settings.SESSION_TTL_SECONDS if ttl_seconds is None else ttl_seconds
    payload = {"sub": user_id, "exp": int(time.time()) + ttl}
    payload_b64 = _b64encode(json.dumps(payload, separators=(",", ":")).encode())
    return f"{payload_b64}.{_b64encode(_sign(payload_b64))}"

def decode_session_token(token: str) -> Optional[str]:
    """Return the user id for a valid, unexpired token, else None."""
    try:
        payload_b64, signature_b64 = token.split(".", 1)
        if not hmac.compare_digest(_sign(payload_b64), _b64decode(signature_b64)):
            return None
        payload = json.loads(_b64decode(payload_b64))
    except (ValueError, binascii.Error):
        return None
    if not isinstance(payload, dict) or payload.get("exp", 0) < time.time():
        return None
    sub = payload.get("sub")
    return sub if isinstance(sub, str) and sub else None
