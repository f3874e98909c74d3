# fantasy_market/services/catalog/client.py
import logging
from typing import Any, Dict, Optional

import requests

from fantasy_market.core.config import settings
from fantasy_market.core.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)


def _headers() -> Dict[str, str]:
    return {"x-api-key": settings.LOLESPORTS_API_KEY or ""}

def _raise_with_upstream_body(resp: requests.Response) -> None:
    try:
        msg = resp.text[:500]
    except Exception:
        msg = "<no-body>"
    logger.error("LoL Esports error %s on %s :: %s", resp.status_code, resp.url, msg)
    raise UpstreamUnavailable(
        f"Player catalog returned {resp.status_code}",
        upstream_status=resp.status_code,
    )

def lolesports_get(path: str, params: Optional[dict] = None) -> dict:
    """
    GET against the LoL Esports persisted gateway, e.g. lolesports_get("/getTeams").
    Any transport failure, non-2xx answer or non-JSON body becomes UpstreamUnavailable.
    """
    base = settings.LOLESPORTS_API_BASE.rstrip("/")
    url = f"{base}/{path.lstrip('/')}"
    q: Dict[str, Any] = dict(params or {})
    q.setdefault("hl", "en-US")

    try:
        resp = requests.get(url, headers=_headers(), params=q, timeout=settings.CATALOG_TIMEOUT_SECONDS)
    except requests.RequestException as exc:
        logger.error("LoL Esports request to %s failed: %s", url, exc)
        raise UpstreamUnavailable("Player catalog is unavailable") from exc

    if not resp.ok:
        _raise_with_upstream_body(resp)

    try:
        return resp.json()
    except ValueError as exc:
        logger.error("LoL Esports returned non-JSON body on %s", url)
        raise UpstreamUnavailable("Player catalog returned an invalid payload") from exc
