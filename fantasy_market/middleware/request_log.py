# fantasy_market/middleware/request_log.py
import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger("fantasy_market.request")


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        cache = response.headers.get("X-Cache")
        if cache:
            logger.info(
                "%s %s -> %s [cache %s cc=%s] %.1fms",
                request.method, request.url.path, response.status_code,
                cache, response.headers.get("Cache-Control"), elapsed_ms,
            )
        else:
            logger.info("%s %s -> %s %.1fms", request.method, request.url.path, response.status_code, elapsed_ms)
        return response
