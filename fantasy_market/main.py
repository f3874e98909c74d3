# fantasy_market/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fantasy_market.api import routes_players, routes_transactions
from fantasy_market.core.config import settings
from fantasy_market.core.errors import MarketError
from fantasy_market.core.logging_config import setup_logging
from fantasy_market.db.session import init_db
from fantasy_market.middleware.request_log import RequestLogMiddleware

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.validate_at_startup()
    init_db()
    logger.info("%s started (env=%s, fake catalog=%s)", settings.APP_NAME, settings.APP_ENV, settings.CATALOG_FAKE_MODE)
    yield


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
app.add_middleware(RequestLogMiddleware)

ALLOWED_ORIGINS = settings.CORS_ORIGINS if isinstance(settings.CORS_ORIGINS, list) else [settings.CORS_ORIGINS]
logger.info("CORS allow_origins = %s", ALLOWED_ORIGINS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1):5173$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)


@app.exception_handler(MarketError)
async def _market_error(request: Request, exc: MarketError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


# Routers
app.include_router(routes_players.router)
app.include_router(routes_transactions.router)


@app.get("/health")
def health():
    return {"ok": True, "env": settings.APP_ENV}
