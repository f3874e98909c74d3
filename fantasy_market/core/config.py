# fantasy_market/core/config.py
from __future__ import annotations

import json
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


EnvType = Literal["local", "dev", "staging", "prod"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # App
    APP_NAME: str = "FantasyMarketAPI"
    APP_ENV: EnvType = "local"
    SECRET_KEY: str = Field(default="change_me_dev_only", description="Used for session signing")
    SESSION_TTL_SECONDS: int = 7 * 24 * 60 * 60
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: str | List[str] = Field(
        default='["http://localhost:5173","http://127.0.0.1:5173"]',
        description='JSON list or comma-separated origins',
    )

    # DB
    DATABASE_URL: Optional[str] = None

    # LoL Esports catalog
    LOLESPORTS_API_BASE: str = "https://esports-api.lolesports.com/persisted/gw"
    LOLESPORTS_API_KEY: Optional[str] = None
    CATALOG_LEAGUE_NAME: str = "LEC"
    CATALOG_EXCLUDED_PLAYERS: str | List[str] = Field(default='["Ben01"]')
    CATALOG_CACHE_TTL_SECONDS: int = 10 * 60
    CATALOG_TIMEOUT_SECONDS: int = 15

    # Dev toggle: serve the static catalog instead of calling LoL Esports
    CATALOG_FAKE_MODE: bool = False

    # Market rules
    STARTING_BUDGET: Decimal = Decimal("75")
    OFFER_TTL_HOURS: int = 48
    MAX_ROSTER_SIZE: int = 10
    MAX_PLAYERS_PER_TEAM: int = 2
    MAX_PLAYERS_PER_POSITION: int = 2
    MARKET_SELL_RATIO: Decimal = Decimal(2) / Decimal(3)

    # Derived / convenience flags
    @property
    def IS_LOCAL(self) -> bool:
        return self.APP_ENV == "local"

    @property
    def COOKIE_SECURE(self) -> bool:
        return not self.IS_LOCAL

    # ---------- Validators ----------

    @field_validator("CORS_ORIGINS", "CATALOG_EXCLUDED_PLAYERS")
    @classmethod
    def _parse_list(cls, v):
        # Accept JSON list or comma-separated string
        if isinstance(v, list):
            return v
        s = str(v).strip()
        if not s:
            return []
        try:
            parsed = json.loads(s)
            if isinstance(parsed, list):
                return parsed
        except ValueError:
            pass
        return [p.strip() for p in s.split(",") if p.strip()]

    @field_validator("STARTING_BUDGET")
    @classmethod
    def _non_negative_budget(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("STARTING_BUDGET must be >= 0")
        return v

    # ---------- Runtime validations ----------

    def validate_at_startup(self) -> None:
        """Fail fast with clear messages for misconfigurations."""
        problems: list[str] = []

        if not self.IS_LOCAL:
            if not self.DATABASE_URL:
                problems.append("DATABASE_URL is required in non-local env.")
            if self.SECRET_KEY == "change_me_dev_only":
                problems.append("SECRET_KEY must be set in non-local env.")
            if not self.CATALOG_FAKE_MODE and not self.LOLESPORTS_API_KEY:
                problems.append("LOLESPORTS_API_KEY is required unless CATALOG_FAKE_MODE is on.")
            if not self.CORS_ORIGINS:
                problems.append("CORS_ORIGINS must contain at least one allowed origin in non-local env.")

        if self.MAX_ROSTER_SIZE < 1:
            problems.append("MAX_ROSTER_SIZE must be positive.")

        if problems:
            raise RuntimeError("Config validation failed: " + " ".join(problems))


settings = Settings()
