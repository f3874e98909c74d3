# fantasy_market/services/positions.py
from __future__ import annotations

from enum import Enum
from typing import Optional


class Position(str, Enum):
    TOP = "top"
    JUNGLE = "jungle"
    MID = "mid"
    BOTTOM = "bottom"
    SUPPORT = "support"


_ALIASES = {
    "adc": Position.BOTTOM,
    "bot": Position.BOTTOM,
    "ad carry": Position.BOTTOM,
    "bottom": Position.BOTTOM,
    "sup": Position.SUPPORT,
    "support": Position.SUPPORT,
    "jg": Position.JUNGLE,
    "jung": Position.JUNGLE,
    "jungle": Position.JUNGLE,
    "m": Position.MID,
    "mid": Position.MID,
    "middle": Position.MID,
    "t": Position.TOP,
    "top": Position.TOP,
    "toplane": Position.TOP,
}

CANONICAL_POSITIONS = tuple(p.value for p in Position)


def normalize_position(value: Optional[str]) -> Optional[Position]:
    """Map any accepted spelling ("ADC", " jg ", "toplane") to a Position, or None."""
    if value is None:
        return None
    if isinstance(value, Position):
        return value
    key = " ".join(str(value).strip().lower().split())
    return _ALIASES.get(key)


def positions_equivalent(a: Optional[str], b: Optional[str]) -> bool:
    pa, pb = normalize_position(a), normalize_position(b)
    return pa is not None and pa == pb
