# fantasy_market/services/roster_policy.py
"""
Roster-composition rules, as pure functions over plain values.

Nothing here touches the database or the catalog: callers pass the owner's
current roster (team code + assigned position per player) and the candidate,
and get back either an approval or the first rule the purchase would break.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from fantasy_market.core.config import settings
from fantasy_market.core.errors import RosterLimitExceeded
from fantasy_market.services.positions import Position


class RosterViolation(str, Enum):
    SIZE = "size"
    TEAM = "team"
    POSITION = "position"


@dataclass(frozen=True)
class RosterLimits:
    max_size: int = 10
    max_per_team: int = 2
    max_per_position: int = 2

    @classmethod
    def from_settings(cls) -> "RosterLimits":
        return cls(
            max_size=settings.MAX_ROSTER_SIZE,
            max_per_team=settings.MAX_PLAYERS_PER_TEAM,
            max_per_position=settings.MAX_PLAYERS_PER_POSITION,
        )


@dataclass(frozen=True)
class RosterEntry:
    player_id: str
    team: Optional[str]        # None when the catalog no longer knows the player
    position: Position         # assigned fantasy position


@dataclass(frozen=True)
class RosterDecision:
    violation: Optional[RosterViolation] = None
    limit: Optional[int] = None
    message: str = ""

    @property
    def approved(self) -> bool:
        return self.violation is None

    def raise_for_violation(self) -> None:
        if self.violation is not None:
            raise RosterLimitExceeded(self.message, rule=self.violation.value, limit=self.limit)


APPROVED = RosterDecision()


def evaluate(
    roster: Sequence[RosterEntry],
    candidate_team: Optional[str],
    target_position: Position,
    limits: RosterLimits = RosterLimits(),
    candidate_team_name: Optional[str] = None,
) -> RosterDecision:
    """Check size, then same-team, then same-position; the first failing rule wins."""
    if len(roster) >= limits.max_size:
        return RosterDecision(
            RosterViolation.SIZE,
            limits.max_size,
            f"You already have {limits.max_size} players. Sell a player before buying a new one.",
        )

    same_team = sum(1 for e in roster if e.team is not None and e.team == candidate_team)
    if same_team >= limits.max_per_team:
        return RosterDecision(
            RosterViolation.TEAM,
            limits.max_per_team,
            f"You already have {limits.max_per_team} players from "
            f"{candidate_team_name or candidate_team}. Maximum reached.",
        )

    target = Position(target_position)
    same_position = sum(1 for e in roster if e.position == target)
    if same_position >= limits.max_per_position:
        return RosterDecision(
            RosterViolation.POSITION,
            limits.max_per_position,
            f"You already have {limits.max_per_position} players for the {target.value} position. "
            "Maximum reached.",
        )

    return APPROVED

