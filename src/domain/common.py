"""Shared record types passed between the record store and the engines."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

ZERO = Decimal("0")
DEFAULT_DIVISION_RANK = 1
POINTS_DECIMAL_PLACES = 2
UNASSIGNED_DIVISION_NAME = "Unassigned"
UNASSIGNED_DIVISION_SLUG = "unassigned"


def to_decimal(value: Any) -> Decimal:
    """Coerce stored numeric values (str/int/float/Decimal/None) to Decimal."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


@dataclass(frozen=True)
class DivisionRecord:
    """Canonical division payload."""

    id: int
    name: str
    slug: str
    rank: int | None = None

    @property
    def effective_rank(self) -> int:
        return self.rank if self.rank is not None else DEFAULT_DIVISION_RANK


@dataclass(frozen=True)
class TeamRecord:
    """Canonical team payload; ``division_id`` is the single owning division."""

    id: int
    name: str
    division_id: int | None = None
    manual_points: Decimal = ZERO
    total_points: Decimal = ZERO
    logo_url: str | None = None
    points_update_log: dict[str, Any] | None = None


@dataclass(frozen=True)
class GameRecord:
    """Canonical game payload. Scores are ``None`` until the game is played."""

    team_a_id: int
    team_b_id: int
    score_a: int | None = None
    score_b: int | None = None
    points_a: Decimal = ZERO
    points_b: Decimal = ZERO
    id: int | None = None
    modified_at: datetime | None = None
    last_modified_by: str | None = None

    @property
    def is_played(self) -> bool:
        return self.score_a is not None and self.score_b is not None

    def involves(self, team_id: int) -> bool:
        return team_id in (self.team_a_id, self.team_b_id)

    def points_for(self, team_id: int) -> Decimal:
        """Point award attributed to ``team_id``'s side of the game."""
        if team_id == self.team_a_id:
            return self.points_a
        if team_id == self.team_b_id:
            return self.points_b
        return ZERO

    def scores_for(self, team_id: int) -> tuple[int, int] | None:
        """(own score, opponent score) for a played game, else ``None``."""
        if not self.is_played:
            return None
        if team_id == self.team_a_id:
            return int(self.score_a), int(self.score_b)  # type: ignore[arg-type]
        return int(self.score_b), int(self.score_a)  # type: ignore[arg-type]


@dataclass(frozen=True)
class PointsBreakdown:
    """Manual/game/total split for one team at one point in time."""

    team_id: int
    manual_points: Decimal
    game_points: Decimal
    total_points: Decimal
    computed_at: datetime

    def as_log_json(self) -> dict[str, Any]:
        return {
            "timestamp": self.computed_at.isoformat(sep=" ", timespec="seconds"),
            "manual_points": str(self.manual_points),
            "game_points": str(self.game_points),
            "total_points": str(self.total_points),
        }


__all__ = [
    "DEFAULT_DIVISION_RANK",
    "DivisionRecord",
    "GameRecord",
    "POINTS_DECIMAL_PLACES",
    "PointsBreakdown",
    "TeamRecord",
    "UNASSIGNED_DIVISION_NAME",
    "UNASSIGNED_DIVISION_SLUG",
    "ZERO",
    "to_decimal",
]
