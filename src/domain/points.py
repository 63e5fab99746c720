"""Team point aggregation and persistence of derived totals."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from domain.cache import MISSING, StandingsCache
from domain.common import POINTS_DECIMAL_PLACES, ZERO, GameRecord, PointsBreakdown, TeamRecord, to_decimal
from domain.errors import ErrorKind, Outcome, StoreUnavailable
from domain.protocol import RecordStore

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def sum_game_points(team_id: int, games: Sequence[GameRecord | None]) -> Decimal:
    """Sum the award attributed to ``team_id``'s side over ``games``."""
    points = ZERO
    for game in games:
        if game is None:
            continue
        points += game.points_for(team_id)
    return points


def floor_total(manual_points: Decimal, game_points: Decimal) -> Decimal:
    """Manual adjustments may subtract, but a total never drops below zero."""
    total = manual_points + game_points
    return total if total > ZERO else ZERO


def parse_points(value: Any) -> Decimal | None:
    """Parse operator-entered points.

    ``None`` for non-numeric input and for values finer than the stored
    precision, which would otherwise be truncated on write.
    """
    if isinstance(value, bool):
        return None
    try:
        points = to_decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not points.is_finite():
        return None
    if points.normalize().as_tuple().exponent < -POINTS_DECIMAL_PLACES:
        return None
    return points


class PointsEngine:
    """Computes and persists team totals (manual + game points, floored at 0)."""

    def __init__(
        self,
        store: RecordStore,
        cache: StandingsCache,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.cache = cache
        self.clock = clock

    def _games_for_team(self, team_id: int) -> list[GameRecord | None]:
        cached_ids = self.cache.get_team_game_ids(team_id)
        if cached_ids is MISSING:
            games = list(self.store.get_games_for_team(team_id))
            self.cache.set_team_game_ids(
                team_id,
                [game.id for game in games if game.id is not None],
            )
            return games

        # Membership comes from cache; point awards are always read fresh.
        return [self.store.get_game(game_id) for game_id in cached_ids]

    def compute_game_points(self, team_id: int) -> Outcome[Decimal]:
        """Sum of the team's awarded game points; failure means "unknown", not zero."""
        try:
            games = self._games_for_team(team_id)
        except StoreUnavailable as exc:
            logger.warning("game points lookup failed team_id=%s", team_id, exc_info=True)
            return Outcome.failure(
                ErrorKind.STORE_UNAVAILABLE,
                f"game lookup failed for team {team_id}: {exc}",
            )
        return Outcome.success(sum_game_points(team_id, games))

    def count_games(self, team_id: int) -> Outcome[int]:
        cached = self.cache.get_team_game_count(team_id)
        if cached is not MISSING:
            return Outcome.success(int(cached))
        try:
            count = len(self.store.get_games_for_team(team_id))
        except StoreUnavailable as exc:
            logger.warning("game count lookup failed team_id=%s", team_id, exc_info=True)
            return Outcome.failure(
                ErrorKind.STORE_UNAVAILABLE,
                f"game count lookup failed for team {team_id}: {exc}",
            )
        self.cache.set_team_game_count(team_id, count)
        return Outcome.success(count)

    def breakdown_for(self, team: TeamRecord) -> Outcome[PointsBreakdown]:
        """Aggregate points for an already-loaded team without persisting."""
        game_points = self.compute_game_points(team.id)
        if not game_points.ok:
            return Outcome.failure(game_points.error, game_points.reason)  # type: ignore[arg-type]

        manual_points = to_decimal(team.manual_points)
        return Outcome.success(
            PointsBreakdown(
                team_id=team.id,
                manual_points=manual_points,
                game_points=game_points.unwrap(),
                total_points=floor_total(manual_points, game_points.unwrap()),
                computed_at=self.clock(),
            )
        )

    def calculate_total_points(self, team_id: int) -> Outcome[PointsBreakdown]:
        """Same aggregation as :meth:`compute_total_points`, without any write."""
        try:
            team = self.store.get_team(team_id)
        except StoreUnavailable as exc:
            logger.warning("team lookup failed team_id=%s", team_id, exc_info=True)
            return Outcome.failure(ErrorKind.STORE_UNAVAILABLE, f"team lookup failed: {exc}")
        if team is None:
            return Outcome.failure(ErrorKind.INVALID_REFERENCE, f"team {team_id} does not exist")
        return self.breakdown_for(team)

    def compute_total_points(self, team_id: int) -> Outcome[PointsBreakdown]:
        """Recompute, persist and log one team's total.

        This is the only code path that writes ``total_points``. If any input
        cannot be read the persisted total is left as it was.
        """
        breakdown = self.calculate_total_points(team_id)
        if not breakdown.ok:
            logger.warning(
                "total points update aborted team_id=%s reason=%s",
                team_id,
                breakdown.reason,
            )
            return breakdown

        result = breakdown.unwrap()
        try:
            # Total goes last so a failed log write leaves the stored total as it was.
            self.store.update_team_field(team_id, "points_update_log", result.as_log_json())
            self.store.update_team_field(team_id, "total_points", result.total_points)
        except StoreUnavailable as exc:
            logger.warning("total points write failed team_id=%s", team_id, exc_info=True)
            return Outcome.failure(
                ErrorKind.STORE_UNAVAILABLE,
                f"could not persist total for team {team_id}: {exc}",
            )

        logger.debug(
            "team_id=%s manual=%s game=%s total=%s",
            team_id,
            result.manual_points,
            result.game_points,
            result.total_points,
        )
        return breakdown

    def set_manual_points(self, team_id: int, points: Any) -> Outcome[PointsBreakdown]:
        """Store an operator's manual adjustment, then recompute the total."""
        manual_points = parse_points(points)
        if manual_points is None:
            return Outcome.failure(
                ErrorKind.INVALID_REFERENCE,
                f"points must be numeric with at most {POINTS_DECIMAL_PLACES} decimal places, got {points!r}",
            )

        try:
            team = self.store.get_team(team_id)
            if team is None:
                return Outcome.failure(ErrorKind.INVALID_REFERENCE, f"team {team_id} does not exist")
            self.store.update_team_field(team_id, "manual_points", manual_points)
        except StoreUnavailable as exc:
            logger.warning("manual points write failed team_id=%s", team_id, exc_info=True)
            return Outcome.failure(ErrorKind.STORE_UNAVAILABLE, f"manual points update failed: {exc}")

        return self.compute_total_points(team_id)


__all__ = [
    "PointsEngine",
    "floor_total",
    "parse_points",
    "sum_game_points",
    "utc_now",
]
