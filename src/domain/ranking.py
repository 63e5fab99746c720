"""Division and overall standings ranks."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from domain.cache import MISSING, StandingsCache
from domain.common import TeamRecord
from domain.errors import ErrorKind, Outcome, StoreUnavailable
from domain.points import PointsEngine
from domain.protocol import RecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankingEntry:
    team_id: int
    name: str
    total_points: Decimal
    rank: int
    division_id: int | None = None


def ranking_sort_key(team_id: int, name: str, total_points: Decimal) -> tuple[Decimal, str, int]:
    """Points descending, then case-insensitive name, then id."""
    return (-total_points, name.lower(), team_id)


def rank_teams(
    rows: Iterable[tuple[int, str, Decimal, int | None]],
) -> list[RankingEntry]:
    """Assign dense ranks 1..N (no shared ranks) to ``(team_id, name, points, division_id)`` rows."""
    ordered = sorted(rows, key=lambda row: ranking_sort_key(row[0], row[1], row[2]))
    return [
        RankingEntry(
            team_id=team_id,
            name=name,
            total_points=total_points,
            rank=rank,
            division_id=division_id,
        )
        for rank, (team_id, name, total_points, division_id) in enumerate(ordered, start=1)
    ]


def rank_map(entries: Sequence[RankingEntry]) -> dict[int, int]:
    return {entry.team_id: entry.rank for entry in entries}


class RankingEngine:
    """Ranks teams by freshly aggregated totals, memoized on the short timer."""

    def __init__(self, store: RecordStore, points: PointsEngine, cache: StandingsCache) -> None:
        self.store = store
        self.points = points
        self.cache = cache

    def _rank(self, teams: Sequence[TeamRecord]) -> Outcome[list[RankingEntry]]:
        rows: list[tuple[int, str, Decimal, int | None]] = []
        for team in teams:
            breakdown = self.points.breakdown_for(team)
            if not breakdown.ok:
                return Outcome.failure(
                    breakdown.error,  # type: ignore[arg-type]
                    f"cannot rank team {team.id}: {breakdown.reason}",
                )
            rows.append((team.id, team.name, breakdown.unwrap().total_points, team.division_id))
        return Outcome.success(rank_teams(rows))

    def rank_division(self, division_id: int) -> Outcome[list[RankingEntry]]:
        cached = self.cache.get_division_rankings(division_id)
        if cached is not MISSING:
            return Outcome.success(list(cached))

        try:
            teams = list(self.store.get_teams_by_division(division_id))
        except StoreUnavailable as exc:
            logger.warning("division team lookup failed division_id=%s", division_id, exc_info=True)
            return Outcome.failure(ErrorKind.STORE_UNAVAILABLE, f"division team lookup failed: {exc}")

        ranked = self._rank(teams)
        if ranked.ok:
            self.cache.set_division_rankings(division_id, tuple(ranked.unwrap()))
        return ranked

    def rank_global(self) -> Outcome[list[RankingEntry]]:
        cached = self.cache.get_global_rankings()
        if cached is not MISSING:
            return Outcome.success(list(cached))

        try:
            teams = list(self.store.get_all_teams())
        except StoreUnavailable as exc:
            logger.warning("team lookup failed for global ranking", exc_info=True)
            return Outcome.failure(ErrorKind.STORE_UNAVAILABLE, f"team lookup failed: {exc}")

        ranked = self._rank(teams)
        if ranked.ok:
            self.cache.set_global_rankings(tuple(ranked.unwrap()))
        return ranked

    def rank_all_divisions(self) -> Outcome[dict[int, dict[int, int]]]:
        """``{division_id: {team_id: rank}}`` for every division, empty ones included."""
        cached = self.cache.get_all_division_rankings()
        if cached is not MISSING:
            return Outcome.success(dict(cached))

        try:
            divisions = list(self.store.get_all_divisions())
        except StoreUnavailable as exc:
            logger.warning("division lookup failed", exc_info=True)
            return Outcome.failure(ErrorKind.STORE_UNAVAILABLE, f"division lookup failed: {exc}")

        rankings: dict[int, dict[int, int]] = {}
        for division in divisions:
            ranked = self.rank_division(division.id)
            if not ranked.ok:
                return Outcome.failure(ranked.error, ranked.reason)  # type: ignore[arg-type]
            rankings[division.id] = rank_map(ranked.unwrap())

        self.cache.set_all_division_rankings(rankings)
        return Outcome.success(rankings)


__all__ = [
    "RankingEngine",
    "RankingEntry",
    "rank_map",
    "rank_teams",
    "ranking_sort_key",
]
