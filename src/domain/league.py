"""League-level orchestration: game saves, manual points and standings views."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from domain.backup import RecalculationManager
from domain.bonus import BonusPreview, compute_bonus
from domain.cache import MISSING, InMemoryCache, StandingsCache
from domain.common import (
    POINTS_DECIMAL_PLACES,
    UNASSIGNED_DIVISION_NAME,
    UNASSIGNED_DIVISION_SLUG,
    DivisionRecord,
    GameRecord,
    PointsBreakdown,
    TeamRecord,
    to_decimal,
)
from domain.config import LeagueConfig, default_league_config
from domain.errors import ErrorKind, Outcome, StoreUnavailable
from domain.points import PointsEngine, parse_points, utc_now
from domain.protocol import CacheBackend, OptionStore, RecordStore, TaskRunner
from domain.ranking import RankingEngine, rank_teams
from domain.tasks import TASK_UPDATE_DIVISION_STANDINGS, TASK_UPDATE_TEAM_POINTS

logger = logging.getLogger(__name__)


def format_points(value: Decimal, decimal_places: int) -> str:
    quantum = Decimal(1).scaleb(-decimal_places)
    return str(to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class StandingsRow:
    """One entry of the public standings listing."""

    team_id: int
    name: str
    total_points: Decimal
    division_name: str
    games_played: int
    logo_url: str | None
    division_id: int | None = None

    def as_json(self) -> dict[str, Any]:
        return {
            "team_id": self.team_id,
            "name": self.name,
            "total_points": float(self.total_points),
            "division_name": self.division_name,
            "games_played": self.games_played,
            "logo_url": self.logo_url,
        }


@dataclass(frozen=True)
class StandingsCard:
    """Display payload for one team with both overall and division rank."""

    team_id: int
    name: str
    overall_rank: int
    division_rank: int | None
    manual_points: Decimal
    game_points: Decimal
    total_points: Decimal
    display_points: str
    division_slug: str
    division_name: str
    games_played: int
    logo_url: str | None
    stale: bool = False


@dataclass(frozen=True)
class TeamStatistics:
    team_id: int
    total_games: int
    wins: int
    losses: int
    draws: int
    last_five: tuple[str, ...]
    total_points: Decimal


@dataclass(frozen=True)
class GameSaveResult:
    """Saved game plus what happened to the affected teams' totals."""

    game: GameRecord
    affected_team_ids: tuple[int, ...]
    recomputed_team_ids: tuple[int, ...] = ()
    scheduled_team_ids: tuple[int, ...] = ()
    failed_team_ids: tuple[int, ...] = ()


class LeagueService:
    """Wires the points, ranking, cache and recalculation engines to one store."""

    def __init__(
        self,
        store: RecordStore,
        *,
        config: LeagueConfig | None = None,
        cache_backend: CacheBackend | None = None,
        options: OptionStore | None = None,
        task_runner: TaskRunner | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.config = config or default_league_config()
        self.task_runner = task_runner
        self.clock = clock
        backend = cache_backend if cache_backend is not None else InMemoryCache()
        self.cache = StandingsCache(backend, self.config.cache)
        self.points = PointsEngine(store, self.cache, clock=clock)
        self.rankings = RankingEngine(store, self.points, self.cache)
        self.recalculation = RecalculationManager(
            store,
            self.points,
            options if options is not None else store,
            cache=self.cache,
            clock=clock,
        )

    # Writes

    def validate_game(self, game: GameRecord) -> Outcome[tuple[TeamRecord, TeamRecord]]:
        """Reject bad references and values before anything is written."""
        if not game.team_a_id or not game.team_b_id:
            return Outcome.failure(ErrorKind.INVALID_REFERENCE, "both teams are required")
        if game.team_a_id == game.team_b_id:
            return Outcome.failure(ErrorKind.INVALID_REFERENCE, "Teams must be different")
        for label, score in (("score_a", game.score_a), ("score_b", game.score_b)):
            if score is None:
                continue
            if isinstance(score, bool) or not isinstance(score, int) or score < 0:
                return Outcome.failure(
                    ErrorKind.INVALID_REFERENCE,
                    f"{label} must be a non-negative integer, got {score!r}",
                )
        for label, points in (("points_a", game.points_a), ("points_b", game.points_b)):
            if parse_points(points) is None:
                return Outcome.failure(
                    ErrorKind.INVALID_REFERENCE,
                    f"{label} must be numeric with at most {POINTS_DECIMAL_PLACES} decimal places, got {points!r}",
                )

        try:
            team_a = self.store.get_team(game.team_a_id)
            team_b = self.store.get_team(game.team_b_id)
        except StoreUnavailable as exc:
            logger.warning("team lookup failed while validating game", exc_info=True)
            return Outcome.failure(ErrorKind.STORE_UNAVAILABLE, f"team lookup failed: {exc}")
        if team_a is None:
            return Outcome.failure(ErrorKind.INVALID_REFERENCE, f"team {game.team_a_id} does not exist")
        if team_b is None:
            return Outcome.failure(ErrorKind.INVALID_REFERENCE, f"team {game.team_b_id} does not exist")
        return Outcome.success((team_a, team_b))

    def record_game(self, game: GameRecord, *, modified_by: str | None = None) -> Outcome[GameSaveResult]:
        """Validate and save a game, invalidate caches and refresh both totals.

        Totals are recomputed inline unless a task runner is wired and the
        config asks for deferral. A failed recompute does not fail the save.
        """
        validated = self.validate_game(game)
        if not validated.ok:
            return Outcome.failure(validated.error, validated.reason)  # type: ignore[arg-type]
        team_a, team_b = validated.unwrap()

        teams = {team_a.id: team_a, team_b.id: team_b}
        try:
            if game.id is not None:
                previous = self.store.get_game(game.id)
                if previous is not None:
                    # Teams swapped out of an edited game need their totals refreshed too.
                    for team_id in (previous.team_a_id, previous.team_b_id):
                        if team_id not in teams:
                            old_team = self.store.get_team(team_id)
                            if old_team is not None:
                                teams[team_id] = old_team

            saved = self.store.save_game(
                replace(
                    game,
                    points_a=parse_points(game.points_a),
                    points_b=parse_points(game.points_b),
                    modified_at=self.clock(),
                    last_modified_by=modified_by or game.last_modified_by,
                )
            )
        except StoreUnavailable as exc:
            logger.warning("game save failed team_a=%s team_b=%s", game.team_a_id, game.team_b_id, exc_info=True)
            return Outcome.failure(ErrorKind.STORE_UNAVAILABLE, f"game save failed: {exc}")

        affected = tuple(teams)
        self.cache.on_game_saved(affected, [team.division_id for team in teams.values()])

        if not self.config.points.auto_recalculate:
            return Outcome.success(GameSaveResult(game=saved, affected_team_ids=affected))

        if self._defers_work():
            delay = self.config.points.recompute_delay_seconds
            for offset, team_id in enumerate(affected):
                self.task_runner.schedule(delay + offset, TASK_UPDATE_TEAM_POINTS, {"team_id": team_id})
            return Outcome.success(
                GameSaveResult(game=saved, affected_team_ids=affected, scheduled_team_ids=affected)
            )

        recomputed: list[int] = []
        failed: list[int] = []
        for team_id in affected:
            if self.recompute_team(team_id).ok:
                recomputed.append(team_id)
            else:
                failed.append(team_id)
        return Outcome.success(
            GameSaveResult(
                game=saved,
                affected_team_ids=affected,
                recomputed_team_ids=tuple(recomputed),
                failed_team_ids=tuple(failed),
            )
        )

    def recompute_team(self, team_id: int) -> Outcome[PointsBreakdown]:
        """Idempotent per-team refresh; safe to deliver more than once.

        With a deferred runner wired, the team's division gets a follow-up
        ``update_division_standings`` task.
        """
        result = self.points.compute_total_points(team_id)
        if result.ok:
            division_id = self._division_of(team_id)
            self.cache.on_team_points_changed(division_id, [team_id])
            if division_id is not None and self._defers_work():
                self.task_runner.schedule(  # type: ignore[union-attr]
                    0.0, TASK_UPDATE_DIVISION_STANDINGS, {"division_id": division_id}
                )
        return result

    def update_manual_points(self, team_id: int, points: Any) -> Outcome[PointsBreakdown]:
        """Write-endpoint path: set manual points and refresh the total."""
        result = self.points.set_manual_points(team_id, points)
        if result.ok or result.error is ErrorKind.STORE_UNAVAILABLE:
            self.cache.on_team_points_changed(self._division_of(team_id), [team_id])
        return result

    def invalidate_division(self, division_id: int) -> Outcome[int]:
        self.cache.invalidate_rankings([division_id])
        self.cache.invalidate_rendered_standings()
        return Outcome.success(division_id)

    def handle_task(self, task_name: str, args: dict[str, Any]) -> Outcome[Any]:
        """Entry point for the deferred-task runner."""
        if task_name == TASK_UPDATE_TEAM_POINTS:
            team_id = args.get("team_id")
            if not team_id:
                return Outcome.failure(ErrorKind.INVALID_REFERENCE, "team_id is required")
            return self.recompute_team(int(team_id))
        if task_name == TASK_UPDATE_DIVISION_STANDINGS:
            division_id = args.get("division_id")
            if not division_id:
                return Outcome.failure(ErrorKind.INVALID_REFERENCE, "division_id is required")
            return self.invalidate_division(int(division_id))
        logger.warning("unknown task ignored task_name=%s", task_name)
        return Outcome.failure(ErrorKind.INVALID_REFERENCE, f"Unknown task: {task_name}")

    def refresh_standings(self) -> None:
        self.cache.invalidate_rendered_standings()

    def clear_caches(self) -> None:
        try:
            team_ids = [team.id for team in self.store.get_all_teams()]
            division_ids = [division.id for division in self.store.get_all_divisions()]
        except StoreUnavailable:
            logger.warning("id lookup failed; clearing known cache entries only", exc_info=True)
            team_ids, division_ids = [], []
        self.cache.clear_all(team_ids, division_ids)

    # Reads

    def preview_bonus(
        self,
        team_a_id: int,
        team_b_id: int,
        score_a: int,
        score_b: int,
    ) -> Outcome[BonusPreview]:
        """Suggested bonus for the winner; never persisted."""
        if team_a_id == team_b_id:
            return Outcome.failure(ErrorKind.INVALID_REFERENCE, "Teams must be different")
        try:
            team_a = self.store.get_team(team_a_id)
            team_b = self.store.get_team(team_b_id)
            if team_a is None or team_b is None:
                missing = team_a_id if team_a is None else team_b_id
                return Outcome.failure(ErrorKind.INVALID_REFERENCE, f"team {missing} does not exist")
            division_a = self._division_record(team_a)
            division_b = self._division_record(team_b)
        except StoreUnavailable as exc:
            logger.warning("bonus preview lookup failed", exc_info=True)
            return Outcome.failure(ErrorKind.STORE_UNAVAILABLE, f"division lookup failed: {exc}")

        if division_a is None or division_b is None:
            return Outcome.success(
                BonusPreview(
                    bonus_a=0,
                    bonus_b=0,
                    division_name_a=division_a.name if division_a else UNASSIGNED_DIVISION_NAME,
                    division_name_b=division_b.name if division_b else UNASSIGNED_DIVISION_NAME,
                )
            )

        bonus_a, bonus_b = compute_bonus(
            division_a.effective_rank,
            division_b.effective_rank,
            score_a,
            score_b,
            self.config.bonus,
        )
        return Outcome.success(
            BonusPreview(
                bonus_a=bonus_a,
                bonus_b=bonus_b,
                division_rank_a=division_a.effective_rank,
                division_rank_b=division_b.effective_rank,
                division_name_a=division_a.name,
                division_name_b=division_b.name,
            )
        )

    def standings_listing(self, division_id: int | None = None) -> Outcome[list[StandingsRow]]:
        """Public listing ordered by persisted total points."""
        cached = self.cache.get_standings_api()
        if cached is MISSING:
            built = self._build_listing()
            if not built.ok:
                return built
            rows = built.unwrap()
            self.cache.set_standings_api(tuple(rows))
        else:
            rows = list(cached)

        if division_id is not None:
            rows = [row for row in rows if row.division_id == division_id]
        return Outcome.success(rows)

    def standings_display(self) -> Outcome[list[StandingsCard]]:
        """Cards with freshly aggregated totals, overall rank and division rank.

        A team whose points cannot be aggregated shows its last persisted total
        flagged ``stale``; such payloads are not cached.
        """
        cached = self.cache.get_standings_display()
        if cached is not MISSING:
            return Outcome.success(list(cached))

        try:
            teams = list(self.store.get_all_teams())
            divisions = {division.id: division for division in self.store.get_all_divisions()}
        except StoreUnavailable as exc:
            logger.warning("standings display lookup failed", exc_info=True)
            return Outcome.failure(ErrorKind.STORE_UNAVAILABLE, f"standings lookup failed: {exc}")

        division_rankings = self.rankings.rank_all_divisions()
        if division_rankings.ok:
            division_ranks = division_rankings.unwrap()
        else:
            logger.warning("division rankings unavailable: %s", division_rankings.reason)
            division_ranks = {}

        breakdowns: dict[int, PointsBreakdown | None] = {}
        rows: list[tuple[int, str, Decimal, int | None]] = []
        for team in teams:
            breakdown = self.points.breakdown_for(team)
            if breakdown.ok:
                breakdowns[team.id] = breakdown.unwrap()
                total = breakdown.unwrap().total_points
            else:
                breakdowns[team.id] = None
                total = to_decimal(team.total_points)
            rows.append((team.id, team.name, total, team.division_id))

        teams_by_id = {team.id: team for team in teams}
        decimal_places = self.config.points.decimal_places
        cards: list[StandingsCard] = []
        for entry in rank_teams(rows):
            team = teams_by_id[entry.team_id]
            breakdown = breakdowns[team.id]
            division = divisions.get(team.division_id) if team.division_id is not None else None
            games = self.points.count_games(team.id)
            cards.append(
                StandingsCard(
                    team_id=team.id,
                    name=team.name,
                    overall_rank=entry.rank,
                    division_rank=division_ranks.get(team.division_id, {}).get(team.id)
                    if team.division_id is not None
                    else None,
                    manual_points=to_decimal(team.manual_points),
                    game_points=breakdown.game_points if breakdown else Decimal("0"),
                    total_points=entry.total_points,
                    display_points=format_points(entry.total_points, decimal_places),
                    division_slug=division.slug if division else UNASSIGNED_DIVISION_SLUG,
                    division_name=division.name if division else UNASSIGNED_DIVISION_NAME,
                    games_played=games.value if games.ok and games.value is not None else 0,
                    logo_url=team.logo_url,
                    stale=breakdown is None,
                )
            )

        if not any(card.stale for card in cards):
            self.cache.set_standings_display(tuple(cards))
        return Outcome.success(cards)

    def team_statistics(self, team_id: int) -> Outcome[TeamStatistics]:
        cached = self.cache.get_team_stats(team_id)
        if cached is not MISSING:
            return Outcome.success(cached)

        try:
            team = self.store.get_team(team_id)
            if team is None:
                return Outcome.failure(ErrorKind.INVALID_REFERENCE, f"team {team_id} does not exist")
            games = list(self.store.get_games_for_team(team_id))
        except StoreUnavailable as exc:
            logger.warning("team statistics lookup failed team_id=%s", team_id, exc_info=True)
            return Outcome.failure(ErrorKind.STORE_UNAVAILABLE, f"statistics lookup failed: {exc}")

        stats = summarize_games(team_id, games, to_decimal(team.total_points))
        self.cache.set_team_stats(team_id, stats)
        return Outcome.success(stats)

    # Helpers

    def _defers_work(self) -> bool:
        return self.task_runner is not None and self.config.points.defer_recompute

    def _build_listing(self) -> Outcome[list[StandingsRow]]:
        try:
            teams = list(self.store.get_all_teams())
            divisions = {division.id: division for division in self.store.get_all_divisions()}
        except StoreUnavailable as exc:
            logger.warning("standings listing lookup failed", exc_info=True)
            return Outcome.failure(ErrorKind.STORE_UNAVAILABLE, f"standings lookup failed: {exc}")

        rows: list[StandingsRow] = []
        for team in teams:
            games = self.points.count_games(team.id)
            if not games.ok:
                return Outcome.failure(games.error, games.reason)  # type: ignore[arg-type]
            division = divisions.get(team.division_id) if team.division_id is not None else None
            rows.append(
                StandingsRow(
                    team_id=team.id,
                    name=team.name,
                    total_points=to_decimal(team.total_points),
                    division_name=division.name if division else UNASSIGNED_DIVISION_NAME,
                    games_played=games.unwrap(),
                    logo_url=team.logo_url,
                    division_id=team.division_id,
                )
            )
        rows.sort(key=lambda row: (-row.total_points, row.name.lower(), row.team_id))
        return Outcome.success(rows)

    def _division_record(self, team: TeamRecord) -> DivisionRecord | None:
        if team.division_id is None:
            return None
        return self.store.get_division(team.division_id)

    def _division_of(self, team_id: int) -> int | None:
        try:
            team = self.store.get_team(team_id)
        except StoreUnavailable:
            logger.warning("division lookup failed team_id=%s", team_id, exc_info=True)
            return None
        return team.division_id if team is not None else None


def summarize_games(team_id: int, games: Sequence[GameRecord], total_points: Decimal) -> TeamStatistics:
    """Win/loss/draw counts and the last five results, most recent first."""
    played = [game for game in games if game.is_played]
    played.sort(key=lambda game: (game.modified_at or datetime.min, game.id or 0))

    wins = losses = draws = 0
    results: list[str] = []
    for game in played:
        own, other = game.scores_for(team_id)  # type: ignore[misc]
        if own > other:
            wins += 1
            results.append("W")
        elif own < other:
            losses += 1
            results.append("L")
        else:
            draws += 1
            results.append("D")

    return TeamStatistics(
        team_id=team_id,
        total_games=len(played),
        wins=wins,
        losses=losses,
        draws=draws,
        last_five=tuple(reversed(results[-5:])),
        total_points=total_points,
    )


__all__ = [
    "GameSaveResult",
    "LeagueService",
    "StandingsCard",
    "StandingsRow",
    "TeamStatistics",
    "format_points",
    "summarize_games",
]
