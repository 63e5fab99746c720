"""Unit tests for division and overall ranking."""

from __future__ import annotations

from decimal import Decimal

from domain.cache import InMemoryCache, StandingsCache
from domain.errors import ErrorKind
from domain.points import PointsEngine
from domain.ranking import RankingEngine, rank_map, rank_teams


def _engines(store, backend=None) -> tuple[RankingEngine, StandingsCache]:
    cache = StandingsCache(backend if backend is not None else InMemoryCache())
    return RankingEngine(store, PointsEngine(store, cache), cache), cache


def test_rank_teams_breaks_ties_by_name_case_insensitively() -> None:
    entries = rank_teams(
        [
            (1, "zebras", Decimal("10"), None),
            (2, "Ants", Decimal("10"), None),
            (3, "bears", Decimal("12"), None),
            (4, "ants", Decimal("10"), None),
        ]
    )

    assert [entry.team_id for entry in entries] == [3, 2, 4, 1]
    assert [entry.rank for entry in entries] == [1, 2, 3, 4]
    assert rank_map(entries) == {3: 1, 2: 2, 4: 3, 1: 4}


def test_rank_teams_empty_input() -> None:
    assert rank_teams([]) == []


def test_rank_division_uses_fresh_totals(store, add_game) -> None:
    division = store.add_division("North", rank=1)
    other_division = store.add_division("South", rank=2)
    alpha = store.add_team("Alpha", division_id=division.id, manual_points=Decimal("1"))
    beta = store.add_team("Beta", division_id=division.id, manual_points=Decimal("2"))
    outsider = store.add_team("Outsider", division_id=other_division.id)
    add_game(alpha.id, outsider.id, score_a=3, score_b=0, points_a="5")

    ranking, _ = _engines(store)
    outcome = ranking.rank_division(division.id)

    assert outcome.ok
    assert [(entry.team_id, entry.rank) for entry in outcome.value] == [(alpha.id, 1), (beta.id, 2)]
    assert outcome.value[0].total_points == Decimal("6")
    # Ranking does not persist totals.
    assert store.get_team(alpha.id).total_points == Decimal("0")


def test_rank_division_of_empty_division_is_empty(store) -> None:
    division = store.add_division("Empty")
    ranking, _ = _engines(store)
    outcome = ranking.rank_division(division.id)
    assert outcome.ok
    assert outcome.value == []


def test_rank_division_is_memoized_until_invalidated(store, cache_backend) -> None:
    division = store.add_division("North")
    alpha = store.add_team("Alpha", division_id=division.id, manual_points=Decimal("1"))
    beta = store.add_team("Beta", division_id=division.id, manual_points=Decimal("2"))
    ranking, cache = _engines(store, cache_backend)
    assert [entry.team_id for entry in ranking.rank_division(division.id).value] == [beta.id, alpha.id]

    store.update_team_field(alpha.id, "manual_points", Decimal("5"))
    assert [entry.team_id for entry in ranking.rank_division(division.id).value] == [beta.id, alpha.id]

    cache.on_team_points_changed(division.id)
    assert [entry.team_id for entry in ranking.rank_division(division.id).value] == [alpha.id, beta.id]


def test_rank_global_covers_unassigned_teams(store) -> None:
    division = store.add_division("North")
    store.add_team("Alpha", division_id=division.id, manual_points=Decimal("1"))
    loner = store.add_team("Loner", manual_points=Decimal("9"))

    ranking, _ = _engines(store)
    outcome = ranking.rank_global()

    assert outcome.ok
    assert outcome.value[0].team_id == loner.id
    assert outcome.value[0].division_id is None
    assert [entry.rank for entry in outcome.value] == [1, 2]


def test_rank_all_divisions_includes_empty_divisions(store) -> None:
    north = store.add_division("North")
    empty = store.add_division("Empty")
    alpha = store.add_team("Alpha", division_id=north.id)

    ranking, _ = _engines(store)
    outcome = ranking.rank_all_divisions()

    assert outcome.ok
    assert outcome.value == {north.id: {alpha.id: 1}, empty.id: {}}


def test_ranking_failure_is_reported_and_not_cached(flaky_store, store, cache_backend) -> None:
    division = store.add_division("North")
    alpha = store.add_team("Alpha", division_id=division.id)
    store.add_team("Beta", division_id=division.id)
    ranking, _ = _engines(flaky_store, cache_backend)

    flaky_store.fail("get_games_for_team", team_ids={alpha.id})
    outcome = ranking.rank_division(division.id)

    assert outcome.error is ErrorKind.STORE_UNAVAILABLE
    assert "division_rankings_%d" % division.id not in cache_backend.keys()

    flaky_store.heal()
    assert ranking.rank_division(division.id).ok


def test_rank_division_lookup_failure(flaky_store, store) -> None:
    division = store.add_division("North")
    flaky_store.fail("get_teams_by_division")
    ranking, _ = _engines(flaky_store)
    assert ranking.rank_division(division.id).error is ErrorKind.STORE_UNAVAILABLE
