"""Tests for game saves, deferred recomputes and the standings views."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import Decimal

import pytest

from domain.common import GameRecord
from domain.config import PointsSettings, default_league_config
from domain.errors import ErrorKind
from domain.league import LeagueService, format_points, summarize_games
from domain.tasks import TASK_UPDATE_DIVISION_STANDINGS, TASK_UPDATE_TEAM_POINTS, QueuedTaskRunner


def _config(**points):
    return replace(default_league_config(), points=PointsSettings(**points))


def _service(store, clock, *, runner=None, backend=None, **points) -> LeagueService:
    return LeagueService(
        store,
        config=_config(**points),
        cache_backend=backend,
        task_runner=runner,
        clock=clock,
    )


@pytest.fixture
def league(store):
    north = store.add_division("North", rank=1)
    south = store.add_division("South", rank=2)
    alpha = store.add_team("Alpha", division_id=north.id)
    beta = store.add_team("Beta", division_id=north.id, manual_points=Decimal("1"))
    gamma = store.add_team("Gamma", division_id=south.id)
    return {"north": north, "south": south, "alpha": alpha, "beta": beta, "gamma": gamma}


def test_format_points_rounds_half_up() -> None:
    assert format_points(Decimal("2.25"), 1) == "2.3"
    assert format_points(Decimal("7"), 2) == "7.00"
    assert format_points(Decimal("3.5"), 0) == "4"


@pytest.mark.parametrize(
    ("game", "message"),
    [
        (GameRecord(team_a_id=1, team_b_id=1), "Teams must be different"),
        (GameRecord(team_a_id=1, team_b_id=2, score_a=-1, score_b=0), "score_a"),
        (GameRecord(team_a_id=1, team_b_id=2, points_b="lots"), "points_b"),
        (GameRecord(team_a_id=1, team_b_id=404), "team 404 does not exist"),
    ],
)
def test_invalid_games_are_rejected_before_any_write(store, clock, league, game, message) -> None:
    service = _service(store, clock, defer_recompute=False)

    outcome = service.record_game(game)

    assert outcome.error is ErrorKind.INVALID_REFERENCE
    assert message in outcome.reason
    assert store.get_all_games() == []


def test_record_game_schedules_one_task_per_team(store, clock, league) -> None:
    runner = QueuedTaskRunner()
    service = _service(store, clock, runner=runner, recompute_delay_seconds=2.0)
    alpha, beta = league["alpha"], league["beta"]

    outcome = service.record_game(
        GameRecord(team_a_id=alpha.id, team_b_id=beta.id, score_a=2, score_b=1, points_a="3"),
        modified_by="referee",
    )

    assert outcome.ok
    assert outcome.value.scheduled_team_ids == (alpha.id, beta.id)
    assert outcome.value.game.last_modified_by == "referee"
    assert outcome.value.game.modified_at == clock.now
    tasks = runner.pending()
    assert [(task.delay_seconds, task.task_name, task.args) for task in tasks] == [
        (2.0, TASK_UPDATE_TEAM_POINTS, {"team_id": alpha.id}),
        (3.0, TASK_UPDATE_TEAM_POINTS, {"team_id": beta.id}),
    ]
    # Nothing recomputed until the runner fires.
    assert store.get_team(alpha.id).total_points == Decimal("0")

    results = runner.drain(service.handle_task)

    assert all(result.ok for result in results)
    assert store.get_team(alpha.id).total_points == Decimal("3")
    assert store.get_team(beta.id).total_points == Decimal("1")
    # Each recompute queues a standings refresh for the team's division.
    assert [(task.task_name, task.args) for task in runner.pending()] == [
        (TASK_UPDATE_DIVISION_STANDINGS, {"division_id": league["north"].id}),
        (TASK_UPDATE_DIVISION_STANDINGS, {"division_id": league["north"].id}),
    ]
    assert all(result.ok for result in runner.drain(service.handle_task))
    assert runner.pending() == []


def test_redelivered_tasks_are_idempotent(store, clock, league) -> None:
    runner = QueuedTaskRunner()
    service = _service(store, clock, runner=runner)
    alpha, beta = league["alpha"], league["beta"]
    service.record_game(GameRecord(team_a_id=alpha.id, team_b_id=beta.id, score_a=1, score_b=0, points_a="2"))
    tasks = runner.pending()

    runner.drain(service.handle_task)
    for task in tasks:
        service.handle_task(task.task_name, task.args)

    assert store.get_team(alpha.id).total_points == Decimal("2")


def test_record_game_recomputes_inline_without_runner(store, clock, league) -> None:
    service = _service(store, clock)
    alpha, gamma = league["alpha"], league["gamma"]

    outcome = service.record_game(
        GameRecord(team_a_id=alpha.id, team_b_id=gamma.id, score_a=0, score_b=3, points_b="4.5")
    )

    assert outcome.value.recomputed_team_ids == (alpha.id, gamma.id)
    assert store.get_team(gamma.id).total_points == Decimal("4.5")


def test_auto_recalculate_off_leaves_totals_alone(store, clock, league) -> None:
    runner = QueuedTaskRunner()
    service = _service(store, clock, runner=runner, auto_recalculate=False)
    alpha, beta = league["alpha"], league["beta"]

    outcome = service.record_game(GameRecord(team_a_id=alpha.id, team_b_id=beta.id, points_a="3"))

    assert outcome.ok
    assert runner.pending() == []
    assert outcome.value.recomputed_team_ids == ()
    assert store.get_team(alpha.id).total_points == Decimal("0")


def test_editing_a_game_refreshes_the_replaced_team(store, clock, league) -> None:
    service = _service(store, clock, defer_recompute=False)
    alpha, beta, gamma = league["alpha"], league["beta"], league["gamma"]
    saved = service.record_game(
        GameRecord(team_a_id=alpha.id, team_b_id=beta.id, score_a=1, score_b=0, points_a="3")
    ).value.game
    assert store.get_team(alpha.id).total_points == Decimal("3")

    outcome = service.record_game(
        GameRecord(id=saved.id, team_a_id=gamma.id, team_b_id=beta.id, score_a=1, score_b=0, points_a="3")
    )

    assert set(outcome.value.affected_team_ids) == {alpha.id, beta.id, gamma.id}
    assert store.get_team(alpha.id).total_points == Decimal("0")
    assert store.get_team(gamma.id).total_points == Decimal("3")
    assert len(store.get_all_games()) == 1


def test_failed_recompute_does_not_fail_the_save(flaky_store, store, clock, league) -> None:
    service = _service(flaky_store, clock, defer_recompute=False)
    alpha, beta = league["alpha"], league["beta"]
    flaky_store.fail("get_games_for_team", team_ids={beta.id})

    outcome = service.record_game(
        GameRecord(team_a_id=alpha.id, team_b_id=beta.id, score_a=1, score_b=1, points_a="1", points_b="1")
    )

    assert outcome.ok
    assert outcome.value.recomputed_team_ids == (alpha.id,)
    assert outcome.value.failed_team_ids == (beta.id,)
    assert store.get_team(beta.id).total_points == Decimal("0")
    assert len(store.get_all_games()) == 1


def test_save_failure_is_store_unavailable(flaky_store, clock, league) -> None:
    service = _service(flaky_store, clock, defer_recompute=False)
    flaky_store.fail("save_game")

    outcome = service.record_game(GameRecord(team_a_id=league["alpha"].id, team_b_id=league["beta"].id))

    assert outcome.error is ErrorKind.STORE_UNAVAILABLE


def test_update_manual_points_invalidates_listing(store, clock, league, cache_backend) -> None:
    service = _service(store, clock, backend=cache_backend)
    gamma = league["gamma"]
    before = service.standings_listing().value
    assert before[0].team_id == league["alpha"].id

    outcome = service.update_manual_points(gamma.id, "10")

    assert outcome.ok
    assert outcome.value.total_points == Decimal("10")
    after = service.standings_listing().value
    assert after[0].team_id == gamma.id
    assert after[0].total_points == Decimal("10")


def test_update_manual_points_rejects_non_numeric(store, clock, league) -> None:
    service = _service(store, clock)
    outcome = service.update_manual_points(league["alpha"].id, "ten")
    assert outcome.error is ErrorKind.INVALID_REFERENCE


def test_standings_listing_orders_by_stored_total(store, clock, league) -> None:
    service = _service(store, clock)
    store.update_team_field(league["gamma"].id, "total_points", Decimal("5"))
    store.update_team_field(league["alpha"].id, "total_points", Decimal("1"))
    store.update_team_field(league["beta"].id, "total_points", Decimal("1"))

    rows = service.standings_listing().value

    assert [row.name for row in rows] == ["Gamma", "Alpha", "Beta"]
    assert rows[0].as_json() == {
        "team_id": league["gamma"].id,
        "name": "Gamma",
        "total_points": 5.0,
        "division_name": "South",
        "games_played": 0,
        "logo_url": None,
    }


def test_standings_listing_filters_by_division(store, clock, league) -> None:
    loner = store.add_team("Loner")
    service = _service(store, clock)

    north_rows = service.standings_listing(league["north"].id).value
    all_rows = service.standings_listing().value

    assert {row.name for row in north_rows} == {"Alpha", "Beta"}
    assert [row.division_name for row in all_rows if row.team_id == loner.id] == ["Unassigned"]


def test_standings_display_ranks_overall_and_by_division(store, clock, league, add_game) -> None:
    service = _service(store, clock)
    alpha, beta, gamma = league["alpha"], league["beta"], league["gamma"]
    add_game(gamma.id, alpha.id, score_a=2, score_b=0, points_a="5")
    loner = store.add_team("Loner", manual_points=Decimal("0.25"))

    cards = service.standings_display().value

    assert [card.team_id for card in cards] == [gamma.id, beta.id, loner.id, alpha.id]
    assert [card.overall_rank for card in cards] == [1, 2, 3, 4]
    by_id = {card.team_id: card for card in cards}
    assert by_id[gamma.id].division_rank == 1
    assert by_id[beta.id].division_rank == 1
    assert by_id[alpha.id].division_rank == 2
    assert by_id[loner.id].division_rank is None
    assert by_id[loner.id].division_slug == "unassigned"
    assert by_id[loner.id].display_points == "0.3"
    assert by_id[gamma.id].game_points == Decimal("5")
    assert by_id[gamma.id].games_played == 1
    assert not any(card.stale for card in cards)


def test_standings_display_marks_unreadable_teams_stale(flaky_store, store, clock, league, cache_backend) -> None:
    store.update_team_field(league["gamma"].id, "total_points", Decimal("8"))
    service = _service(flaky_store, clock, backend=cache_backend)
    flaky_store.fail("get_games_for_team", team_ids={league["gamma"].id})

    cards = service.standings_display().value

    stale = [card for card in cards if card.stale]
    assert [card.team_id for card in stale] == [league["gamma"].id]
    assert stale[0].total_points == Decimal("8")
    assert "team_standings_display" not in cache_backend.keys()


def test_preview_bonus_uses_division_ranks(store, clock, league) -> None:
    service = _service(store, clock)
    alpha, gamma = league["alpha"], league["gamma"]

    preview = service.preview_bonus(gamma.id, alpha.id, 3, 1).value

    assert preview.as_tuple() == (3, 0)
    assert preview.division_name_a == "South"
    assert preview.division_rank_b == 1
    assert service.preview_bonus(alpha.id, gamma.id, 3, 1).value.as_tuple() == (0, 0)
    assert service.preview_bonus(alpha.id, league["beta"].id, 0, 2).value.as_tuple() == (0, 2)


def test_preview_bonus_for_unassigned_team_is_zero(store, clock, league) -> None:
    loner = store.add_team("Loner")
    service = _service(store, clock)

    preview = service.preview_bonus(loner.id, league["alpha"].id, 5, 0).value

    assert preview.as_tuple() == (0, 0)
    assert preview.division_name_a == "Unassigned"


def test_preview_bonus_rejects_bad_references(store, clock, league) -> None:
    service = _service(store, clock)
    assert service.preview_bonus(league["alpha"].id, league["alpha"].id, 1, 0).error is ErrorKind.INVALID_REFERENCE
    assert service.preview_bonus(league["alpha"].id, 404, 1, 0).error is ErrorKind.INVALID_REFERENCE


def test_team_statistics_counts_results(store, clock, league, add_game) -> None:
    alpha, beta, gamma = league["alpha"], league["beta"], league["gamma"]
    add_game(alpha.id, beta.id, score_a=2, score_b=0, modified_at=datetime(2026, 1, 1))
    add_game(gamma.id, alpha.id, score_a=3, score_b=1, modified_at=datetime(2026, 1, 2))
    add_game(alpha.id, gamma.id, score_a=1, score_b=1, modified_at=datetime(2026, 1, 3))
    add_game(alpha.id, beta.id, modified_at=datetime(2026, 1, 4))
    service = _service(store, clock)

    stats = service.team_statistics(alpha.id).value

    assert (stats.total_games, stats.wins, stats.losses, stats.draws) == (3, 1, 1, 1)
    assert stats.last_five == ("D", "L", "W")


def test_summarize_games_keeps_only_five_most_recent() -> None:
    games = [
        GameRecord(id=index, team_a_id=1, team_b_id=2, score_a=index % 2, score_b=0, modified_at=datetime(2026, 1, index))
        for index in range(1, 8)
    ]

    stats = summarize_games(1, games, Decimal("0"))

    assert stats.total_games == 7
    assert stats.last_five == ("W", "D", "W", "D", "W")


def test_team_statistics_for_unknown_team(store, clock) -> None:
    assert _service(store, clock).team_statistics(404).error is ErrorKind.INVALID_REFERENCE


def test_handle_task_division_standings(store, clock, league, cache_backend) -> None:
    service = _service(store, clock, backend=cache_backend)
    service.rankings.rank_division(league["north"].id)
    assert cache_backend.keys() != []

    outcome = service.handle_task(TASK_UPDATE_DIVISION_STANDINGS, {"division_id": league["north"].id})

    assert outcome.ok
    assert not [key for key in cache_backend.keys() if key.startswith("division_rankings")]


def test_handle_task_rejects_unknown_and_malformed_tasks(store, clock) -> None:
    service = _service(store, clock)
    assert service.handle_task(TASK_UPDATE_TEAM_POINTS, {}).error is ErrorKind.INVALID_REFERENCE
    outcome = service.handle_task("rebuild_everything", {})
    assert outcome.error is ErrorKind.INVALID_REFERENCE
    assert outcome.reason == "Unknown task: rebuild_everything"


def test_clear_caches_drops_everything(store, clock, league, cache_backend) -> None:
    service = _service(store, clock, backend=cache_backend)
    service.standings_display()
    service.standings_listing()
    service.team_statistics(league["alpha"].id)
    assert len(cache_backend) > 0

    service.clear_caches()

    assert cache_backend.keys() == []


def test_game_save_refreshes_rankings_but_not_game_counts(store, clock, league, cache_backend) -> None:
    service = _service(store, clock, backend=cache_backend, defer_recompute=False)
    alpha, beta = league["alpha"], league["beta"]
    north = league["north"]
    assert [entry.team_id for entry in service.rankings.rank_division(north.id).value] == [beta.id, alpha.id]
    assert service.points.count_games(alpha.id).value == 0

    service.record_game(GameRecord(team_a_id=alpha.id, team_b_id=beta.id, score_a=3, score_b=0, points_a="5"))

    ranked = service.rankings.rank_division(north.id).value
    assert [entry.team_id for entry in ranked] == [alpha.id, beta.id]
    assert ranked[0].total_points == Decimal("5")
    assert service.points.count_games(alpha.id).value == 0


def test_refresh_standings_only_drops_rendered_payloads(store, clock, league, cache_backend) -> None:
    service = _service(store, clock, backend=cache_backend)
    service.standings_display()
    service.standings_listing()

    service.refresh_standings()

    keys = cache_backend.keys()
    assert "team_standings_display" not in keys
    assert "standings_api_data" not in keys
    assert "division_rankings" in keys


def test_team_statistics_follow_manual_points_changes(store, clock, league, cache_backend) -> None:
    service = _service(store, clock, backend=cache_backend)
    gamma = league["gamma"]
    assert service.team_statistics(gamma.id).value.total_points == Decimal("0")

    service.update_manual_points(gamma.id, "7")

    assert service.team_statistics(gamma.id).value.total_points == Decimal("7")


def test_points_finer_than_cents_are_rejected(store, clock, league) -> None:
    service = _service(store, clock, defer_recompute=False)
    alpha, beta = league["alpha"], league["beta"]

    game = service.record_game(GameRecord(team_a_id=alpha.id, team_b_id=beta.id, points_a="0.125"))
    manual = service.update_manual_points(alpha.id, "1.005")

    assert game.error is ErrorKind.INVALID_REFERENCE
    assert "at most 2 decimal places" in game.reason
    assert store.get_all_games() == []
    assert manual.error is ErrorKind.INVALID_REFERENCE
    assert store.get_team(alpha.id).manual_points == Decimal("0")
    assert service.update_manual_points(alpha.id, "1.25").value.total_points == Decimal("1.25")
