"""Shared fixtures: an in-memory SQLite record store, clocks and a flaky store wrapper."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

import pytest

from db import create_db_engine, create_session_factory
from domain.cache import InMemoryCache
from domain.common import GameRecord
from domain.errors import StoreUnavailable
from repositories.repository import SqlAlchemyRecordStore, ensure_league_schema


class ManualTimer:
    """Monotonic-style clock for cache expiry tests."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FixedClock:
    """Datetime clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FlakyStore:
    """Delegates to a real store, raising ``StoreUnavailable`` for chosen calls.

    ``fail(method, team_ids=...)`` makes ``method`` fail, optionally only when
    its first positional argument is one of ``team_ids``.
    """

    def __init__(self, inner: SqlAlchemyRecordStore) -> None:
        self.inner = inner
        self._failures: dict[str, set[Any] | None] = {}

    def fail(self, method: str, *, team_ids: set[int] | None = None) -> None:
        self._failures[method] = team_ids

    def heal(self) -> None:
        self._failures.clear()

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self.inner, name)
        if not callable(attr):
            return attr

        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if name in self._failures:
                targets = self._failures[name]
                if targets is None or (args and args[0] in targets):
                    raise StoreUnavailable(f"{name} unavailable")
            return attr(*args, **kwargs)

        return wrapper


@pytest.fixture
def store() -> SqlAlchemyRecordStore:
    engine = create_db_engine("sqlite+pysqlite:///:memory:")
    ensure_league_schema(engine)
    return SqlAlchemyRecordStore(create_session_factory(engine))


@pytest.fixture
def flaky_store(store: SqlAlchemyRecordStore) -> FlakyStore:
    return FlakyStore(store)


@pytest.fixture
def timer() -> ManualTimer:
    return ManualTimer()


@pytest.fixture
def cache_backend(timer: ManualTimer) -> InMemoryCache:
    return InMemoryCache(clock=timer)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 1, 1, 12, 0, 0))


@pytest.fixture
def add_game(store: SqlAlchemyRecordStore) -> Callable[..., GameRecord]:
    """Insert a game straight into the store, bypassing the league service."""

    def _add(
        team_a_id: int,
        team_b_id: int,
        *,
        score_a: int | None = None,
        score_b: int | None = None,
        points_a: str = "0",
        points_b: str = "0",
        game_id: int | None = None,
        modified_at: datetime | None = None,
    ) -> GameRecord:
        return store.save_game(
            GameRecord(
                id=game_id,
                team_a_id=team_a_id,
                team_b_id=team_b_id,
                score_a=score_a,
                score_b=score_b,
                points_a=Decimal(points_a),
                points_b=Decimal(points_b),
                modified_at=modified_at,
            )
        )

    return _add
