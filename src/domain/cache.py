"""Memoization layer for expensive standings views.

Three categories of entries are kept, each with its own expiry:

* per-team game-id sets, game counts and statistics (long timer; game
  membership changes rarely),
* division and global ranking tables (short timer),
* rendered standings payloads (short timer).

Every call into the backend is best-effort. Read failures look like a miss so
the engines fall through to recomputation; invalidation failures are logged
and swallowed so a write is never blocked by a cache problem.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from domain.protocol import CacheBackend

logger = logging.getLogger(__name__)

MISSING: Any = object()

STANDINGS_DISPLAY_KEY = "team_standings_display"
STANDINGS_API_KEY = "standings_api_data"
GLOBAL_RANKINGS_KEY = "global_rankings"
ALL_DIVISION_RANKINGS_KEY = "division_rankings"


@dataclass(frozen=True)
class CacheTtls:
    games_ttl_seconds: float = 3600.0
    rankings_ttl_seconds: float = 300.0
    standings_ttl_seconds: float = 300.0


class InMemoryCache:
    """Process-local :class:`CacheBackend` with lazy expiry."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return MISSING
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return MISSING
        return value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        self._entries[key] = (self._clock() + ttl_seconds, value)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


def team_games_key(team_id: int) -> str:
    return f"team_games_{team_id}"


def team_games_count_key(team_id: int) -> str:
    return f"team_games_count_{team_id}"


def team_stats_key(team_id: int) -> str:
    return f"team_stats_{team_id}"


def division_rankings_key(division_id: int) -> str:
    return f"division_rankings_{division_id}"


class StandingsCache:
    """Typed accessors and invalidation rules over an injected backend."""

    def __init__(self, backend: CacheBackend, ttls: CacheTtls = CacheTtls()) -> None:
        self.backend = backend
        self.ttls = ttls
        self._known_team_ids: set[int] = set()
        self._known_division_ids: set[int] = set()

    def get(self, key: str) -> Any:
        try:
            value = self.backend.get(key)
        except Exception:
            logger.warning("cache read failed key=%s; treating as miss", key, exc_info=True)
            return MISSING
        if value is None:
            return MISSING
        return value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        try:
            self.backend.set(key, value, ttl_seconds)
        except Exception:
            logger.warning("cache write failed key=%s", key, exc_info=True)

    def invalidate(self, key: str) -> None:
        try:
            self.backend.delete(key)
        except Exception:
            logger.warning("cache invalidation failed key=%s", key, exc_info=True)

    # Per-team entries (long timer).

    def get_team_game_ids(self, team_id: int) -> Any:
        return self.get(team_games_key(team_id))

    def set_team_game_ids(self, team_id: int, game_ids: Iterable[int]) -> None:
        self._known_team_ids.add(team_id)
        self.set(team_games_key(team_id), tuple(game_ids), self.ttls.games_ttl_seconds)

    def get_team_game_count(self, team_id: int) -> Any:
        return self.get(team_games_count_key(team_id))

    def set_team_game_count(self, team_id: int, count: int) -> None:
        self._known_team_ids.add(team_id)
        self.set(team_games_count_key(team_id), count, self.ttls.games_ttl_seconds)

    def get_team_stats(self, team_id: int) -> Any:
        return self.get(team_stats_key(team_id))

    def set_team_stats(self, team_id: int, stats: Any) -> None:
        self._known_team_ids.add(team_id)
        self.set(team_stats_key(team_id), stats, self.ttls.games_ttl_seconds)

    # Ranking tables (short timer).

    def get_division_rankings(self, division_id: int) -> Any:
        return self.get(division_rankings_key(division_id))

    def set_division_rankings(self, division_id: int, rankings: Any) -> None:
        self._known_division_ids.add(division_id)
        self.set(division_rankings_key(division_id), rankings, self.ttls.rankings_ttl_seconds)

    def get_global_rankings(self) -> Any:
        return self.get(GLOBAL_RANKINGS_KEY)

    def set_global_rankings(self, rankings: Any) -> None:
        self.set(GLOBAL_RANKINGS_KEY, rankings, self.ttls.rankings_ttl_seconds)

    def get_all_division_rankings(self) -> Any:
        return self.get(ALL_DIVISION_RANKINGS_KEY)

    def set_all_division_rankings(self, rankings: Any) -> None:
        self.set(ALL_DIVISION_RANKINGS_KEY, rankings, self.ttls.rankings_ttl_seconds)

    # Rendered payloads (short timer).

    def get_standings_display(self) -> Any:
        return self.get(STANDINGS_DISPLAY_KEY)

    def set_standings_display(self, payload: Any) -> None:
        self.set(STANDINGS_DISPLAY_KEY, payload, self.ttls.standings_ttl_seconds)

    def get_standings_api(self) -> Any:
        return self.get(STANDINGS_API_KEY)

    def set_standings_api(self, payload: Any) -> None:
        self.set(STANDINGS_API_KEY, payload, self.ttls.standings_ttl_seconds)

    # Invalidation rules.

    def invalidate_rendered_standings(self) -> None:
        self.invalidate(STANDINGS_DISPLAY_KEY)
        self.invalidate(STANDINGS_API_KEY)

    def invalidate_rankings(self, division_ids: Iterable[int | None]) -> None:
        """Drop the given divisions' tables plus the global/all-division tables."""
        for division_id in set(division_ids):
            if division_id is not None:
                self.invalidate(division_rankings_key(division_id))
        self.invalidate(ALL_DIVISION_RANKINGS_KEY)
        self.invalidate(GLOBAL_RANKINGS_KEY)

    def on_game_saved(
        self,
        team_ids: Iterable[int],
        division_ids: Iterable[int | None],
    ) -> None:
        """Game created or re-scored. Game counts are left to expire on their own."""
        for team_id in set(team_ids):
            self.invalidate(team_games_key(team_id))
            self.invalidate(team_stats_key(team_id))
        self.invalidate_rankings(division_ids)
        self.invalidate_rendered_standings()

    def on_team_points_changed(
        self,
        division_id: int | None,
        team_ids: Iterable[int] = (),
    ) -> None:
        """A stored total changed; statistics carry the total, so they go too."""
        for team_id in set(team_ids):
            self.invalidate(team_stats_key(team_id))
        self.invalidate_rankings([division_id])
        self.invalidate_rendered_standings()

    def clear_all(
        self,
        team_ids: Iterable[int] = (),
        division_ids: Iterable[int] = (),
    ) -> None:
        """Drop every entry for the given ids and any this cache has written."""
        for team_id in sorted(self._known_team_ids.union(team_ids)):
            self.invalidate(team_games_key(team_id))
            self.invalidate(team_games_count_key(team_id))
            self.invalidate(team_stats_key(team_id))
        self.invalidate_rankings(sorted(self._known_division_ids.union(division_ids)))
        self.invalidate_rendered_standings()
        self._known_team_ids.clear()
        self._known_division_ids.clear()


__all__ = [
    "CacheTtls",
    "InMemoryCache",
    "MISSING",
    "StandingsCache",
    "division_rankings_key",
    "team_games_count_key",
    "team_games_key",
    "team_stats_key",
]
