"""Contracts for the collaborators the standings engine consumes."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from domain.common import DivisionRecord, GameRecord, TeamRecord


@runtime_checkable
class OptionStore(Protocol):
    """Key-value configuration store (backup snapshots live here)."""

    def get_option(self, key: str) -> Any: ...

    def set_option(self, key: str, value: Any) -> None: ...


@runtime_checkable
class RecordStore(OptionStore, Protocol):
    """Read/write contract over team, game and division records.

    Every method may raise ``domain.errors.StoreUnavailable``.
    """

    def get_team(self, team_id: int) -> TeamRecord | None: ...

    def get_teams_by_division(self, division_id: int) -> Sequence[TeamRecord]: ...

    def get_all_teams(self) -> Sequence[TeamRecord]: ...

    def get_game(self, game_id: int) -> GameRecord | None: ...

    def get_games_for_team(self, team_id: int) -> Sequence[GameRecord]: ...

    def get_all_games(self) -> Sequence[GameRecord]: ...

    def save_game(self, game: GameRecord) -> GameRecord: ...

    def update_team_field(self, team_id: int, field: str, value: Any) -> None: ...

    def get_division(self, division_id: int) -> DivisionRecord | None: ...

    def get_all_divisions(self) -> Sequence[DivisionRecord]: ...


@runtime_checkable
class CacheBackend(Protocol):
    """Best-effort key-value cache with per-entry expiry."""

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any, ttl_seconds: float) -> None: ...

    def delete(self, key: str) -> None: ...


@runtime_checkable
class TaskRunner(Protocol):
    """Fire-and-forget deferred task scheduler with at-least-once delivery."""

    def schedule(self, delay_seconds: float, task_name: str, args: dict[str, Any]) -> None: ...


__all__ = ["CacheBackend", "OptionStore", "RecordStore", "TaskRunner"]
