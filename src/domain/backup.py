"""Full point recalculation guarded by a versioned snapshot."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from domain.cache import StandingsCache, team_stats_key
from domain.common import TeamRecord, to_decimal
from domain.errors import ErrorKind, Outcome, StoreUnavailable
from domain.points import PointsEngine, utc_now
from domain.protocol import OptionStore, RecordStore

logger = logging.getLogger(__name__)

LATEST_BACKUP_VERSION_OPTION = "latest_points_backup_version"
BACKUP_OPTION_PREFIX = "team_points_backup_"


def backup_option_key(version: int) -> str:
    return f"{BACKUP_OPTION_PREFIX}{version}"


@dataclass(frozen=True)
class RecalculationReport:
    """How far a bulk recalculation got."""

    version: int
    total_teams: int
    updated_team_ids: tuple[int, ...] = ()
    failed_team_id: int | None = None
    error: str | None = None

    @property
    def completed(self) -> bool:
        return self.failed_team_id is None and len(self.updated_team_ids) == self.total_teams


@dataclass(frozen=True)
class RollbackReport:
    version: int
    restored_team_ids: tuple[int, ...] = ()
    skipped_team_ids: tuple[int, ...] = ()


class RecalculationManager:
    """Snapshot, bulk recompute and rollback of team point state."""

    def __init__(
        self,
        store: RecordStore,
        points: PointsEngine,
        options: OptionStore,
        *,
        cache: StandingsCache | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.points = points
        self.options = options
        self.cache = cache
        self.clock = clock

    def _next_version(self, now: datetime) -> int:
        version = int(now.replace(tzinfo=UTC).timestamp())
        latest = self.options.get_option(LATEST_BACKUP_VERSION_OPTION)
        if latest is not None and version <= int(latest):
            version = int(latest) + 1
        return version

    def _take_snapshot(self) -> tuple[int, list[TeamRecord]]:
        teams = list(self.store.get_all_teams())
        now = self.clock()
        timestamp = now.isoformat(sep=" ", timespec="seconds")
        backup: dict[str, dict[str, Any]] = {
            str(team.id): {
                "total_points": str(to_decimal(team.total_points)),
                "manual_points": str(to_decimal(team.manual_points)),
                "timestamp": timestamp,
            }
            for team in teams
        }

        version = self._next_version(now)
        self.options.set_option(backup_option_key(version), backup)
        self.options.set_option(LATEST_BACKUP_VERSION_OPTION, version)
        logger.info("points backup stored version=%s teams=%s", version, len(teams))
        return version, teams

    def snapshot(self) -> Outcome[int]:
        """Store every team's current totals under a new version id."""
        try:
            version, _ = self._take_snapshot()
        except StoreUnavailable as exc:
            logger.warning("points snapshot failed", exc_info=True)
            return Outcome.failure(ErrorKind.STORE_UNAVAILABLE, f"snapshot failed: {exc}")
        return Outcome.success(version)

    def recalculate_all(self) -> Outcome[RecalculationReport]:
        """Snapshot, then recompute every team; stops at the first failing team.

        Teams updated before a failure keep their new totals. The snapshot is
        kept either way so the caller can roll back.
        """
        try:
            version, teams = self._take_snapshot()
        except StoreUnavailable as exc:
            logger.warning("points snapshot failed; recalculation not started", exc_info=True)
            return Outcome.failure(ErrorKind.STORE_UNAVAILABLE, f"snapshot failed: {exc}")

        updated: list[int] = []
        for team in teams:
            result = self.points.compute_total_points(team.id)
            if not result.ok:
                report = RecalculationReport(
                    version=version,
                    total_teams=len(teams),
                    updated_team_ids=tuple(updated),
                    failed_team_id=team.id,
                    error=result.reason,
                )
                logger.warning(
                    "recalculation stopped version=%s updated=%s/%s failed_team_id=%s",
                    version,
                    len(updated),
                    len(teams),
                    team.id,
                )
                self._invalidate(teams)
                return Outcome.failure(
                    ErrorKind.PARTIAL_RECALCULATION_FAILURE,
                    f"failed to update standings for team {team.id}: {result.reason}",
                    value=report,
                )
            updated.append(team.id)

        self._invalidate(teams)
        return Outcome.success(
            RecalculationReport(
                version=version,
                total_teams=len(teams),
                updated_team_ids=tuple(updated),
            )
        )

    def rollback(self, version: int | None = None) -> Outcome[RollbackReport]:
        """Restore total and manual points from a snapshot (latest if not given)."""
        try:
            resolved = version
            if resolved is None:
                resolved = self.options.get_option(LATEST_BACKUP_VERSION_OPTION)
            if resolved is None:
                return Outcome.failure(ErrorKind.BACKUP_NOT_FOUND, "No backup version found")
            resolved = int(resolved)

            backup = self.options.get_option(backup_option_key(resolved))
            if not backup:
                return Outcome.failure(ErrorKind.BACKUP_NOT_FOUND, f"Backup {resolved} not found")
        except StoreUnavailable as exc:
            logger.warning("backup lookup failed version=%s", version, exc_info=True)
            return Outcome.failure(ErrorKind.STORE_UNAVAILABLE, f"backup lookup failed: {exc}")

        restored: list[int] = []
        skipped: list[int] = []
        restored_teams: list[TeamRecord] = []
        try:
            for raw_team_id, entry in sorted(backup.items(), key=lambda item: int(item[0])):
                team_id = int(raw_team_id)
                team = self.store.get_team(team_id)
                if team is None:
                    skipped.append(team_id)
                    continue
                self.store.update_team_field(team_id, "total_points", to_decimal(entry["total_points"]))
                self.store.update_team_field(team_id, "manual_points", to_decimal(entry["manual_points"]))
                restored.append(team_id)
                restored_teams.append(team)
        except StoreUnavailable as exc:
            logger.warning("rollback interrupted version=%s restored=%s", resolved, len(restored), exc_info=True)
            self._invalidate(restored_teams)
            return Outcome.failure(
                ErrorKind.STORE_UNAVAILABLE,
                f"rollback of version {resolved} interrupted: {exc}",
                value=RollbackReport(resolved, tuple(restored), tuple(skipped)),
            )

        self._invalidate(restored_teams)
        logger.info("points backup restored version=%s teams=%s", resolved, len(restored))
        return Outcome.success(RollbackReport(resolved, tuple(restored), tuple(skipped)))

    def _invalidate(self, teams: list[TeamRecord]) -> None:
        if self.cache is None:
            return
        for team in teams:
            self.cache.invalidate(team_stats_key(team.id))
        self.cache.invalidate_rankings(team.division_id for team in teams)
        self.cache.invalidate_rendered_standings()


__all__ = [
    "BACKUP_OPTION_PREFIX",
    "LATEST_BACKUP_VERSION_OPTION",
    "RecalculationManager",
    "RecalculationReport",
    "RollbackReport",
    "backup_option_key",
]
