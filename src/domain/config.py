"""Load league settings from TOML files."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from domain.bonus import BonusPolicy
from domain.cache import CacheTtls
from domain.config_base import BaseLeagueConfig, load_config_file, load_configs


@dataclass(frozen=True)
class PointsSettings:
    decimal_places: int = 1
    auto_recalculate: bool = True
    defer_recompute: bool = True
    recompute_delay_seconds: float = 1.0


@dataclass(frozen=True)
class LeagueConfig(BaseLeagueConfig):
    """Configuration for one league's standings engine."""

    points: PointsSettings
    cache: CacheTtls
    bonus: BonusPolicy

    def as_config_json(self) -> dict[str, Any]:
        return {
            "decimal_places": self.points.decimal_places,
            "auto_recalculate": self.points.auto_recalculate,
            "defer_recompute": self.points.defer_recompute,
            "recompute_delay_seconds": self.points.recompute_delay_seconds,
            "games_ttl_seconds": self.cache.games_ttl_seconds,
            "rankings_ttl_seconds": self.cache.rankings_ttl_seconds,
            "standings_ttl_seconds": self.cache.standings_ttl_seconds,
            "same_tier_bonus": self.bonus.same_tier_bonus,
            "higher_tier_bonus": self.bonus.higher_tier_bonus,
        }


def default_league_config(name: str = "default") -> LeagueConfig:
    return LeagueConfig(
        name=name,
        description=None,
        file_path=Path("<defaults>"),
        points=PointsSettings(),
        cache=CacheTtls(),
        bonus=BonusPolicy(),
    )


def load_league_config(file_path: Path) -> LeagueConfig:
    """Load and validate one league TOML file."""
    return load_config_file(file_path, _parse_league_config)


def load_league_configs(config_dir: Path) -> list[LeagueConfig]:
    """Load and validate all league TOML config files in a directory."""
    return load_configs(
        config_dir,
        _parse_league_config,
        duplicate_name_label="league",
    )


def _parse_league_config(raw: dict[str, Any], file_path: Path) -> LeagueConfig:
    league_raw = raw.get("league", {})
    points_raw = raw.get("points", {})
    cache_raw = raw.get("cache", {})
    bonus_raw = raw.get("bonus", {})

    name = str(league_raw.get("name", "")).strip()
    if not name:
        raise ValueError(f"{file_path}: [league].name is required")

    description_value = league_raw.get("description")
    description = None if description_value is None else str(description_value)

    points = PointsSettings(
        decimal_places=int(points_raw.get("decimal_places", 1)),
        auto_recalculate=bool(points_raw.get("auto_recalculate", True)),
        defer_recompute=bool(points_raw.get("defer_recompute", True)),
        recompute_delay_seconds=float(points_raw.get("recompute_delay_seconds", 1.0)),
    )
    cache = CacheTtls(
        games_ttl_seconds=float(cache_raw.get("games_ttl_seconds", 3600.0)),
        rankings_ttl_seconds=float(cache_raw.get("rankings_ttl_seconds", 300.0)),
        standings_ttl_seconds=float(cache_raw.get("standings_ttl_seconds", 300.0)),
    )
    bonus = BonusPolicy(
        same_tier_bonus=int(bonus_raw.get("same_tier_bonus", 2)),
        higher_tier_bonus=int(bonus_raw.get("higher_tier_bonus", 3)),
    )
    _validate(file_path=file_path, points=points, cache=cache, bonus=bonus)

    return LeagueConfig(
        name=name,
        description=description,
        file_path=file_path,
        points=points,
        cache=cache,
        bonus=bonus,
    )


def _validate(
    *,
    file_path: Path,
    points: PointsSettings,
    cache: CacheTtls,
    bonus: BonusPolicy,
) -> None:
    if points.decimal_places < 0 or points.decimal_places > 4:
        raise ValueError(f"{file_path}: [points].decimal_places must be between 0 and 4")
    if points.recompute_delay_seconds < 0.0:
        raise ValueError(f"{file_path}: [points].recompute_delay_seconds must be >= 0")
    if cache.games_ttl_seconds <= 0.0:
        raise ValueError(f"{file_path}: [cache].games_ttl_seconds must be > 0")
    if cache.rankings_ttl_seconds <= 0.0:
        raise ValueError(f"{file_path}: [cache].rankings_ttl_seconds must be > 0")
    if cache.standings_ttl_seconds <= 0.0:
        raise ValueError(f"{file_path}: [cache].standings_ttl_seconds must be > 0")
    if bonus.same_tier_bonus < 0:
        raise ValueError(f"{file_path}: [bonus].same_tier_bonus must be >= 0")
    if bonus.higher_tier_bonus < 0:
        raise ValueError(f"{file_path}: [bonus].higher_tier_bonus must be >= 0")


__all__ = [
    "LeagueConfig",
    "PointsSettings",
    "default_league_config",
    "load_league_config",
    "load_league_configs",
]
