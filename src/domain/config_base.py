"""Shared config-loading utilities for league configs."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, TypeVar
import tomllib


@dataclass(frozen=True)
class BaseLeagueConfig:
    """Minimal metadata shared across league config files."""

    name: str
    description: str | None
    file_path: Path

    def as_config_json(self) -> dict[str, Any]:
        raise NotImplementedError


T = TypeVar("T", bound=BaseLeagueConfig)


def load_config_file(
    file_path: Path,
    parser: Callable[[dict[str, Any], Path], T],
) -> T:
    """Parse one TOML file with the given parser."""
    if not file_path.is_file():
        raise FileNotFoundError(f"Config file not found: {file_path}")
    with file_path.open("rb") as file:
        raw = tomllib.load(file)
    return parser(raw, file_path)


def load_configs(
    config_dir: Path,
    parser: Callable[[dict[str, Any], Path], T],
    *,
    duplicate_name_label: str = "league",
) -> list[T]:
    """Load all TOML files in a directory with duplicate-name validation."""
    if not config_dir.exists():
        raise FileNotFoundError(f"Config directory not found: {config_dir}")
    if not config_dir.is_dir():
        raise NotADirectoryError(f"Config path is not a directory: {config_dir}")

    config_files = sorted(config_dir.glob("*.toml"))
    if not config_files:
        raise ValueError(f"No .toml config files found in: {config_dir}")

    configs = [load_config_file(file_path, parser) for file_path in config_files]

    names = [config.name for config in configs]
    if len(names) != len(set(names)):
        raise ValueError(
            f"Duplicate {duplicate_name_label} config names found in {config_dir}: {names}"
        )

    return configs


__all__ = ["BaseLeagueConfig", "load_config_file", "load_configs"]
