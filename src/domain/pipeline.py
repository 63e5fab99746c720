"""Wire a league service to a database and a config directory."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy.orm import Session, sessionmaker

from domain.config import LeagueConfig, default_league_config, load_league_configs
from domain.league import LeagueService
from domain.protocol import CacheBackend, TaskRunner
from repositories.repository import SqlAlchemyRecordStore

ROOT_DIR = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_DIR = ROOT_DIR / "configs" / "league"


def select_league_config(
    config_dir: Path | None = None,
    league_name: str | None = None,
) -> LeagueConfig:
    """Pick one config by ``[league].name``; the first file wins when no name is given."""
    target_dir = config_dir or DEFAULT_CONFIG_DIR
    if config_dir is None and not target_dir.exists():
        return default_league_config()

    configs = load_league_configs(target_dir)
    if league_name is None:
        return configs[0]
    for config in configs:
        if config.name == league_name:
            return config
    available = ", ".join(config.name for config in configs)
    raise KeyError(f"No league config named '{league_name}' in {target_dir}. Available: {available}")


def create_league_service(
    *,
    session_factory: sessionmaker[Session],
    config: LeagueConfig | None = None,
    cache_backend: CacheBackend | None = None,
    task_runner: TaskRunner | None = None,
) -> tuple[LeagueService, SqlAlchemyRecordStore]:
    """Build a service over the SQLAlchemy store; the store doubles as option store."""
    store = SqlAlchemyRecordStore(session_factory)
    service = LeagueService(
        store,
        config=config,
        cache_backend=cache_backend,
        options=store,
        task_runner=task_runner,
    )
    return service, store


__all__ = ["DEFAULT_CONFIG_DIR", "create_league_service", "select_league_config"]
