"""SQLAlchemy-backed record store for teams, games, divisions and options."""

from __future__ import annotations

import re
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from domain.common import DivisionRecord, GameRecord, TeamRecord, to_decimal
from domain.errors import StoreUnavailable
from models import Base, Division, Game, LeagueOption, Team

WRITABLE_TEAM_FIELDS = frozenset({"manual_points", "total_points", "points_update_log"})


def _now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")
    return slug or "division"


def ensure_league_schema(engine: Engine) -> None:
    """Create league tables and their indexes if they do not exist."""
    Base.metadata.create_all(
        bind=engine,
        tables=[
            Division.__table__,
            Team.__table__,
            Game.__table__,
            LeagueOption.__table__,
        ],
    )


def _division_to_record(row: Division) -> DivisionRecord:
    return DivisionRecord(id=row.id, name=row.name, slug=row.slug, rank=row.rank)


def _team_to_record(row: Team) -> TeamRecord:
    return TeamRecord(
        id=row.id,
        name=row.name,
        division_id=row.division_id,
        manual_points=to_decimal(row.manual_points),
        total_points=to_decimal(row.total_points),
        logo_url=row.logo_url,
        points_update_log=row.points_update_log,
    )


def _game_to_record(row: Game) -> GameRecord:
    return GameRecord(
        id=row.id,
        team_a_id=row.team_a_id,
        team_b_id=row.team_b_id,
        score_a=row.score_a,
        score_b=row.score_b,
        points_a=to_decimal(row.points_a),
        points_b=to_decimal(row.points_b),
        modified_at=row.modified_at,
        last_modified_by=row.last_modified_by,
    )


class SqlAlchemyRecordStore:
    """Implements ``domain.protocol.RecordStore``; driver errors become ``StoreUnavailable``."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self.session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            raise StoreUnavailable(str(exc)) from exc

    # Teams

    def get_team(self, team_id: int) -> TeamRecord | None:
        with self._session() as session:
            row = session.get(Team, team_id)
            return None if row is None else _team_to_record(row)

    def get_teams_by_division(self, division_id: int) -> list[TeamRecord]:
        with self._session() as session:
            rows = session.scalars(
                select(Team).where(Team.division_id == division_id).order_by(Team.id)
            ).all()
            return [_team_to_record(row) for row in rows]

    def get_all_teams(self) -> list[TeamRecord]:
        with self._session() as session:
            rows = session.scalars(select(Team).order_by(Team.id)).all()
            return [_team_to_record(row) for row in rows]

    def update_team_field(self, team_id: int, field: str, value: Any) -> None:
        if field not in WRITABLE_TEAM_FIELDS:
            raise ValueError(f"Team field {field!r} is not writable; expected one of {sorted(WRITABLE_TEAM_FIELDS)}")
        if field != "points_update_log":
            value = to_decimal(value)

        with self._session() as session, session.begin():
            row = session.get(Team, team_id)
            if row is None:
                raise KeyError(f"team {team_id} does not exist")
            setattr(row, field, value)
            row.updated_at = _now()

    def add_team(
        self,
        name: str,
        *,
        division_id: int | None = None,
        manual_points: Decimal | int | str = 0,
        logo_url: str | None = None,
    ) -> TeamRecord:
        with self._session() as session, session.begin():
            row = Team(
                name=name,
                division_id=division_id,
                manual_points=to_decimal(manual_points),
                total_points=Decimal("0"),
                logo_url=logo_url,
            )
            session.add(row)
            session.flush()
            return _team_to_record(row)

    def assign_division(self, team_id: int, division_id: int | None) -> None:
        with self._session() as session, session.begin():
            row = session.get(Team, team_id)
            if row is None:
                raise KeyError(f"team {team_id} does not exist")
            row.division_id = division_id
            row.updated_at = _now()

    # Games

    def get_game(self, game_id: int) -> GameRecord | None:
        with self._session() as session:
            row = session.get(Game, game_id)
            return None if row is None else _game_to_record(row)

    def get_games_for_team(self, team_id: int) -> list[GameRecord]:
        """Games where the team occupies either slot."""
        with self._session() as session:
            rows = session.scalars(
                select(Game)
                .where(or_(Game.team_a_id == team_id, Game.team_b_id == team_id))
                .order_by(Game.modified_at, Game.id)
            ).all()
            return [_game_to_record(row) for row in rows]

    def get_all_games(self) -> list[GameRecord]:
        with self._session() as session:
            rows = session.scalars(select(Game).order_by(Game.modified_at, Game.id)).all()
            return [_game_to_record(row) for row in rows]

    def save_game(self, game: GameRecord) -> GameRecord:
        """Insert a new game or overwrite the stored fields of an existing one."""
        with self._session() as session, session.begin():
            row = session.get(Game, game.id) if game.id is not None else None
            if row is None:
                row = Game(id=game.id)
                session.add(row)
            row.team_a_id = game.team_a_id
            row.team_b_id = game.team_b_id
            row.score_a = game.score_a
            row.score_b = game.score_b
            row.points_a = to_decimal(game.points_a)
            row.points_b = to_decimal(game.points_b)
            row.modified_at = game.modified_at or _now()
            row.last_modified_by = game.last_modified_by
            session.flush()
            return _game_to_record(row)

    # Divisions

    def get_division(self, division_id: int) -> DivisionRecord | None:
        with self._session() as session:
            row = session.get(Division, division_id)
            return None if row is None else _division_to_record(row)

    def get_all_divisions(self) -> list[DivisionRecord]:
        with self._session() as session:
            rows = session.scalars(select(Division).order_by(Division.name, Division.id)).all()
            return [_division_to_record(row) for row in rows]

    def add_division(self, name: str, *, slug: str | None = None, rank: int | None = None) -> DivisionRecord:
        with self._session() as session, session.begin():
            row = Division(name=name, slug=slug or slugify(name), rank=rank)
            session.add(row)
            session.flush()
            return _division_to_record(row)

    def set_division_rank(self, division_id: int, rank: int | None) -> None:
        with self._session() as session, session.begin():
            row = session.get(Division, division_id)
            if row is None:
                raise KeyError(f"division {division_id} does not exist")
            row.rank = rank
            row.updated_at = _now()

    # Options

    def get_option(self, key: str) -> Any:
        with self._session() as session:
            row = session.get(LeagueOption, key)
            return None if row is None else row.value

    def set_option(self, key: str, value: Any) -> None:
        with self._session() as session, session.begin():
            row = session.get(LeagueOption, key)
            if row is None:
                session.add(LeagueOption(key=key, value=value, updated_at=_now()))
            else:
                row.value = value
                row.updated_at = _now()


__all__ = [
    "SqlAlchemyRecordStore",
    "WRITABLE_TEAM_FIELDS",
    "ensure_league_schema",
    "slugify",
]


