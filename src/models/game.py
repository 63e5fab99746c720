"""games table model."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class Game(Base):
    """One fixture between two distinct teams (played once both scores are set)."""

    __tablename__ = "games"
    __table_args__ = (
        CheckConstraint("team_a_id <> team_b_id", name="ck_games_distinct_teams"),
        CheckConstraint("score_a IS NULL OR score_a >= 0", name="ck_games_score_a"),
        CheckConstraint("score_b IS NULL OR score_b >= 0", name="ck_games_score_b"),
        Index("idx_games_team_a", "team_a_id"),
        Index("idx_games_team_b", "team_b_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    team_a_id: Mapped[int] = mapped_column(ForeignKey("teams.id"), nullable=False)
    team_b_id: Mapped[int] = mapped_column(ForeignKey("teams.id"), nullable=False)
    score_a: Mapped[int | None] = mapped_column(Integer, nullable=True)
    score_b: Mapped[int | None] = mapped_column(Integer, nullable=True)
    points_a: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        server_default=text("0"),
        default=Decimal("0"),
    )
    points_b: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        server_default=text("0"),
        default=Decimal("0"),
    )
    last_modified_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    modified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )
