"""teams table model."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import ForeignKey, Index, Numeric, String, text
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, JsonDocument
from models.mixins import TimestampMixin


class Team(TimestampMixin, Base):
    """League team with operator-entered and derived point totals."""

    __tablename__ = "teams"
    __table_args__ = (
        Index("idx_teams_division", "division_id"),
        Index("idx_teams_total_points", "total_points"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    division_id: Mapped[int | None] = mapped_column(ForeignKey("divisions.id"), nullable=True)
    manual_points: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        server_default=text("0"),
        default=Decimal("0"),
    )
    total_points: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        server_default=text("0"),
        default=Decimal("0"),
    )
    points_update_log: Mapped[dict[str, Any] | None] = mapped_column(JsonDocument, nullable=True)
    logo_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
