"""Database repository helpers."""

from repositories.repository import (
    SqlAlchemyRecordStore,
    WRITABLE_TEAM_FIELDS,
    ensure_league_schema,
    slugify,
)

__all__ = [
    "SqlAlchemyRecordStore",
    "WRITABLE_TEAM_FIELDS",
    "ensure_league_schema",
    "slugify",
]
