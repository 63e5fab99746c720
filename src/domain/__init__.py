"""Standings domain modules."""

from domain.common import DivisionRecord, GameRecord, PointsBreakdown, TeamRecord
from domain.errors import ErrorKind, Outcome, StoreUnavailable

__all__ = [
    "DivisionRecord",
    "ErrorKind",
    "GameRecord",
    "Outcome",
    "PointsBreakdown",
    "StoreUnavailable",
    "TeamRecord",
]
