"""ORM models."""

from models.base import Base
from models.division import Division
from models.game import Game
from models.option import LeagueOption
from models.team import Team

__all__ = [
    "Base",
    "Division",
    "Game",
    "LeagueOption",
    "Team",
]
