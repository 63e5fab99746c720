"""Bonus-point preview from relative division rank."""

from __future__ import annotations

from dataclasses import dataclass

from domain.common import DEFAULT_DIVISION_RANK


@dataclass(frozen=True)
class BonusPolicy:
    same_tier_bonus: int = 2
    higher_tier_bonus: int = 3


@dataclass(frozen=True)
class BonusPreview:
    """Suggested bonus per side plus the division context it was derived from."""

    bonus_a: int
    bonus_b: int
    division_rank_a: int | None = None
    division_rank_b: int | None = None
    division_name_a: str | None = None
    division_name_b: str | None = None

    def as_tuple(self) -> tuple[int, int]:
        return self.bonus_a, self.bonus_b


def winner_bonus(winner_rank: int, loser_rank: int, policy: BonusPolicy = BonusPolicy()) -> int:
    """Bonus for the winning side given both division ranks (opaque ordinals)."""
    if winner_rank == loser_rank:
        return policy.same_tier_bonus
    if winner_rank > loser_rank:
        return policy.higher_tier_bonus
    return 0


def compute_bonus(
    team_a_rank: int | None,
    team_b_rank: int | None,
    score_a: int,
    score_b: int,
    policy: BonusPolicy = BonusPolicy(),
) -> tuple[int, int]:
    """Return ``(bonus_a, bonus_b)``; at most one side is non-zero, ties give nothing."""
    rank_a = DEFAULT_DIVISION_RANK if team_a_rank is None else int(team_a_rank)
    rank_b = DEFAULT_DIVISION_RANK if team_b_rank is None else int(team_b_rank)

    if score_a > score_b:
        return winner_bonus(rank_a, rank_b, policy), 0
    if score_b > score_a:
        return 0, winner_bonus(rank_b, rank_a, policy)
    return 0, 0


__all__ = ["BonusPolicy", "BonusPreview", "compute_bonus", "winner_bonus"]
