"""Deterministic mapping from an ordinal rank to a score band."""

from __future__ import annotations

from dataclasses import dataclass

from rankscore.grading.base import MAX_SCORE


@dataclass(frozen=True)
class MappedScore:
    numerator: int
    max_score: int
    percentile: int

    @property
    def score(self) -> str:
        return f"{self.numerator}/{self.max_score}"


def _round_half_up_ratio(rank: int, total: int, scale: int) -> int:
    # floor(rank / total * scale + 0.5) without floating point error
    return (2 * rank * scale + total) // (2 * total)


def map_rank_to_score(rank: int, total: int, max_score: int = MAX_SCORE) -> MappedScore:
    if total <= 0:
        raise ValueError(f"total must be positive, got {total}")
    if not 1 <= rank <= total:
        raise ValueError(f"rank must be within [1, {total}], got {rank}")
    return MappedScore(
        numerator=_round_half_up_ratio(rank, total, max_score),
        max_score=max_score,
        percentile=_round_half_up_ratio(rank, total, 100),
    )
