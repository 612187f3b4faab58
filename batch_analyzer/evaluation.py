"""
Evaluation Model

One engine-reported line at one search depth, plus the single numeric
projection ("normalized value") used for every comparison between lines.

Scores are always from the perspective of the side to move:
- centipawn scores are used as-is
- mate scores count plies to mate, positive when the side to move mates
- a mate score of 0 means the side to move has already been checkmated
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from .exceptions import InvalidEvaluationError


# Mate scores are plies-to-mate and must stay below this bound.
MATE_PLY_BOUND = 100

# Weight of one "ply closer to mate"; dominates every centipawn score.
MATE_WEIGHT = 1_000_000

# Normalized value of a position where the side to move is already mated.
CHECKMATED_VALUE = -100_000_000

# Any normalized value at least this large in magnitude is a mate score.
MATE_VALUE_THRESHOLD = 900_000


def normalized_value(raw_score: int, is_mate: bool) -> int:
    """Project a (score, is_mate) pair onto one totally ordered scale."""
    if not is_mate:
        return raw_score
    if raw_score == 0:
        return CHECKMATED_VALUE
    sign = 1 if raw_score > 0 else -1
    return MATE_WEIGHT * sign * (MATE_PLY_BOUND - abs(raw_score))


def is_mate_value(value: int) -> bool:
    """True if a normalized value came from a mate score."""
    return abs(value) >= MATE_VALUE_THRESHOLD


@dataclass(frozen=True)
class Evaluation:
    """A single engine line at a single depth."""

    raw_score: int
    is_mate: bool
    depth: int
    # First move of the line in SAN; None when the position has no legal move
    move: Optional[str] = None
    # Continuation after `move`, in SAN (possibly truncated)
    pv: tuple[str, ...] = field(default_factory=tuple)
    # Engine line index, 1 = the engine's first (best) line
    rank: int = 1

    def __post_init__(self):
        if self.is_mate and abs(self.raw_score) >= MATE_PLY_BOUND:
            raise InvalidEvaluationError(
                f"mate score {self.raw_score} out of range (|score| < {MATE_PLY_BOUND})"
            )

    @property
    def normalized_value(self) -> int:
        return normalized_value(self.raw_score, self.is_mate)

    @property
    def strength_key(self) -> tuple[int, int]:
        """Sort key: higher normalized value first, then lower line index."""
        return (self.normalized_value, -self.rank)

    @property
    def is_terminal(self) -> bool:
        """True for the synthesized checkmate/stalemate evaluation."""
        return self.move is None

    def describe(self) -> str:
        if not self.is_mate:
            return f"{self.raw_score / 100.0:.2f}"
        if self.raw_score == 0:
            return "lost"
        if self.raw_score > 0:
            return f"win in {self.raw_score}"
        return f"lose in {-self.raw_score}"

    def __str__(self) -> str:
        return f"{self.depth}-ply: {self.move} = {self.describe()}; pv = {' '.join(self.pv)}"

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "depth": self.depth,
            "rank": self.rank,
            "raw_score": self.raw_score,
            "is_mate": self.is_mate,
            "move": self.move,
            "pv": list(self.pv),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Evaluation:
        return cls(
            raw_score=int(data["raw_score"]),
            is_mate=bool(data["is_mate"]),
            depth=int(data["depth"]),
            move=data.get("move"),
            pv=tuple(data.get("pv") or ()),
            rank=int(data.get("rank", 1)),
        )


def strongest(evaluations: Iterable[Evaluation]) -> Evaluation:
    """Return the best line for the side to move (ties: lowest line index)."""
    return max(evaluations, key=lambda e: e.strength_key)


def ranked(evaluations: Iterable[Evaluation]) -> list[Evaluation]:
    """Lines ordered strongest first."""
    return sorted(evaluations, key=lambda e: e.strength_key, reverse=True)
