"""
Move Quality Classifier

Judges a played move by comparing the strongest line before the move with
the strongest line after it. The line after the move is reported from the
opponent's side, so it is negated before comparing.

Mate scores need separate handling: a mate is a mate, so a large change in
mate distance is not as bad as a large centipawn loss, and several mate /
non-mate transitions are artifacts of the depth limit rather than errors.
Each (before, after) pair is first tagged with a Transition, and every
Transition has exactly one rule.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .evaluation import Evaluation
from .store import Game, Position

# Centipawn-loss thresholds for moves with no mate on either side
BLUNDER_THRESHOLD = -700
MISTAKE_THRESHOLD = -450
INACCURACY_THRESHOLD = -160
MEH_THRESHOLD = -90

MEGABLUNDER_DISPLAY = "?!?!?!"


class Severity(str, Enum):
    """How bad a played move was, mildest first."""

    NONE = "none"
    MEH = "meh"
    INACCURACY = "inaccuracy"
    MISTAKE = "mistake"
    BLUNDER = "blunder"
    MEGABLUNDER = "megablunder"


class Transition(str, Enum):
    """Shape of the evaluation change across one move, from the mover's side."""

    # No mate score before or after
    NORMAL = "normal"
    # The side that is ahead changed; impossible under optimal play
    SIDE_CHANGED = "side_changed"
    # The same side still has a forced mate
    MATE_KEPT = "mate_kept"
    # Mover was getting mated and now is merely losing (depth-limit artifact)
    LOSING_MATE_ESCAPED = "losing_mate_escaped"
    # Mover had a forced mate and now is merely winning
    WINNING_MATE_LOST = "winning_mate_lost"
    # Opponent now has a forced mate
    MATE_CONCEDED = "mate_conceded"
    # Mover now has a forced mate
    MATE_GAINED = "mate_gained"


@dataclass(frozen=True)
class MoveVerdict:
    severity: Severity
    display: str
    transition: Transition
    # Change in normalized value from the mover's side (<= 0 is a loss)
    diff: int


@dataclass(frozen=True)
class MoveReview:
    """Everything the report shows about one played move."""

    index: int
    position: Position
    before: Evaluation
    after: Evaluation
    verdict: Optional[MoveVerdict]
    rank: Optional[int]


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


def classify_transition(before: Evaluation, after: Evaluation) -> Transition:
    """Tag a (before, after) pair; `after` is as reported for the opponent."""
    # Both values have the same sign when the side that is ahead changed,
    # because `after` is from the opponent's point of view.
    side_changed = _sign(before.normalized_value) == _sign(after.normalized_value)

    match (before.is_mate, after.is_mate, side_changed):
        case (False, False, _):
            return Transition.NORMAL
        case (_, _, True):
            return Transition.SIDE_CHANGED
        case (True, True, False):
            return Transition.MATE_KEPT
        case (True, False, False):
            if before.raw_score < 0:
                return Transition.LOSING_MATE_ESCAPED
            return Transition.WINNING_MATE_LOST
        case _:
            if after.raw_score > 0:
                return Transition.MATE_CONCEDED
            return Transition.MATE_GAINED


def _centipawn_severity(diff: int) -> Severity:
    if diff < BLUNDER_THRESHOLD:
        return Severity.BLUNDER
    if diff < MISTAKE_THRESHOLD:
        return Severity.MISTAKE
    if diff < INACCURACY_THRESHOLD:
        return Severity.INACCURACY
    if diff < MEH_THRESHOLD:
        return Severity.MEH
    return Severity.NONE


def classify_move(before: Evaluation, after: Optional[Evaluation]) -> Optional[MoveVerdict]:
    """Judge the move between two positions.

    `before` is the strongest line of the position the move was played from;
    `after` is the strongest line of the resulting position, as reported for
    the opponent. Returns None when the move ended the game.
    """
    if after is None or after.is_terminal:
        return None

    diff = -after.normalized_value - before.normalized_value
    transition = classify_transition(before, after)

    match transition:
        case Transition.NORMAL:
            return MoveVerdict(_centipawn_severity(diff), f"{diff / 100.0:.1f}", transition, diff)

        case Transition.SIDE_CHANGED:
            return MoveVerdict(Severity.MEGABLUNDER, MEGABLUNDER_DISPLAY, transition, diff)

        case Transition.MATE_KEPT:
            # Optimal play shortens a mate by about one unit per move
            change = (-after.raw_score - before.raw_score) * _sign(before.raw_score)
            shortest = min(abs(before.raw_score), abs(after.raw_score))
            if abs(change) > 2 * shortest:
                severity = Severity.MISTAKE
            elif abs(change) > shortest:
                severity = Severity.INACCURACY
            else:
                severity = Severity.NONE
            display = f"({change:+d})".replace("-", "−") if change else "(0)"
            return MoveVerdict(severity, display, transition, diff)

        case Transition.LOSING_MATE_ESCAPED:
            return MoveVerdict(Severity.NONE, "(−mate)", transition, diff)

        case Transition.WINNING_MATE_LOST:
            advantage_left = -after.raw_score
            if before.raw_score <= 2:
                severity = Severity.BLUNDER
            elif before.raw_score <= 5:
                severity = Severity.MISTAKE
            elif before.raw_score <= 10 or advantage_left < 20:
                severity = Severity.INACCURACY
            else:
                severity = Severity.NONE
            return MoveVerdict(severity, "−mate", transition, diff)

        case Transition.MATE_CONCEDED:
            # How lost the mover already was decides how much this matters
            already_lost = before.raw_score
            mate_in = after.raw_score
            if already_lost > -700 or (already_lost > -1200 and mate_in <= 4):
                return MoveVerdict(Severity.MEGABLUNDER, MEGABLUNDER_DISPLAY, transition, diff)
            if already_lost > -1400:
                severity = Severity.BLUNDER
            elif already_lost > -2000 or mate_in <= 10:
                severity = Severity.MISTAKE
            else:
                severity = Severity.NONE
            return MoveVerdict(severity, "+mate", transition, diff)

        case Transition.MATE_GAINED:
            return MoveVerdict(Severity.NONE, "(+mate)", transition, diff)

    raise ValueError(f"unhandled transition {transition}")


# ═══════════════════════════════════════════════════════════
# Move rank
# ═══════════════════════════════════════════════════════════


def move_rank(position: Position, depth: int) -> Optional[int]:
    """1-based rank of the played move among the engine's lines at `depth`."""
    if position.move_taken is None:
        return None
    for rank, line in enumerate(position.evaluations_at(depth), start=1):
        if line.move == position.move_taken:
            return rank
    return None


def rank_label(rank: Optional[int]) -> str:
    if rank is None:
        return "?"
    return {1: "1st", 2: "2nd", 3: "3rd"}.get(rank, f"{rank}th")


def review_game(game: Game, depth: int) -> list[MoveReview]:
    """Verdicts for every played move of `game`, using lines at `depth`."""
    best = [p.best_at(depth) for p in game.positions]
    if any(e is None for e in best):
        raise ValueError(f"game {game.hash} is not fully analysed at depth {depth}")

    reviews = []
    for index, position in enumerate(game.positions[:-1]):
        if position.move_taken is None:
            break
        before, after = best[index], best[index + 1]
        reviews.append(
            MoveReview(
                index=index,
                position=position,
                before=before,
                after=after,
                verdict=classify_move(before, after),
                rank=move_rank(position, depth),
            )
        )
    return reviews
