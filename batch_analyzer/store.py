"""
Analysis Store

Durable collection of games keyed by content hash. Each game holds its
positions in game order; each position holds every engine line computed for
it, tagged by depth and line rank.

The store is one JSON document. Saves go to a temporary file next to the
target which is then renamed over it, so a killed process leaves either the
previous or the new store on disk, never a partial one.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator, Optional

from .evaluation import Evaluation, ranked, strongest
from .exceptions import DuplicateDepthError, StoreError

STORE_FORMAT_VERSION = 1

# Games without a parsable start time sort first
_UNKNOWN_START = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class Position:
    """One position of a game, with its evaluation history across depths."""

    fen: str
    # Move actually played from here (SAN); None for the game's final position
    move_taken: Optional[str]
    is_black_move: bool
    full_move_number: int
    evaluations: list[Evaluation] = field(default_factory=list)

    def depths(self) -> set[int]:
        return {e.depth for e in self.evaluations}

    def has_depth(self, depth: int) -> bool:
        return any(e.depth == depth for e in self.evaluations)

    def evaluations_at(self, depth: int) -> list[Evaluation]:
        """All lines at `depth`, strongest first."""
        return ranked(e for e in self.evaluations if e.depth == depth)

    def best_at(self, depth: int) -> Optional[Evaluation]:
        """The strongest line at `depth`, or None if not analysed that deep."""
        lines = [e for e in self.evaluations if e.depth == depth]
        return strongest(lines) if lines else None

    def add_evaluations(self, depth: int, evaluations: Iterable[Evaluation]) -> None:
        """Append the lines of one search. A depth is only ever added once."""
        new = list(evaluations)
        if self.has_depth(depth):
            raise DuplicateDepthError(f"position {self.fen!r} already has depth {depth}")
        if any(e.depth != depth for e in new):
            raise ValueError(f"evaluations must all be at depth {depth}")
        self.evaluations.extend(new)

    def to_dict(self) -> dict:
        return {
            "fen": self.fen,
            "move_taken": self.move_taken,
            "is_black_move": self.is_black_move,
            "full_move_number": self.full_move_number,
            "evaluations": [e.to_dict() for e in self.evaluations],
        }

    @classmethod
    def from_dict(cls, data: dict) -> Position:
        return cls(
            fen=data["fen"],
            move_taken=data.get("move_taken"),
            is_black_move=bool(data["is_black_move"]),
            full_move_number=int(data["full_move_number"]),
            evaluations=[Evaluation.from_dict(e) for e in data.get("evaluations", [])],
        )


@dataclass
class Game:
    """A recorded game: identity hash, PGN tags and its positions in order."""

    hash: str
    positions: list[Position] = field(default_factory=list)
    props: dict[str, str] = field(default_factory=dict)

    @property
    def started_at(self) -> Optional[datetime]:
        """UTC start time from the UTCDate/UTCTime tags (chess.com style)."""
        date = self.props.get("UTCDate") or self.props.get("Date")
        if not date or "?" in date:
            return None
        time_str = self.props.get("UTCTime") or "00:00:00"
        try:
            dt = datetime.fromisoformat(f"{date.replace('.', '-')}T{time_str}")
        except ValueError:
            return None
        return dt.replace(tzinfo=timezone.utc)

    @property
    def sort_key(self) -> tuple[datetime, str]:
        return (self.started_at or _UNKNOWN_START, self.hash)

    @property
    def time_control(self) -> Optional[str]:
        return self.props.get("TimeControl")

    def player_color(self, player: str) -> str:
        if self.props.get("White") == player:
            return "White"
        if self.props.get("Black") == player:
            return "Black"
        raise KeyError(f"No such player: {player}")

    def opponent_color(self, player: str) -> str:
        return "Black" if self.player_color(player) == "White" else "White"

    def player_elo(self, player: str) -> int:
        return int(self.props[self.player_color(player) + "Elo"])

    def opponent_elo(self, player: str) -> int:
        return int(self.props[self.opponent_color(player) + "Elo"])

    def win_value(self, player: str) -> float:
        """1 for a win, 0.5 for a draw, 0 for a loss, from `player`'s side."""
        result = self.props.get("Result")
        if result == "1/2-1/2":
            return 0.5
        is_white = self.player_color(player) == "White"
        if result == "1-0":
            return 1.0 if is_white else 0.0
        if result == "0-1":
            return 0.0 if is_white else 1.0
        raise ValueError(f"game {self.hash} has no result")

    def analysis_depth(self) -> Optional[int]:
        """Deepest depth at which every position has been analysed."""
        if not self.positions:
            return None
        common = set.intersection(*(p.depths() for p in self.positions))
        return max(common, default=None)

    def to_dict(self) -> dict:
        return {
            "hash": self.hash,
            "props": dict(self.props),
            "positions": [p.to_dict() for p in self.positions],
        }

    @classmethod
    def from_dict(cls, data: dict) -> Game:
        return cls(
            hash=data["hash"],
            props=dict(data.get("props", {})),
            positions=[Position.from_dict(p) for p in data.get("positions", [])],
        )


@dataclass(frozen=True)
class PositionRef:
    """Addresses a position by its game and index within the game."""

    game: Game
    index: int

    @property
    def position(self) -> Position:
        return self.game.positions[self.index]

    def label(self) -> str:
        pos = self.position
        return f"{self.game.hash} #{pos.full_move_number}/{'B' if pos.is_black_move else 'W'}"


class AnalysisStore:
    """All known games, persisted as one JSON file."""

    def __init__(self, path: str | Path, games: Optional[dict[str, Game]] = None):
        self.path = Path(path)
        self.games: dict[str, Game] = games if games is not None else {}

    def __len__(self) -> int:
        return len(self.games)

    def __contains__(self, game_hash: str) -> bool:
        return game_hash in self.games

    @classmethod
    def load(cls, path: str | Path) -> AnalysisStore:
        """Load the store at `path`, or an empty one if the file does not exist."""
        path = Path(path)
        if not path.exists():
            return cls(path)
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"cannot read store {path}: {exc}") from exc

        if not isinstance(data, dict) or data.get("version") != STORE_FORMAT_VERSION:
            raise StoreError(f"{path} is not a version {STORE_FORMAT_VERSION} analysis store")
        try:
            games = {h: Game.from_dict(g) for h, g in data.get("games", {}).items()}
        except (KeyError, TypeError, ValueError) as exc:
            raise StoreError(f"corrupt game entry in {path}: {exc}") from exc
        return cls(path, games)

    def save(self) -> None:
        """Atomically replace the file on disk with the current contents."""
        data = {
            "version": STORE_FORMAT_VERSION,
            "games": {h: g.to_dict() for h, g in self.games.items()},
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=self.path.name + ".", suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def merge_games(self, games: Iterable[Game]) -> int:
        """Add unseen games; refresh tags of known ones. Returns the number added.

        Evaluations of known games are never touched.
        """
        added = 0
        for game in games:
            existing = self.games.get(game.hash)
            if existing is None:
                self.games[game.hash] = game
                added += 1
            else:
                existing.props.update(game.props)
        return added

    def games_by_start(self) -> list[Game]:
        return sorted(self.games.values(), key=lambda g: g.sort_key)

    def iter_positions(self) -> Iterator[PositionRef]:
        """Every position, games by start time, positions in game order."""
        for game in self.games_by_start():
            for index in range(len(game.positions)):
                yield PositionRef(game, index)

    def positions_missing(self, depth: int) -> list[PositionRef]:
        """Positions with no evaluation at `depth`, in deterministic order."""
        return [ref for ref in self.iter_positions() if not ref.position.has_depth(depth)]
