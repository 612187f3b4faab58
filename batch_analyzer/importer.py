"""
PGN import

Turns PGN text into Game objects: one Position per ply plus the final
position, with no evaluations. A game's identity is derived from its FEN
sequence, so the same game downloaded twice maps to the same store entry.
"""

from __future__ import annotations

import base64
import hashlib
import io
import logging
from pathlib import Path
from typing import Iterable

import chess
import chess.pgn

from .exceptions import GameImportError
from .store import Game, Position

logger = logging.getLogger(__name__)

FINISHED_RESULTS = ("1-0", "0-1", "1/2-1/2")


def game_hash(fens: Iterable[str]) -> str:
    """URL-safe base64 MD5 of the ';'-joined FEN sequence, without padding."""
    digest = hashlib.md5(";".join(fens).encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def game_from_pgn(pgn_game: chess.pgn.Game) -> Game:
    """Build a Game from a parsed PGN game (mainline only)."""
    if pgn_game.errors:
        raise GameImportError(f"invalid PGN game {dict(pgn_game.headers)}: {pgn_game.errors[0]}")
    result = pgn_game.headers.get("Result")
    if result not in FINISHED_RESULTS:
        raise GameImportError(f"game has no final result: {result!r}")

    board = pgn_game.board()
    positions = []
    for move in pgn_game.mainline_moves():
        positions.append(
            Position(
                fen=board.fen(),
                move_taken=board.san(move),
                is_black_move=board.turn == chess.BLACK,
                full_move_number=board.fullmove_number,
            )
        )
        board.push(move)
    positions.append(
        Position(
            fen=board.fen(),
            move_taken=None,
            is_black_move=board.turn == chess.BLACK,
            full_move_number=board.fullmove_number,
        )
    )

    return Game(
        hash=game_hash(p.fen for p in positions),
        positions=positions,
        props=dict(pgn_game.headers),
    )


def parse_pgn_games(pgn_text: str) -> list[Game]:
    """Parse every game in a PGN document."""
    games = []
    pgn_io = io.StringIO(pgn_text)
    while True:
        pgn_game = chess.pgn.read_game(pgn_io)
        if pgn_game is None:
            break
        games.append(game_from_pgn(pgn_game))
    logger.debug("Parsed %d games", len(games))
    return games


def load_pgn_file(path: str | Path) -> list[Game]:
    with open(path, "r", encoding="utf-8") as f:
        return parse_pgn_games(f.read())
