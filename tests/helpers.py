"""Shared builders for the test suite."""

import sys
from pathlib import Path

from batch_analyzer.evaluation import Evaluation
from batch_analyzer.store import Game, Position

FAKE_ENGINE = Path(__file__).with_name("fake_engine.py")


def fake_engine_command(mode: str = "normal") -> list[str]:
    return [sys.executable, str(FAKE_ENGINE), mode]


def make_game(game_hash: str, fens: list[str], props: dict | None = None) -> Game:
    """A game whose positions alternate White/Black, last one without a move."""
    positions = [
        Position(
            fen=fen,
            move_taken=None if i == len(fens) - 1 else f"m{i}",
            is_black_move=i % 2 == 1,
            full_move_number=i // 2 + 1,
        )
        for i, fen in enumerate(fens)
    ]
    return Game(hash=game_hash, positions=positions, props=dict(props or {}))


def cp(score: int, depth: int = 10, move: str | None = "e4", rank: int = 1) -> Evaluation:
    return Evaluation(raw_score=score, is_mate=False, depth=depth, move=move, rank=rank)


def mate(score: int, depth: int = 10, move: str | None = "e4", rank: int = 1) -> Evaluation:
    return Evaluation(raw_score=score, is_mate=True, depth=depth, move=move, rank=rank)


SCHOLARS_MATE = """[Event "Live Chess"]
[Site "Chess.com"]
[White "alice"]
[Black "bob"]
[Result "1-0"]
[UTCDate "2024.03.05"]
[UTCTime "18:04:11"]
[WhiteElo "1510"]
[BlackElo "1490"]
[TimeControl "600"]
[Termination "alice won by checkmate"]

1. e4 {[%clk 0:09:58]} 1... e5 {[%clk 0:09:57]} 2. Bc4 {[%clk 0:09:50]} 2... Nc6 {[%clk 0:09:40]}
3. Qh5 {[%clk 0:09:45]} 3... Nf6 {[%clk 0:09:30]} 4. Qxf7# {[%clk 0:09:44]} 1-0

"""
