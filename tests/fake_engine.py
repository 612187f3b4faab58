"""
Scripted UCI engine for the engine session tests.

    python fake_engine.py [mode]

Answers the handshake and replies to `go depth N` with canned `info` lines
for a few known positions, and level lines for any other. The mode
selects a misbehaviour:

    normal        well-behaved
    no_uciok      never finishes the handshake (complains on stderr)
    close_stdin   stops reading commands right after the handshake reply
    crash_on_go   exits as soon as a search starts
    hang_on_go    never answers a search
    garbage       emits an unparsable score
    illegal_first first move of the line is not legal
    no_lines      no result lines for a playable position
    mate_overflow reports a mate distance beyond the supported bound
"""

import os
import sys
import time

import chess

START_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"
MATE_IN_2_FEN = "8/k7/6R1/7R/8/8/8/K7 w - - 0 1"
CHECKMATED_FEN = "k5R1/7R/8/8/8/8/8/K7 b - - 3 2"
STALEMATE_FEN = "k7/5R2/8/8/1R6/8/8/K7 b - - 0 1"

# (multipv, score type, score, pv); listed in the order they are emitted
LINES = {
    START_FEN: [
        (1, "cp", 12, "d2d4 d7d5"),  # superseded by the second report for line 1
        (1, "cp", 35, "e2e4 e7e5 g1f3 b8c6 f1b5 a7a6 b5a4 g8f6 e1g1 a1a8 f8e7"),
        (2, "cp", 30, "d2d4 g8f6 c2c4"),
        (3, "cp", 30, "g1f3 d7d5"),
        (4, "cp", -5, "b1c3 e7e5"),
        (5, "cp", -20, "a2a3 e7e5"),
    ],
    MATE_IN_2_FEN: [
        (1, "mate", 2, "h5h7 a7b8 g6g8"),
        (2, "mate", 2, "g6g7 a7b8 h5h8"),
        (3, "mate", 3, "h5h8 a7b7 g6g1"),
    ],
}


def generic_lines(board):
    """Level lines for the first legal moves of any other position."""
    moves = sorted(m.uci() for m in board.legal_moves)
    return [(i, "cp", 0, move) for i, move in enumerate(moves, start=1)]


def emit(line):
    print(line, flush=True)


def search(fen, depth, multipv, mode):
    if mode == "crash_on_go":
        sys.exit(3)
    if mode == "hang_on_go":
        return
    board = chess.Board(fen)
    if board.is_checkmate():
        emit("info depth 0 score mate 0")
        emit("bestmove (none)")
        return
    if board.is_stalemate():
        emit("info depth 0 score cp 0")
        emit("bestmove (none)")
        return
    if mode == "no_lines":
        emit("bestmove e2e4")
        return
    if mode == "garbage":
        emit(f"info depth {depth} seldepth {depth} multipv 1 score cp abc pv e2e4")
        emit("bestmove e2e4")
        return
    if mode == "mate_overflow":
        emit(f"info depth {depth} seldepth {depth} multipv 1 score mate 150 pv e2e4")
        emit("bestmove e2e4")
        return
    if mode == "illegal_first":
        emit(f"info depth {depth} seldepth {depth} multipv 1 score cp 10 pv e2e5 e7e5")
        emit("bestmove e2e5")
        return

    # shallower iteration and progress reports are not results
    emit(f"info depth {depth - 1} seldepth {depth} multipv 1 score cp 99 pv a2a4")
    emit(f"info depth {depth} currmove e2e4 currmovenumber 1")
    best = None
    for index, kind, score, pv in LINES.get(fen) or generic_lines(board):
        if index > multipv:
            continue
        emit(f"info depth {depth} seldepth {depth + 4} multipv {index} score {kind} {score} "
             f"nodes 12345 nps 100000 time 12 pv {pv}")
        if index == 1:
            best = pv.split()[0]
    emit(f"bestmove {best or '(none)'}")


def main():
    mode = sys.argv[1] if len(sys.argv) > 1 else "normal"
    fen = None
    multipv = 1
    for raw in sys.stdin:
        command = raw.strip()
        if command == "uci":
            if mode == "no_uciok":
                print("fake engine: refusing handshake", file=sys.stderr, flush=True)
                continue
            if mode == "close_stdin":
                os.close(sys.stdin.fileno())
                emit("uciok")
                time.sleep(30)
                return
            emit("id name FakeFish")
            emit("uciok")
        elif command == "isready":
            emit("readyok")
        elif command.startswith("setoption name MultiPV value "):
            multipv = int(command.rsplit(" ", 1)[1])
        elif command.startswith("position fen "):
            fen = command[len("position fen "):]
        elif command.startswith("go depth "):
            search(fen, int(command.split()[2]), multipv, mode)
        elif command == "quit":
            return


if __name__ == "__main__":
    main()
