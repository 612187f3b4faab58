"""
Engine Session

Drives one UCI engine process (Stockfish) and exposes a synchronous
"evaluate this position to this depth with N lines" call.

The engine talks in lines on stdout/stderr. Each stream is drained by its own
reader thread into a queue; the foreground search consumes the stdout queue
until the engine reports `bestmove`. Searches must be issued one at a time.

Coordinate moves (e2e4) are decoded to SAN with python-chess by replaying
them from the searched position.
"""

from __future__ import annotations

import logging
import queue
import subprocess
import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import IO, Optional, Sequence

import chess

from .config import Settings
from .evaluation import Evaluation
from .exceptions import (
    BatchAnalyzerError,
    EngineCrashedError,
    EngineError,
    EngineProtocolError,
    EngineStartError,
    EngineTimeoutError,
)

logger = logging.getLogger(__name__)

# Pushed by a reader thread when its stream reaches EOF
_EOF = None

_STDERR_TAIL_LINES = 20
_QUIT_GRACE_SECONDS = 2.0


class SessionState(str, Enum):
    """Lifecycle of an engine session."""

    NOT_STARTED = "not_started"
    HANDSHAKING = "handshaking"
    READY = "ready"
    SEARCHING = "searching"
    STOPPED = "stopped"


@dataclass(frozen=True)
class ResultLine:
    """A completed `info depth N ... multipv I score ... pv ...` report."""

    multipv: int
    is_mate: bool
    score: int
    moves: tuple[str, ...]


# ═══════════════════════════════════════════════════════════
# Output parsing (pure functions)
# ═══════════════════════════════════════════════════════════


def is_result_line(line: str, depth: int) -> bool:
    """True for a scored report at exactly `depth` (progress lines excluded)."""
    if not line.startswith(f"info depth {depth} "):
        return False
    return "currmove" not in line.split()


def parse_result_line(line: str) -> ResultLine:
    """Parse a scored `info` line. Anything unexpected is a protocol error."""
    tokens = line.split()
    try:
        score_at = tokens.index("score")
        pv_at = tokens.index("pv")
        score_type = tokens[score_at + 1]
        score = int(tokens[score_at + 2])
        multipv = int(tokens[tokens.index("multipv") + 1]) if "multipv" in tokens else 1
    except (ValueError, IndexError) as exc:
        raise EngineProtocolError(f"unparsable result line: {line!r}") from exc

    moves = tuple(tokens[pv_at + 1:])
    if score_type not in ("cp", "mate") or not moves or multipv < 1:
        raise EngineProtocolError(f"unparsable result line: {line!r}")
    return ResultLine(multipv=multipv, is_mate=score_type == "mate", score=score, moves=moves)


def decode_moves(fen: str, uci_moves: Sequence[str]) -> list[str]:
    """Replay coordinate moves from `fen` and return them in SAN.

    Decoding stops at the first move that is not legal in the replayed
    position; the moves decoded so far are returned. Stockfish has been seen
    to emit an invalid move 30+ plies deep in a line.
    """
    board = chess.Board(fen)
    san_moves = []
    for uci in uci_moves:
        try:
            move = board.parse_uci(uci)
        except ValueError:
            break
        if not move:
            break
        san_moves.append(board.san(move))
        board.push(move)
    return san_moves


def terminal_evaluation(fen: str, depth: int) -> Evaluation:
    """Evaluation for a position without legal moves."""
    board = chess.Board(fen)
    if board.is_checkmate():
        return Evaluation(raw_score=0, is_mate=True, depth=depth)  # lost by checkmate
    if board.is_stalemate():
        return Evaluation(raw_score=0, is_mate=False, depth=depth)  # drawn by stalemate
    raise EngineProtocolError(f"engine returned no lines for a playable position: {fen}")


def build_evaluations(fen: str, depth: int, lines: dict[int, ResultLine]) -> list[Evaluation]:
    """Turn the latest report per line index into evaluations, in line order."""
    results = []
    for multipv in sorted(lines):
        line = lines[multipv]
        moves = decode_moves(fen, line.moves)
        if not moves:
            raise EngineProtocolError(
                f"line {multipv} starts with an illegal move {line.moves[0]!r} in {fen}"
            )
        results.append(
            Evaluation(
                raw_score=line.score,
                is_mate=line.is_mate,
                depth=depth,
                move=moves[0],
                pv=tuple(moves[1:]),
                rank=multipv,
            )
        )
    if not results:
        results.append(terminal_evaluation(fen, depth))
    return results


def _pump(stream: IO[str], sink: queue.Queue) -> None:
    for line in iter(stream.readline, ""):
        sink.put(line.rstrip("\r\n"))
    sink.put(_EOF)


# ═══════════════════════════════════════════════════════════
# Session
# ═══════════════════════════════════════════════════════════


class EngineSession:
    """Owns one engine process; one search at a time."""

    def __init__(
        self,
        command: str | Sequence[str],
        *,
        threads: int = 14,
        hash_mb: int = 128,
        use_nnue: bool = True,
        handshake_timeout: Optional[float] = 30.0,
        search_timeout: Optional[float] = None,
        start_attempts: int = 1,
        retry_backoff: float = 1.0,
    ):
        self._command = [command] if isinstance(command, str) else list(command)
        self._threads = threads
        self._hash_mb = hash_mb
        self._use_nnue = use_nnue
        self._handshake_timeout = handshake_timeout
        self._search_timeout = search_timeout
        self._start_attempts = max(1, start_attempts)
        self._retry_backoff = retry_backoff

        self._process: Optional[subprocess.Popen] = None
        self._stdout: queue.Queue = queue.Queue()
        self._stderr: queue.Queue = queue.Queue()
        self._stderr_tail: deque[str] = deque(maxlen=_STDERR_TAIL_LINES)
        self._readers: list[threading.Thread] = []
        self.state = SessionState.NOT_STARTED

    @classmethod
    def from_settings(cls, settings: Settings) -> EngineSession:
        return cls(
            settings.stockfish_path,
            threads=settings.threads,
            hash_mb=settings.hash_mb,
            use_nnue=settings.use_nnue,
            handshake_timeout=settings.handshake_timeout_seconds,
            search_timeout=settings.search_timeout_seconds,
            start_attempts=settings.start_attempts,
        )

    def __enter__(self) -> EngineSession:
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    # ── lifecycle ──

    def start(self) -> None:
        """Launch the engine and complete the handshake, retrying with backoff."""
        for attempt in range(1, self._start_attempts + 1):
            try:
                self._launch()
                return
            except EngineStartError as exc:
                self._terminate(grace=0)
                if attempt == self._start_attempts:
                    self.state = SessionState.STOPPED
                    raise
                delay = self._retry_backoff * 2 ** (attempt - 1)
                logger.warning("Engine start failed (attempt %d/%d), retrying in %.1fs: %s",
                               attempt, self._start_attempts, delay, exc)
                time.sleep(delay)

    def restart(self) -> None:
        self.stop()
        self.start()

    def stop(self) -> None:
        """Ask the engine to quit; kill it if it does not."""
        if self._process is not None and self._process.poll() is None:
            try:
                self._send("quit")
            except EngineError:
                pass  # already gone; reaped below
        self._terminate()
        self.state = SessionState.STOPPED

    def _launch(self) -> None:
        self.state = SessionState.HANDSHAKING
        self._stdout = queue.Queue()
        self._stderr = queue.Queue()
        self._stderr_tail.clear()
        try:
            self._process = subprocess.Popen(
                self._command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as exc:
            raise EngineStartError(f"cannot launch engine {self._command[0]!r}: {exc}") from exc

        self._readers = [
            threading.Thread(target=_pump, args=(self._process.stdout, self._stdout),
                             name="engine-stdout", daemon=True),
            threading.Thread(target=_pump, args=(self._process.stderr, self._stderr),
                             name="engine-stderr", daemon=True),
        ]
        for reader in self._readers:
            reader.start()

        self._send("uci")
        self._wait_for("uciok")
        self._send(f"setoption name Threads value {self._threads}")
        self._send(f"setoption name Hash value {self._hash_mb}")
        self._send(f"setoption name Use NNUE value {'true' if self._use_nnue else 'false'}")
        self._send("isready")
        self._wait_for("readyok")
        self._clear_output()
        self.state = SessionState.READY
        logger.info("Engine %s ready", self._command[0])

    def _terminate(self, grace: float = _QUIT_GRACE_SECONDS) -> None:
        process, self._process = self._process, None
        if process is None:
            return
        try:
            process.wait(timeout=grace)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
        for reader in self._readers:
            reader.join(timeout=1.0)
        self._readers = []
        for stream in (process.stdin, process.stdout, process.stderr):
            if stream is not None:
                try:
                    stream.close()
                except OSError:
                    pass  # broken pipe on an already dead process

    # ── searching ──

    def evaluate(self, fen: str, depth: int, multipv: int = 5) -> list[Evaluation]:
        """Search `fen` to exactly `depth`; return one evaluation per line, in line order."""
        if self.state != SessionState.READY:
            raise EngineError(f"engine is not ready (state: {self.state.value})")

        self.state = SessionState.SEARCHING
        try:
            lines = self._search(fen, depth, multipv)
            results = build_evaluations(fen, depth, lines)
        except BatchAnalyzerError:
            self.stop()
            raise
        self.state = SessionState.READY
        return results

    def _search(self, fen: str, depth: int, multipv: int) -> dict[int, ResultLine]:
        self._send(f"setoption name MultiPV value {multipv}")
        self._send(f"position fen {fen}")
        self._send(f"go depth {depth}")

        deadline = None if self._search_timeout is None else time.monotonic() + self._search_timeout
        lines: dict[int, ResultLine] = {}
        while True:
            line = self._read_line(deadline, EngineTimeoutError, f"search of {fen} to depth {depth}")
            if line.startswith("bestmove"):
                return lines
            if is_result_line(line, depth):
                # later reports for the same line supersede earlier ones
                result = parse_result_line(line)
                lines[result.multipv] = result

    # ── I/O ──

    def _send(self, command: str) -> None:
        error = EngineStartError if self.state == SessionState.HANDSHAKING else EngineCrashedError
        if self._process is None or self._process.stdin is None:
            raise error("engine is not running")
        logger.debug(">> %s", command)
        try:
            self._process.stdin.write(command + "\n")
            self._process.stdin.flush()
        except OSError as exc:
            raise error(f"cannot write to engine: {exc}", self.stderr_tail()) from exc

    def _wait_for(self, expected: str) -> None:
        deadline = None if self._handshake_timeout is None else time.monotonic() + self._handshake_timeout
        while self._read_line(deadline, EngineStartError, f"waiting for {expected!r}") != expected:
            pass

    def _read_line(self, deadline: Optional[float], timeout_error: type[EngineError], context: str) -> str:
        timeout = None if deadline is None else max(0.0, deadline - time.monotonic())
        try:
            line = self._stdout.get(timeout=timeout)
        except queue.Empty:
            raise timeout_error(f"engine timed out ({context})", self.stderr_tail()) from None
        if line is _EOF:
            error = EngineStartError if self.state == SessionState.HANDSHAKING else EngineCrashedError
            raise error(f"engine output ended ({context})", self.stderr_tail())
        logger.debug("<< %s", line)
        return line

    def _clear_output(self) -> None:
        while True:
            try:
                line = self._stdout.get_nowait()
            except queue.Empty:
                return
            if line is _EOF:
                self._stdout.put(_EOF)
                return

    def stderr_tail(self) -> list[str]:
        """The most recent stderr lines the engine wrote."""
        while True:
            try:
                line = self._stderr.get_nowait()
            except queue.Empty:
                break
            if line is not _EOF:
                self._stderr_tail.append(line)
        return list(self._stderr_tail)
