"""
Batch Analyzer

Deepening multi-line engine analysis of a chess game collection.
Every position of every stored game is searched at each depth of a ladder,
results are checkpointed to disk, and played moves are classified from the
strongest line before and after each move.
"""

from .config import Settings
from .engine_session import EngineSession, SessionState
from .evaluation import Evaluation, normalized_value, ranked, strongest
from .exceptions import (
    BatchAnalyzerError,
    ConsistencyError,
    DuplicateDepthError,
    EngineCrashedError,
    EngineError,
    EngineProtocolError,
    EngineStartError,
    EngineTimeoutError,
    InvalidEvaluationError,
    StoreError,
)
from .move_quality import MoveVerdict, Severity, Transition, classify_move, move_rank, review_game
from .scheduler import AnalysisScheduler, SchedulerStats
from .store import AnalysisStore, Game, Position, PositionRef

__version__ = "1.0.0"

__all__ = [
    "Settings",
    "EngineSession",
    "SessionState",
    "Evaluation",
    "normalized_value",
    "ranked",
    "strongest",
    "BatchAnalyzerError",
    "ConsistencyError",
    "DuplicateDepthError",
    "EngineCrashedError",
    "EngineError",
    "EngineProtocolError",
    "EngineStartError",
    "EngineTimeoutError",
    "InvalidEvaluationError",
    "StoreError",
    "MoveVerdict",
    "Severity",
    "Transition",
    "classify_move",
    "move_rank",
    "review_game",
    "AnalysisScheduler",
    "SchedulerStats",
    "AnalysisStore",
    "Game",
    "Position",
    "PositionRef",
]
