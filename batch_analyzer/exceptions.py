"""
Batch Analyzer - Exceptions

All errors raised by the analyzer derive from BatchAnalyzerError, so the
CLI can report any of them uniformly. Engine errors carry the tail of the
engine's stderr to make crashes diagnosable.
"""

from __future__ import annotations

from typing import Sequence


class BatchAnalyzerError(Exception):
    """Base class for all analyzer errors."""


# ═══════════════════════════════════════════════════════════
# Engine
# ═══════════════════════════════════════════════════════════


class EngineError(BatchAnalyzerError):
    """Base class for errors raised by an engine session."""

    def __init__(self, message: str, stderr: Sequence[str] = ()):
        if stderr:
            message = f"{message}\nengine stderr:\n" + "\n".join(stderr)
        super().__init__(message)
        self.stderr = list(stderr)


class EngineStartError(EngineError):
    """The engine could not be launched or never acknowledged the handshake."""


class EngineProtocolError(EngineError):
    """The engine produced output that violates the protocol contract."""


class EngineCrashedError(EngineError):
    """The engine's output ended while a reply was still expected."""


class EngineTimeoutError(EngineCrashedError):
    """A search did not finish within the configured bound."""


# ═══════════════════════════════════════════════════════════
# Evaluation model / store / scheduler
# ═══════════════════════════════════════════════════════════


class InvalidEvaluationError(BatchAnalyzerError, ValueError):
    """An evaluation violates the mate-score bound."""


class DuplicateDepthError(BatchAnalyzerError):
    """Evaluations were submitted for a depth the position already holds."""


class ConsistencyError(BatchAnalyzerError):
    """The strongest returned line was not the engine's first line."""


class StoreError(BatchAnalyzerError):
    """The persisted store could not be read."""


# ═══════════════════════════════════════════════════════════
# Collaborators
# ═══════════════════════════════════════════════════════════


class GameImportError(BatchAnalyzerError):
    """A PGN game could not be turned into positions."""


class DownloadError(BatchAnalyzerError):
    """A game archive could not be downloaded."""
