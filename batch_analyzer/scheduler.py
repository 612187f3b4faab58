"""
Analysis Scheduler

Works through the depth ladder, shallowest first. For each depth it searches
every stored position that has no evaluation at that depth yet, in game
start order, and appends the results to the store. Progress is checkpointed
on a timer, so an interrupted run resumes where it stopped without
re-analysing anything.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol, Sequence

from .config import Settings
from .evaluation import Evaluation, strongest
from .exceptions import ConsistencyError, EngineCrashedError
from .store import AnalysisStore, PositionRef

logger = logging.getLogger(__name__)

ReportHook = Callable[[AnalysisStore], None]


class Evaluator(Protocol):
    """What the scheduler needs from an engine session."""

    def evaluate(self, fen: str, depth: int, multipv: int = 5) -> list[Evaluation]: ...

    def restart(self) -> None: ...


@dataclass
class SchedulerStats:
    evaluated: int = 0
    checkpoints: int = 0
    reports: int = 0
    restarts: int = 0
    per_depth: dict[int, int] = field(default_factory=dict)


class AnalysisScheduler:
    """Deepens the analysis of every stored position one ladder rung at a time."""

    def __init__(
        self,
        store: AnalysisStore,
        engine: Evaluator,
        depths: Sequence[int],
        *,
        multipv: int = 5,
        save_interval: float = 30.0,
        report_interval: float = 300.0,
        search_retries: int = 1,
        on_report: Optional[ReportHook] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not depths:
            raise ValueError("the depth ladder is empty")
        self.store = store
        self.engine = engine
        self.depths = sorted(depths)
        self.multipv = multipv
        self.save_interval = save_interval
        self.report_interval = report_interval
        self.search_retries = search_retries
        self.on_report = on_report
        self.stats = SchedulerStats()
        self._clock = clock
        self._last_save = clock()
        self._last_report = clock()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: AnalysisStore,
        engine: Evaluator,
        on_report: Optional[ReportHook] = None,
    ) -> AnalysisScheduler:
        return cls(
            store,
            engine,
            settings.depths,
            multipv=settings.multipv,
            save_interval=settings.save_interval_seconds,
            report_interval=settings.report_interval_seconds,
            search_retries=settings.search_retries,
            on_report=on_report,
        )

    @property
    def shallowest(self) -> int:
        return self.depths[0]

    def run(self) -> SchedulerStats:
        """Analyse every depth of the ladder, then write a final report."""
        for depth in self.depths:
            self.run_depth(depth)
        self._report()
        return self.stats

    def run_depth(self, depth: int) -> int:
        """Analyse all positions missing `depth`. Returns how many were analysed."""
        pending = self.store.positions_missing(depth)
        if not pending:
            return 0

        logger.info("Depth %d: %d positions to analyse", depth, len(pending))
        # Shallowest-depth results are too noisy to be worth a report of their own
        reportable = depth > self.shallowest
        if reportable:
            self._report()

        for ref in pending:
            self._analyse(ref, depth)
            now = self._clock()
            if now - self._last_save > self.save_interval:
                self._checkpoint()
            if reportable and now - self._last_report > self.report_interval:
                self._report()

        self._checkpoint()
        self.stats.per_depth[depth] = self.stats.per_depth.get(depth, 0) + len(pending)
        return len(pending)

    def _analyse(self, ref: PositionRef, depth: int) -> None:
        position = ref.position
        started = time.monotonic()
        results = self._evaluate(position.fen, depth)
        logger.info("Analysing %s to depth %d... %.1f sec", ref.label(), depth, time.monotonic() - started)

        # Checks both the comparison function and the engine's own line order
        if strongest(results) is not results[0]:
            raise ConsistencyError(
                f"strongest line is not the engine's first line for {position.fen} at depth {depth}: "
                + "; ".join(str(e) for e in results)
            )
        position.add_evaluations(depth, results)
        self.stats.evaluated += 1

    def _evaluate(self, fen: str, depth: int) -> list[Evaluation]:
        retries = 0
        while True:
            try:
                return self.engine.evaluate(fen, depth, self.multipv)
            except EngineCrashedError as exc:
                if retries >= self.search_retries:
                    raise
                retries += 1
                logger.warning("Engine failed on %s at depth %d, restarting: %s", fen, depth, exc)
                self.engine.restart()
                self.stats.restarts += 1

    def _checkpoint(self) -> None:
        self.store.save()
        self._last_save = self._clock()
        self.stats.checkpoints += 1

    def _report(self) -> None:
        if self.on_report is not None:
            self.on_report(self.store)
            self.stats.reports += 1
        self._last_report = self._clock()
