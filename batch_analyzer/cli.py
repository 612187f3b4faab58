"""
Batch Analyzer - command line entry point

    python -m batch_analyzer <data_dir> [--no-download] [--pgn FILE ...] [--verbose]

Imports games (chess.com archives and/or local PGN files) into the store in
<data_dir>, then deepens the engine analysis of every position, writing the
HTML report along the way. Interrupting the run loses at most the work since
the last checkpoint; the next run picks up where this one stopped.
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional, Sequence

from .chess_com import download_month, load_archives
from .config import Settings
from .engine_session import EngineSession
from .exceptions import BatchAnalyzerError
from .importer import load_pgn_file
from .report import write_report
from .scheduler import AnalysisScheduler
from .stats import write_stats
from .store import AnalysisStore, Game

logger = logging.getLogger(__name__)

STORE_FILE = "data.json"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="batch_analyzer",
        description="Deepening multi-line engine analysis of a chess game collection.",
    )
    parser.add_argument("data_dir", type=Path, help="directory holding settings.json, data.json and the reports")
    parser.add_argument("--no-download", action="store_true", help="do not refresh chess.com archives")
    parser.add_argument("--pgn", action="append", default=[], type=Path, metavar="FILE",
                        help="import games from a local PGN file (repeatable)")
    parser.add_argument("--verbose", action="store_true", help="log engine I/O")
    return parser


def collect_games(settings: Settings, data_dir: Path, pgn_files: Sequence[Path], download: bool) -> list[Game]:
    """Games from the configured chess.com archives and the given PGN files."""
    games: list[Game] = []
    user = settings.chess_com_username
    if user and settings.from_month:
        if download:
            today = date.today()
            download_month(data_dir, user, today.year, today.month)
        games.extend(load_archives(data_dir, user, *settings.from_month))
    for pgn in pgn_files:
        games.extend(load_pgn_file(pgn))

    kept = [g for g in games if settings.accepts_time_control(g.time_control)]
    if len(kept) != len(games):
        logger.info("Skipped %d games with other time controls", len(games) - len(kept))
    return kept


def run(data_dir: Path, pgn_files: Sequence[Path] = (), download: bool = True) -> None:
    settings = Settings.load(data_dir)
    games = collect_games(settings, data_dir, pgn_files, download)

    store = AnalysisStore.load(data_dir / STORE_FILE)
    added = store.merge_games(games)
    store.save()
    logger.info("%d games in store (%d new)", len(store), added)

    if settings.chess_com_username:
        write_stats(store.games.values(), settings.chess_com_username, data_dir)

    try:
        with EngineSession.from_settings(settings) as engine:
            scheduler = AnalysisScheduler.from_settings(
                settings, store, engine, on_report=lambda s: write_report(s, data_dir),
            )
            stats = scheduler.run()
    except BatchAnalyzerError:
        store.save()
        raise
    logger.info("Analysed %d positions (%d engine restarts)", stats.evaluated, stats.restarts)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        run(args.data_dir, args.pgn, download=not args.no_download)
    except BatchAnalyzerError as exc:
        print(f"❌ {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 130
    return 0
