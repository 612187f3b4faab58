"""
chess.com monthly PGN archives

Archives are saved in the data dir as chess.com-games-<user>-<YYYY>-<MM>.pgn.
Only the current month needs refreshing; older months are read from disk.
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Iterator, Optional

import requests

from .exceptions import DownloadError
from .importer import parse_pgn_games
from .store import Game

logger = logging.getLogger(__name__)

BASE_URL = "https://api.chess.com/pub"
USER_AGENT = "batch-analyzer/1.0"
REQUEST_TIMEOUT = 30


def archive_path(data_dir: str | Path, username: str, year: int, month: int) -> Path:
    return Path(data_dir) / f"chess.com-games-{username}-{year}-{month:02d}.pgn"


def months_since(year: int, month: int, until: Optional[date] = None) -> Iterator[tuple[int, int]]:
    """(year, month) pairs from the given month up to and including `until`'s month."""
    until = until or date.today()
    while (year, month) <= (until.year, until.month):
        yield year, month
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)


def download_month(
    data_dir: str | Path,
    username: str,
    year: int,
    month: int,
    session: Optional[requests.Session] = None,
) -> str:
    """Download one month of games as PGN and save it to the data dir."""
    url = f"{BASE_URL}/player/{username}/games/{year}/{month:02d}/pgn"
    http = session or requests.Session()
    try:
        response = http.get(url, headers={"User-Agent": USER_AGENT}, timeout=REQUEST_TIMEOUT)
    except requests.exceptions.RequestException as exc:
        raise DownloadError(f"cannot reach chess.com ({url}): {exc}") from exc

    if response.status_code == 404:
        raise DownloadError(f"chess.com user or archive not found: {url}")
    if response.status_code != 200:
        raise DownloadError(f"chess.com API error {response.status_code} {response.reason} for {url}")

    path = archive_path(data_dir, username, year, month)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(response.text, encoding="utf-8")
    logger.info("Downloaded %s", path.name)
    return response.text


def load_archives(data_dir: str | Path, username: str, year: int, month: int) -> list[Game]:
    """Games from every saved month since (year, month); missing months are skipped."""
    games: list[Game] = []
    for y, m in months_since(year, month):
        path = archive_path(data_dir, username, y, m)
        if not path.exists():
            logger.warning("No archive for %d-%02d (%s)", y, m, path.name)
            continue
        games.extend(parse_pgn_games(path.read_text(encoding="utf-8")))
    return games
