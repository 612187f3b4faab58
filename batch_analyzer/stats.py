"""
Rating statistics

Win rates against opponents of different strength, per time control, and the
rating range implied by those win rates, overall and over time. Uses the downloaded games only (no
engine analysis). Written to <data_dir>/stats.html.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from html import escape
from pathlib import Path
from typing import Iterable, Optional

import pandas as pd

from .store import Game

STATS_FILE = "stats.html"

# Implied-rating targets, in percent
WINRATE_TARGETS = range(55, 95, 5)
MIN_GAMES_FOR_RANGE = 7

# Histogram: 80% of games should land in 11 buckets around the median
BUCKET_COVERAGE = 0.8
HALF_BUCKETS = 5.5
MIN_BUCKET_SIZE = 4


def games_frame(games: Iterable[Game], player: str) -> pd.DataFrame:
    """One row per finished game `player` took part in."""
    rows = []
    for game in games:
        try:
            rows.append({
                "hash": game.hash,
                "started_at": game.started_at,
                "time_control": game.time_control,
                "my_elo": game.player_elo(player),
                "opponent_elo": game.opponent_elo(player),
                "win_value": game.win_value(player),
            })
        except (KeyError, ValueError):
            continue  # not this player's game, or unrated / unfinished
    return pd.DataFrame(
        rows,
        columns=["hash", "started_at", "time_control", "my_elo", "opponent_elo", "win_value"],
    )


def elo_range_from_winrate(df: pd.DataFrame, target: int) -> Optional[tuple[int, int]]:
    """Opponent ratings where the cumulative win rate crosses `target`%.

    The lower bound is the first opponent rating (weakest first) at which the
    win rate against everyone weaker drops below `target`; the upper bound is
    the first rating (strongest first) at which the win rate against everyone
    stronger rises above 100 - `target`.
    """
    n = len(df)
    if n < MIN_GAMES_FOR_RANGE:
        return None
    ordered = df.sort_values("opponent_elo", kind="stable").reset_index(drop=True)
    start = n // 5

    def first_crossing(frame: pd.DataFrame, crossed) -> Optional[int]:
        running = frame["win_value"].expanding().mean() * 100
        for i in range(start, n):
            if crossed(running.iloc[i - 1]):
                return int(frame["opponent_elo"].iloc[i])
        return None

    lower = first_crossing(ordered, lambda rate: rate < target)
    reverse = ordered.iloc[::-1].reset_index(drop=True)
    upper = first_crossing(reverse, lambda rate: rate > 100 - target)
    if lower is None or upper is None or lower > upper:
        return None
    return lower, upper


def implied_elo(df: pd.DataFrame) -> Optional[tuple[int, tuple[int, int]]]:
    """(target, range) for the first target that yields a range."""
    for target in WINRATE_TARGETS:
        found = elo_range_from_winrate(df, target)
        if found is not None:
            return target, found
    return None


def bucket_size_for(df: pd.DataFrame) -> int:
    median = int(df["opponent_elo"].sort_values().iloc[len(df) // 2])
    size = MIN_BUCKET_SIZE
    while True:
        near = df["opponent_elo"].between(median - size * HALF_BUCKETS, median + size * HALF_BUCKETS)
        if near.sum() >= len(df) * BUCKET_COVERAGE:
            return size
        size += 1


def win_rate_by_opponent_elo(df: pd.DataFrame) -> pd.DataFrame:
    """Win rate (percent, NaN if empty) per opponent-rating bucket."""
    columns = ["bucket_start", "bucket_end", "win_rate", "games"]
    if df.empty:
        return pd.DataFrame(columns=columns)
    median = int(df["opponent_elo"].sort_values().iloc[len(df) // 2])
    size = bucket_size_for(df)
    rows = []
    for start in range(int(median - size * HALF_BUCKETS), int(median + size * HALF_BUCKETS), size):
        end = start + size
        in_bucket = df[(df["opponent_elo"] >= start) & (df["opponent_elo"] < end)]
        rows.append({
            "bucket_start": start,
            "bucket_end": end,
            "win_rate": in_bucket["win_value"].mean() * 100 if len(in_bucket) else float("nan"),
            "games": len(in_bucket),
        })
    return pd.DataFrame(rows, columns=columns)


# ═══════════════════════════════════════════════════════════
# Implied rating over time
# ═══════════════════════════════════════════════════════════

# Targets tried for the chart, in percent
CHART_TARGETS = range(55, 80, 5)
MIN_CHART_WINDOW = 10


def _implied_series(ordered: pd.DataFrame, target: int, window: int) -> Optional[list[tuple]]:
    """(index, lower, upper, my_elo) per game, from a window centred on it.

    None if any full window yields no range.
    """
    n = len(ordered)
    points = []
    for i in range(n):
        start = i - window // 2
        my_elo = int(ordered["my_elo"].iloc[i])
        if start < 0 or start + window > n:
            points.append((i, None, None, my_elo))
            continue
        found = elo_range_from_winrate(ordered.iloc[start:start + window], target)
        if found is None:
            return None
        points.append((i, found[0], found[1], my_elo))
    return points


def _polyline(points: list[tuple[int, int]], max_y: int, stroke: str, extra: str = "") -> str:
    coords = " ".join(f"{x},{max_y - y}" for x, y in points)
    return (f"<polyline fill='none' stroke='{stroke}'{extra} points='{coords}' "
            "vector-effect='non-scaling-stroke' />")


def _chart(points: list[tuple], show_implied: bool) -> str:
    max_x = len(points) - 1
    top = max((p[2] or 0) for p in points) if show_implied else max(p[3] for p in points)
    max_y = math.ceil(top * 6.0 / 5.0 / 50.0) * 50
    svg = [
        f"<svg width='500px' height='300px' viewBox='0 0 {max_x} {max_y}' preserveAspectRatio='none' "
        "style='border: 1px solid #999; margin: 10px; background: #222;' "
        "xmlns='http://www.w3.org/2000/svg'><g>",
        _polyline([(p[0], p[1]) for p in points if p[1] is not None], max_y, "#ff0"),
        _polyline([(p[0], p[2]) for p in points if p[2] is not None], max_y, "#ff0"),
        _polyline([(p[0], p[3]) for p in points], max_y, "#f31", " stroke-opacity='0.5'"),
    ]
    for y in range(100, max_y, 100):
        svg.append(f"<polyline fill='none' stroke='#888' points='0 {max_y - y} {max_x} {max_y - y}' "
                   "vector-effect='non-scaling-stroke' stroke-dasharray='3 3' />")
    svg.append("</g></svg>")
    return "".join(svg)


def implied_elo_over_time(df: pd.DataFrame) -> Optional[str]:
    """SVG of the implied rating range over a sliding window of games, with the actual rating.

    Uses the first target and window size for which every full window yields
    a range; falls back to the actual rating alone, and to None when there
    are too few games for the smallest window.
    """
    ordered = df.sort_values("started_at", kind="stable").reset_index(drop=True)
    windows = range(MIN_CHART_WINDOW, len(ordered) // 2)
    for target in CHART_TARGETS:
        for window in windows:
            points = _implied_series(ordered, target, window)
            if points is not None:
                return _chart(points, show_implied=True)
    if not windows:
        return None
    return _chart([(i, None, None, int(e)) for i, e in enumerate(ordered["my_elo"])], show_implied=False)


def _implied_row(title: str, df: pd.DataFrame) -> Optional[str]:
    found = implied_elo(df)
    if found is None:
        return None
    target, (lower, upper) = found
    return f"<p>{escape(title)} ({target}%–{100 - target}%): <b>{lower} – {upper}</b></p>"


def render_stats(games: Iterable[Game], player: str, now: Optional[datetime] = None) -> str:
    df = games_frame(games, player)
    now = now or datetime.now(timezone.utc)
    body = [f"<p>Generated on {now:%Y-%m-%d %H:%M}</p>"]
    if df.empty:
        body.append(f"<p>No rated games for {escape(player)}.</p>")
    else:
        started = df["started_at"].dropna()
        if not started.empty:
            body.append(f"<p>Last game on {started.max():%Y-%m-%d %H:%M}</p>")

        by_control = df.groupby("time_control").size().sort_values(ascending=False)

        body.append("<h1>Winrate implied ELO</h1>")
        for control in by_control.index:
            group = df[df["time_control"] == control]
            rows = [_implied_row("All time", group)]
            months = group.dropna(subset=["started_at"])
            for month, month_games in months.groupby(months["started_at"].map(lambda d: (d.year, d.month))):
                rows.append(_implied_row(f"{datetime(month[0], month[1], 1):%b %Y}", month_games))
            rows.append(implied_elo_over_time(group))
            rows = [r for r in rows if r]
            if rows:
                body.append(f"<h2>{escape(str(control))}</h2>")
                body.extend(rows)

        body.append("<h1>Win rates vs ELO</h1>")
        for control in by_control.index:
            group = df[df["time_control"] == control]
            body.append(f"<h2>{escape(str(control))}</h2>")
            for row in win_rate_by_opponent_elo(group).itertuples():
                rate = -1.0 if pd.isna(row.win_rate) else row.win_rate
                body.append(f"<p>{row.bucket_start}–{row.bucket_end}: {rate:.1f}% ({row.games} games)</p>")

    return '<!DOCTYPE html>\n<html><head><meta charset="utf-8"></head>\n<body>\n' + "\n".join(body) + "\n</body></html>\n"


def write_stats(games: Iterable[Game], player: str, data_dir: str | Path) -> Path:
    path = Path(data_dir) / STATS_FILE
    path.write_text(render_stats(games, player), encoding="utf-8")
    return path
