"""
HTML analysis report

Renders every fully analysed game as a move table: position evaluation
(from White's side), the move played, its verdict, and where it ranked among
the engine's candidate lines. Written to <data_dir>/analysis.html.
"""

from __future__ import annotations

from html import escape
from pathlib import Path
from typing import Optional

from .evaluation import CHECKMATED_VALUE, MATE_PLY_BOUND, MATE_WEIGHT, is_mate_value
from .move_quality import MoveReview, Severity, rank_label, review_game
from .store import AnalysisStore, Game, Position

REPORT_FILE = "analysis.html"

# Move diffs below this are outliers (mates, hung queens) and skew the median
MEDIAN_DIFF_FLOOR = -1500

_SEVERITY_CLASS = {
    Severity.NONE: "",
    Severity.MEH: "meh",
    Severity.INACCURACY: "inacc",
    Severity.MISTAKE: "mistake",
    Severity.BLUNDER: "blunder",
    Severity.MEGABLUNDER: "megablunder",
}

CSS = """
body { font-family: sans-serif; background: #1e1e1e; color: #ddd; }
a { color: #8cf; }
.movetable { display: grid; grid-template-columns: 4em 5em 4em 3em 4em 5em 4em 3em 4em; gap: 2px 6px; margin-bottom: 2em; }
.movehdr { display: contents; }
.movehdrcell { grid-column: span 4; font-weight: bold; }
.movehdrcell + .movehdrcell { grid-column: span 5; }
.poseval { text-align: center; border-radius: 3px; cursor: pointer; }
.advW { background: #eee; color: #111; }
.advB { background: #333; color: #eee; }
.advSmall { outline: 1px solid #7a7; }
.advBig { outline: 2px solid #da3; }
.advHuge { outline: 2px solid #d33; }
.movediff, .moverank { text-align: right; }
.meh { color: #bb9; }
.inacc { color: #ec5; }
.mistake { color: #e83; }
.blunder { color: #f33; font-weight: bold; }
.megablunder { color: #f3f; font-weight: bold; }
.rank1 { color: #7c7; }
.rankN { color: #888; }
.moveend { grid-column: 1 / -1; font-style: italic; }
"""


def format_value(value: int) -> str:
    """Display form of a normalized value: pawns, or 'M n' for mates."""
    if not is_mate_value(value):
        return f"{value / 100.0:.1f}"
    return f"M {MATE_PLY_BOUND - abs(value) // MATE_WEIGHT}"


def _div(text: str, css_class: str, **attrs: str) -> str:
    extra = "".join(f' {k}="{escape(v)}"' for k, v in attrs.items())
    return f'<div class="{css_class}"{extra}>{escape(text)}</div>'


def _position_eval_cell(white_value: int, fen: str) -> str:
    """Evaluation cell from White's side; blank for a checkmated position."""
    if abs(white_value) == abs(CHECKMATED_VALUE):
        return _div("", "poseval")
    size = abs(white_value)
    css = "poseval " + ("advW" if white_value > 0 else "advB")
    if size > 550:
        css += " advHuge"
    elif size > 300:
        css += " advBig"
    elif size > 150:
        css += " advSmall"
    return _div(format_value(size), css, title=fen)


def _end_note(game: Game, position: Position) -> Optional[str]:
    termination = game.props.get("Termination", "")
    if termination.endswith("won by resignation"):
        loser_result = "1-0" if position.is_black_move else "0-1"
        return "(resigned)" if game.props.get("Result") == loser_result else "(opponent resigned)"
    if termination.endswith("won on time"):
        return "(out of time)"
    if termination.endswith("drawn by stalemate"):
        return "(stalemate)"
    return None


def median_diff(diffs: list[int]) -> Optional[float]:
    """Median move diff in pawns, ignoring outliers."""
    kept = sorted(d for d in diffs if d > MEDIAN_DIFF_FLOOR)
    if not kept:
        return None
    return kept[len(kept) // 2] / 100.0


def render_game(game: Game, depth: int) -> str:
    reviews = review_game(game, depth)
    parts = []
    started = game.started_at
    when = started.strftime("%d %b %Y at %H:%M:%S") if started else "unknown date"
    link = game.props.get("Link")
    when_html = f'<a href="{escape(link)}">{escape(when)}</a>' if link else escape(when)
    parts.append(f"<h3>Game {escape(game.hash)} starting on {when_html}</h3>")
    parts.append(f"<p>Analysis depth: {depth}</p>")

    cells = ['<div class="movehdr">']
    for color in ("White", "Black"):
        name = escape(game.props.get(color, "?"))
        elo = escape(game.props.get(color + "Elo", "?"))
        cells.append(f'<div class="movehdrcell {color}"><span>{name}</span> elo {elo}</div>')
    cells.append("</div>")

    diffs: dict[bool, list[int]] = {False: [], True: []}
    for review in reviews:
        cells.extend(_move_cells(game, review))
        if review.verdict is not None:
            diffs[review.position.is_black_move].append(review.verdict.diff)

    final = game.positions[-1]
    final_best = final.best_at(depth)
    if not game.props.get("Termination", "").endswith("won by checkmate") and final_best is not None:
        adjust = -1 if final.is_black_move else 1
        cells.append(_position_eval_cell(final_best.normalized_value * adjust, final.fen))
    note = _end_note(game, final)
    if note:
        cells.append(_div(note, "moveend"))

    cells.append('<div class="movehdr">')
    for is_black in (False, True):
        median = median_diff(diffs[is_black])
        text = f"Median move: {median:.2f}" if median is not None else "Median move: n/a"
        cells.append(_div(text, "movehdrcell"))
    cells.append("</div>")

    parts.append('<div class="movetable">' + "".join(cells) + "</div>")
    return "\n".join(parts)


def _move_cells(game: Game, review: MoveReview) -> list[str]:
    position = review.position
    adjust = -1 if position.is_black_move else 1
    cells = [
        _position_eval_cell(review.before.normalized_value * adjust, position.fen),
        _div(position.move_taken or "", "movetaken"),
    ]

    verdict = review.verdict
    if verdict is None:
        cells.append(_div("", "movediff"))
    else:
        cells.append(_div(verdict.display, f"movediff {_SEVERITY_CLASS[verdict.severity]}".rstrip()))

    rank_css = "moverank" + {1: " rank1", None: " rankN"}.get(review.rank, "")
    cells.append(_div(rank_label(review.rank), rank_css))

    if position.is_black_move:
        following = game.positions[review.index + 1]
        cells.append(_position_eval_cell(-review.after.normalized_value * adjust, following.fen))
    return cells


def render_report(store: AnalysisStore) -> str:
    body = []
    for game in store.games_by_start():
        depth = game.analysis_depth()
        if depth is None or len(game.positions) < 2:
            continue
        body.append(render_game(game, depth))
    return (
        '<!DOCTYPE html>\n<html><head><meta charset="utf-8">'
        f"<style>{CSS}</style></head>\n<body>\n" + "\n".join(body) + "\n</body></html>\n"
    )


def write_report(store: AnalysisStore, data_dir: str | Path) -> Path:
    path = Path(data_dir) / REPORT_FILE
    path.write_text(render_report(store), encoding="utf-8")
    return path
