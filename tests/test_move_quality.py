"""
Tests for the move quality classifier

One test class per transition. `after` is always given as the engine reports
it for the opponent, so "after = cp 30" means the mover is now 0.30 behind.
"""

import unittest

from batch_analyzer.evaluation import Evaluation
from batch_analyzer.move_quality import (
    MEGABLUNDER_DISPLAY,
    Severity,
    Transition,
    classify_move,
    classify_transition,
    move_rank,
    rank_label,
    review_game,
)

from helpers import cp, make_game, mate


class TestNoVerdict(unittest.TestCase):

    def test_game_over(self):
        self.assertIsNone(classify_move(cp(30), None))
        self.assertIsNone(classify_move(mate(1), Evaluation(raw_score=0, is_mate=True, depth=10)))
        self.assertIsNone(classify_move(cp(0), Evaluation(raw_score=0, is_mate=False, depth=10)))


class TestNormal(unittest.TestCase):

    def check(self, before, after, severity, display):
        verdict = classify_move(cp(before), cp(after))
        self.assertEqual(verdict.transition, Transition.NORMAL)
        self.assertEqual(verdict.severity, severity)
        self.assertEqual(verdict.display, display)

    def test_thresholds(self):
        self.check(100, 700, Severity.BLUNDER, "-8.0")
        self.check(0, 500, Severity.MISTAKE, "-5.0")
        self.check(0, 200, Severity.INACCURACY, "-2.0")
        self.check(0, 100, Severity.MEH, "-1.0")
        self.check(50, 30, Severity.NONE, "-0.8")

    def test_boundaries_are_exclusive(self):
        self.check(0, 90, Severity.NONE, "-0.9")
        self.check(0, 160, Severity.MEH, "-1.6")
        self.check(0, 700, Severity.MISTAKE, "-7.0")

    def test_improvement(self):
        self.check(0, -50, Severity.NONE, "0.5")

    def test_diff(self):
        self.assertEqual(classify_move(cp(120), cp(-40)).diff, -80)


class TestSideChanged(unittest.TestCase):

    def test_winning_mate_to_losing_mate(self):
        verdict = classify_move(mate(3), mate(5))
        self.assertEqual(verdict.transition, Transition.SIDE_CHANGED)
        self.assertEqual(verdict.severity, Severity.MEGABLUNDER)
        self.assertEqual(verdict.display, MEGABLUNDER_DISPLAY)

    def test_winning_position_to_mated(self):
        verdict = classify_move(cp(300), mate(4))
        self.assertEqual(verdict.transition, Transition.SIDE_CHANGED)
        self.assertEqual(verdict.severity, Severity.MEGABLUNDER)

    def test_winning_mate_to_opponent_winning(self):
        verdict = classify_move(mate(4), cp(250))
        self.assertEqual(verdict.transition, Transition.SIDE_CHANGED)
        self.assertEqual(verdict.severity, Severity.MEGABLUNDER)
        self.assertEqual(verdict.display, MEGABLUNDER_DISPLAY)

    def test_losing_mate_to_losing_position(self):
        self.assertEqual(classify_transition(mate(-3), cp(-200)), Transition.SIDE_CHANGED)


class TestMateKept(unittest.TestCase):

    def test_normal_progress(self):
        verdict = classify_move(mate(5), mate(-4))
        self.assertEqual(verdict.transition, Transition.MATE_KEPT)
        self.assertEqual(verdict.severity, Severity.NONE)
        self.assertEqual(verdict.display, "(−1)")

    def test_mate_much_further_away(self):
        verdict = classify_move(mate(3), mate(-12))
        self.assertEqual(verdict.severity, Severity.MISTAKE)
        self.assertEqual(verdict.display, "(+9)")

    def test_mate_somewhat_further_away(self):
        self.assertEqual(classify_move(mate(4), mate(-9)).severity, Severity.INACCURACY)

    def test_unchanged_distance(self):
        self.assertEqual(classify_move(mate(3), mate(-3)).display, "(0)")

    def test_losing_side(self):
        verdict = classify_move(mate(-3), mate(2))
        self.assertEqual(verdict.transition, Transition.MATE_KEPT)
        self.assertEqual(verdict.severity, Severity.NONE)


class TestLosingMateEscaped(unittest.TestCase):

    def test_escape(self):
        verdict = classify_move(mate(-3), cp(500))
        self.assertEqual(verdict.transition, Transition.LOSING_MATE_ESCAPED)
        self.assertEqual(verdict.severity, Severity.NONE)
        self.assertEqual(verdict.display, "(−mate)")


class TestWinningMateLost(unittest.TestCase):

    def check(self, mate_in, after, severity):
        verdict = classify_move(mate(mate_in), cp(after))
        self.assertEqual(verdict.transition, Transition.WINNING_MATE_LOST)
        self.assertEqual(verdict.display, "−mate")
        self.assertEqual(verdict.severity, severity)

    def test_short_mates(self):
        self.check(2, -900, Severity.BLUNDER)
        self.check(4, -900, Severity.MISTAKE)
        self.check(8, -900, Severity.INACCURACY)

    def test_long_mate(self):
        self.check(15, -900, Severity.NONE)

    def test_long_mate_with_little_left(self):
        self.check(15, -10, Severity.INACCURACY)


class TestMateConceded(unittest.TestCase):

    def check(self, before, mate_in, severity, display="+mate"):
        verdict = classify_move(cp(before), mate(mate_in))
        self.assertEqual(verdict.transition, Transition.MATE_CONCEDED)
        self.assertEqual(verdict.severity, severity)
        self.assertEqual(verdict.display, display)

    def test_from_playable_position(self):
        self.check(-300, 6, Severity.MEGABLUNDER, MEGABLUNDER_DISPLAY)

    def test_quick_mate_from_bad_position(self):
        self.check(-1000, 3, Severity.MEGABLUNDER, MEGABLUNDER_DISPLAY)

    def test_from_bad_position(self):
        self.check(-1000, 8, Severity.BLUNDER)

    def test_from_very_bad_position(self):
        self.check(-1600, 15, Severity.MISTAKE)
        self.check(-2500, 8, Severity.MISTAKE)

    def test_from_lost_position(self):
        self.check(-2500, 15, Severity.NONE)


class TestMateGained(unittest.TestCase):

    def test_gain(self):
        verdict = classify_move(cp(300), mate(-5))
        self.assertEqual(verdict.transition, Transition.MATE_GAINED)
        self.assertEqual(verdict.severity, Severity.NONE)
        self.assertEqual(verdict.display, "(+mate)")

    def test_gain_from_equal(self):
        self.assertEqual(classify_transition(cp(0), mate(-3)), Transition.MATE_GAINED)


class TestMoveRank(unittest.TestCase):

    def setUp(self):
        self.game = make_game("g", ["a w", "b b", "c w"])
        first, second, last = self.game.positions
        first.move_taken, second.move_taken = "e4", "c5"
        first.add_evaluations(10, [cp(30, move="e4", rank=1), cp(20, move="d4", rank=2)])
        second.add_evaluations(10, [cp(-20, move="e5", rank=1), cp(-40, move="c5", rank=2)])
        last.add_evaluations(10, [cp(40, move="Nf3", rank=1)])

    def test_rank(self):
        self.assertEqual(move_rank(self.game.positions[0], 10), 1)
        self.assertEqual(move_rank(self.game.positions[1], 10), 2)
        self.assertIsNone(move_rank(self.game.positions[2], 10))
        self.assertIsNone(move_rank(self.game.positions[0], 16))

    def test_labels(self):
        self.assertEqual(
            [rank_label(r) for r in (1, 2, 3, 4, 11, None)],
            ["1st", "2nd", "3rd", "4th", "11th", "?"],
        )

    def test_review_game(self):
        reviews = review_game(self.game, 10)
        self.assertEqual(len(reviews), 2)
        self.assertEqual([r.rank for r in reviews], [1, 2])
        self.assertEqual([r.verdict.diff for r in reviews], [-10, -20])

    def test_review_needs_complete_depth(self):
        with self.assertRaises(ValueError):
            review_game(self.game, 16)


if __name__ == "__main__":
    unittest.main()
