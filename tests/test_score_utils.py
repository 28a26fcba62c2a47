"""Tests for duel scoring and winner resolution."""

from itertools import product

from slotduel.domain.duel_rules import (
    DUEL_SCORE_PAIR_OFFSET,
    DUEL_SCORE_TRIPLE_OFFSET,
    DUEL_SYMBOL_VALUES,
)
from slotduel.models.dc_models import DuelWinner
from slotduel.score_utils import ScoreUtils, resolve_duel

score_utils = ScoreUtils()
ALL_GRIDS = [list(grid) for grid in product(DUEL_SYMBOL_VALUES.keys(), repeat=3)]


class TestCalculateDuelScore:
    def test_triple(self):
        result = score_utils.calculate_duel_score(["⭐", "⭐", "⭐"])
        assert result.is_triple
        assert not result.is_pair
        assert result.symbol_sum == 75
        assert result.score == DUEL_SCORE_TRIPLE_OFFSET + 75

    def test_pair_in_first_two_positions(self):
        result = score_utils.calculate_duel_score(["🍒", "🍒", "💎"])
        assert result.is_pair
        assert result.score == DUEL_SCORE_PAIR_OFFSET + 106
        assert "🍒" in result.description

    def test_pair_in_last_two_positions(self):
        result = score_utils.calculate_duel_score(["💎", "🍋", "🍋"])
        assert result.is_pair
        assert result.score == DUEL_SCORE_PAIR_OFFSET + 108
        assert "🍋" in result.description

    def test_outer_positions_are_not_a_pair(self):
        result = score_utils.calculate_duel_score(["🍉", "🍒", "🍉"])
        assert not result.is_pair
        assert not result.is_triple
        assert result.score == 29

    def test_no_match_scores_symbol_sum(self):
        result = score_utils.calculate_duel_score(["🦡", "💎", "⭐"])
        assert result.score == 625
        assert result.description == "625 points"

    def test_unknown_symbol_counts_zero(self, caplog):
        result = score_utils.calculate_duel_score(["🍒", "❓", "🍋"])
        assert result.score == 7
        assert "Unknown duel symbol" in caplog.text


class TestCategoryOrdering:
    def test_every_triple_beats_every_pair_beats_every_no_match(self):
        scores = [score_utils.calculate_duel_score(grid) for grid in ALL_GRIDS]
        triples = [s.score for s in scores if s.is_triple]
        pairs = [s.score for s in scores if s.is_pair]
        no_matches = [s.score for s in scores if not s.is_triple and not s.is_pair]

        assert len(triples) == len(DUEL_SYMBOL_VALUES)
        assert min(triples) > max(pairs)
        assert min(pairs) > max(no_matches)


class TestResolveDuel:
    def test_challenger_wins(self):
        resolution = resolve_duel(10_075, 12, 200)
        assert resolution.winner == DuelWinner.challenger
        assert resolution.pot == 400

    def test_target_wins(self):
        resolution = resolve_duel(12, 1_020, 150)
        assert resolution.winner == DuelWinner.target
        assert resolution.pot == 300

    def test_equal_category_and_sum_is_a_tie(self):
        for first in ALL_GRIDS[::7]:
            for second in ALL_GRIDS[::11]:
                a = score_utils.calculate_duel_score(first)
                b = score_utils.calculate_duel_score(second)
                same = (a.is_triple, a.is_pair, a.symbol_sum) == (b.is_triple, b.is_pair, b.symbol_sum)
                if same:
                    assert resolve_duel(a.score, b.score, 100).winner is None

    def test_mirrored_no_match_grids_tie(self):
        a = score_utils.calculate_duel_score(["🍒", "🍋", "🍊"])
        b = score_utils.calculate_duel_score(["🍊", "🍋", "🍒"])
        assert resolve_duel(a.score, b.score, 100).winner is None
