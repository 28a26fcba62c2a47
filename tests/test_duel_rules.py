"""Tests for the fair duel grid generator."""

import numpy as np

from slotduel.domain.duel_rules import (
    GRID_SIZE,
    SPECIAL_SYMBOL,
    SYMBOL_WEIGHTS,
    generate_duel_grid,
)


class AlwaysSpecialGenerator:
    def random(self):
        return 0.0

    def choice(self, *args, **kwargs):
        raise AssertionError("regular table must not be drawn when the special symbol hits")


class TestGenerateDuelGrid:
    def test_grid_has_three_known_symbols(self):
        rng = np.random.default_rng(7)
        allowed = set(SYMBOL_WEIGHTS) | {SPECIAL_SYMBOL}
        for _ in range(500):
            grid = generate_duel_grid(rng)
            assert len(grid) == GRID_SIZE
            assert set(grid) <= allowed
            assert all(isinstance(symbol, str) for symbol in grid)

    def test_same_seed_gives_same_grids(self):
        first = np.random.default_rng(42)
        second = np.random.default_rng(42)
        assert [generate_duel_grid(first) for _ in range(20)] == [
            generate_duel_grid(second) for _ in range(20)
        ]

    def test_special_symbol_short_circuits_weighted_draw(self):
        assert generate_duel_grid(AlwaysSpecialGenerator()) == [SPECIAL_SYMBOL] * GRID_SIZE

    def test_distribution_follows_weights(self):
        rng = np.random.default_rng(2024)
        counts = dict.fromkeys(SYMBOL_WEIGHTS, 0)
        for _ in range(4000):
            for symbol in generate_duel_grid(rng):
                if symbol in counts:
                    counts[symbol] += 1
        # Cherries (24) are drawn clearly more often than stars (10).
        assert counts["🍒"] > counts["⭐"] * 1.5
