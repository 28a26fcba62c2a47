"""Duel rules that are independent from Redis, SQL and HTTP.

Rule of thumb:
- OK: symbol tables, weighted draws, score constants.
- Not OK: touching stores, reading the clock, creating an unseeded generator
  inside a rule function.
"""

import numpy as np

GRID_SIZE = 3

SPECIAL_SYMBOL = "🦡"
SPECIAL_SYMBOL_CHANCE = 1 / 150

# Regular symbol weights (total 120).
SYMBOL_WEIGHTS = {
    "🍒": 24,
    "🍋": 20,
    "🍊": 19,
    "💎": 21,
    "🍇": 15,
    "🍉": 11,
    "⭐": 10,
}

# Per-symbol points, used as tie-breaker and as the no-match score.
DUEL_SYMBOL_VALUES = {
    "🦡": 500,
    "💎": 100,
    "⭐": 25,
    "🍉": 13,
    "🍇": 8,
    "🍊": 5,
    "🍋": 4,
    "🍒": 3,
}

# Categories stay disjoint: best no-match sum (625) < PAIR_OFFSET and
# PAIR_OFFSET + best pair sum (1100) < TRIPLE_OFFSET.
DUEL_SCORE_PAIR_OFFSET = 1_000
DUEL_SCORE_TRIPLE_OFFSET = 10_000

_SYMBOLS = np.array(list(SYMBOL_WEIGHTS.keys()))
_PROBABILITIES = np.array(list(SYMBOL_WEIGHTS.values()), dtype=np.float64)
_PROBABILITIES /= _PROBABILITIES.sum()


def get_weighted_symbol(rng: np.random.Generator) -> str:
    """Draw one regular symbol from SYMBOL_WEIGHTS."""
    return str(rng.choice(_SYMBOLS, p=_PROBABILITIES))


def generate_duel_grid(rng: np.random.Generator) -> list[str]:
    """Generate a fair duel grid.

    Every draw uses the same unmodified distribution: no buffs, boosts or
    peeks exist for duels, so both players always face identical odds.

    Args:
        rng: Generator supplied by the caller (seeded in tests).

    Returns:
        list[str]: GRID_SIZE symbols.
    """
    grid = []
    for _ in range(GRID_SIZE):
        if rng.random() < SPECIAL_SYMBOL_CHANCE:
            grid.append(SPECIAL_SYMBOL)
        else:
            grid.append(get_weighted_symbol(rng))
    return grid
