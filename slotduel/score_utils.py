import logging
from typing import List

from slotduel.domain.duel_rules import (
    DUEL_SCORE_PAIR_OFFSET,
    DUEL_SCORE_TRIPLE_OFFSET,
    DUEL_SYMBOL_VALUES,
)
from slotduel.models.dc_models import DuelResolutionModel, DuelScoreModel, DuelWinner


class ScoreUtils:
    def get_symbol_value(self, symbol: str) -> int:
        """Look up the duel point value of one symbol

        Args:
            symbol (str): Symbol drawn into a grid

        Returns:
            int: Point value, 0 for a symbol missing from the table
        """
        value = DUEL_SYMBOL_VALUES.get(symbol)
        if value is None:
            logging.error(f"Unknown duel symbol {symbol!r}, scoring it as 0")
            return 0
        return value

    def get_symbol_sum(self, grid: List[str]) -> int:
        return sum(self.get_symbol_value(symbol) for symbol in grid)

    def calculate_duel_score(self, grid: List[str]) -> DuelScoreModel:
        """Score a duel grid: triple > adjacent pair > symbol sum

        Only positions 1+2 or 2+3 form a pair; 1+3 alone does not.

        Args:
            grid (List[str]): Three symbols

        Returns:
            DuelScoreModel: Comparable score and the category it came from
        """
        symbol_sum = self.get_symbol_sum(grid)

        if grid[0] == grid[1] == grid[2]:
            return DuelScoreModel(
                score=DUEL_SCORE_TRIPLE_OFFSET + symbol_sum,
                is_triple=True,
                is_pair=False,
                symbol_sum=symbol_sum,
                description=f"Triple {grid[0]}!",
            )

        if grid[0] == grid[1] or grid[1] == grid[2]:
            pair_symbol = grid[0] if grid[0] == grid[1] else grid[1]
            return DuelScoreModel(
                score=DUEL_SCORE_PAIR_OFFSET + symbol_sum,
                is_triple=False,
                is_pair=True,
                symbol_sum=symbol_sum,
                description=f"Pair {pair_symbol}!",
            )

        return DuelScoreModel(
            score=symbol_sum,
            is_triple=False,
            is_pair=False,
            symbol_sum=symbol_sum,
            description=f"{symbol_sum} points",
        )


def resolve_duel(challenger_score: int, target_score: int, amount: int) -> DuelResolutionModel:
    """Decide the winner of a duel. Equal scores are a true tie.

    Args:
        challenger_score (int): Score of the challenger's grid
        target_score (int): Score of the target's grid
        amount (int): Wager of each player

    Returns:
        DuelResolutionModel: Winning side (None on a tie) and the pot
    """
    winner = None
    if challenger_score > target_score:
        winner = DuelWinner.challenger
    elif target_score > challenger_score:
        winner = DuelWinner.target
    return DuelResolutionModel(winner=winner, pot=amount * 2)
