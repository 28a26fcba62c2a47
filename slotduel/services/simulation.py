import numpy as np

from slotduel.domain.duel_rules import generate_duel_grid
from slotduel.models.dc_models import DuelScoreModel
from slotduel.score_utils import ScoreUtils


def simulate_duel(
    *,
    rng: np.random.Generator,
    score_utils: ScoreUtils,
) -> tuple[list[str], list[str], DuelScoreModel, DuelScoreModel]:
    """Spin one fair grid per duellist and score both.

    Challenger draws first, then target, from the same generator.
    """
    challenger_grid = generate_duel_grid(rng)
    target_grid = generate_duel_grid(rng)
    challenger_score = score_utils.calculate_duel_score(challenger_grid)
    target_score = score_utils.calculate_duel_score(target_grid)
    return challenger_grid, target_grid, challenger_score, target_score
