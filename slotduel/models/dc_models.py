from pydantic import BaseModel
from enum import Enum
from typing import List, Optional

from slotduel.models.schema_models import DuelChallengeSchema


class AcceptFailureReason(str, Enum):
    not_found = "not_found"
    expired = "expired"
    already_claimed = "already_claimed"  # another accept for this instance is in flight
    race_condition = "race_condition"  # lost the delete-then-verify race
    error = "error"


class ChallengeFailureReason(str, Enum):
    self_challenge = "self_challenge"
    amount_too_low = "amount_too_low"
    already_pending = "already_pending"
    on_cooldown = "on_cooldown"
    target_opted_out = "target_opted_out"
    insufficient_funds = "insufficient_funds"
    target_insufficient_funds = "target_insufficient_funds"
    error = "error"


class DuelWinner(str, Enum):
    challenger = "challenger"
    target = "target"


class DuelStatus(str, Enum):
    no_duel = "no_duel"
    rejected = "rejected"  # accept_duel returned a failure reason
    voided = "voided"  # a stake was no longer covered at settlement time
    settled = "settled"


class SqlBalanceError(str, Enum):
    sql_unavailable = "sql_unavailable"
    user_not_found = "user_not_found"


class DeductResultModel(BaseModel):
    success: bool
    new_balance: int


class SqlBalanceResultModel(BaseModel):
    """Answer of a conditioned update. error set means the answer is not authoritative."""

    success: bool
    new_balance: int = 0
    error: Optional[SqlBalanceError] = None


class AcceptDuelResultModel(BaseModel):
    success: bool
    duel: Optional[DuelChallengeSchema] = None
    reason: Optional[AcceptFailureReason] = None


class ChallengeResultModel(BaseModel):
    success: bool
    duel: Optional[DuelChallengeSchema] = None
    reason: Optional[ChallengeFailureReason] = None
    cooldown_remaining: int = 0
    balance: Optional[int] = None


class DuelScoreModel(BaseModel):
    score: int
    is_triple: bool
    is_pair: bool
    symbol_sum: int
    description: str


class DuelResolutionModel(BaseModel):
    winner: Optional[DuelWinner]
    pot: int


class DuelOutcomeModel(BaseModel):
    status: DuelStatus
    duel: Optional[DuelChallengeSchema] = None
    reason: Optional[str] = None
    challenger_grid: List[str] = []
    target_grid: List[str] = []
    challenger_score: Optional[DuelScoreModel] = None
    target_score: Optional[DuelScoreModel] = None
    winner: Optional[str] = None  # player name, None on a tie
    pot: int = 0
    winner_balance: Optional[int] = None


class BalanceModel(BaseModel):
    player: str
    balance: int


class ChallengeRequestModel(BaseModel):
    challenger: str
    target: str
    amount: int


class PlayerRequestModel(BaseModel):
    player: str


class OptOutRequestModel(BaseModel):
    player: str
    opt_out: bool


class OptOutModel(BaseModel):
    player: str
    opt_out: bool


class CooldownModel(BaseModel):
    player: str
    remaining_seconds: int
