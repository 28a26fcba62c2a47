"""Duel use cases: challenge, accept + settle, decline, opt-out.

FLOW:
1. challenge: validate, store duel:{challenger}, start cooldown, schedule timeout
2. accept: find incoming, race-safe accept, re-check stakes, spin, settle, log
3. decline / timeout: the challenge is deleted, no money moves

Settlement debits only the loser and credits only the net winnings to the
winner; the winner's own stake is never touched. The loser is always debited
first. There is no transaction spanning both players, so a failure between the
two steps leaves the loser debited and the winner unpaid: that case is raised
as SettlementError and logged at CRITICAL for reconciliation.
"""

import logging

import numpy as np

from slotduel.converter import DataConverter
from slotduel.load_secrets import LedgerSettings
from slotduel.models.dc_models import (
    ChallengeFailureReason,
    ChallengeResultModel,
    DuelOutcomeModel,
    DuelScoreModel,
    DuelStatus,
    DuelWinner,
)
from slotduel.models.schema_models import DuelChallengeSchema
from slotduel.score_utils import ScoreUtils, resolve_duel
from slotduel.services.balance_store import BalanceStore
from slotduel.services.duel_alarm import DuelTimeoutAlarm
from slotduel.services.duel_log import DuelLogWriter
from slotduel.services.duel_registry import DuelRegistry
from slotduel.services.simulation import simulate_duel

data_converter = DataConverter()


class SettlementError(RuntimeError):
    """Funds were half-moved: the loser was debited but the winner was not credited."""


class DuelService:
    def __init__(
        self,
        balance_store: BalanceStore,
        registry: DuelRegistry,
        duel_log: DuelLogWriter,
        settings: LedgerSettings,
        alarm: DuelTimeoutAlarm | None = None,
        rng: np.random.Generator | None = None,
    ):
        self.balance_store: BalanceStore = balance_store
        self.registry: DuelRegistry = registry
        self.duel_log: DuelLogWriter = duel_log
        self.settings: LedgerSettings = settings
        self.alarm: DuelTimeoutAlarm | None = alarm
        self.rng: np.random.Generator = rng if rng is not None else np.random.default_rng()
        self.score_utils = ScoreUtils()

    async def challenge(self, challenger: str, target: str, amount: int) -> ChallengeResultModel:
        """Issue a challenge after every precondition holds

        Args:
            challenger (str): Player issuing the challenge
            target (str): Player being challenged
            amount (int): Wager of each player

        Returns:
            ChallengeResultModel: The stored challenge, or the first failed precondition
        """
        challenger = challenger.lower()
        target = target.lower()

        if challenger == target:
            return ChallengeResultModel(success=False, reason=ChallengeFailureReason.self_challenge)
        if amount < self.settings.duel_min_amount:
            return ChallengeResultModel(success=False, reason=ChallengeFailureReason.amount_too_low)
        if await self.registry.has_active_duel(challenger):
            return ChallengeResultModel(success=False, reason=ChallengeFailureReason.already_pending)

        cooldown_remaining = await self.registry.get_cooldown_remaining(challenger)
        if cooldown_remaining > 0:
            return ChallengeResultModel(
                success=False,
                reason=ChallengeFailureReason.on_cooldown,
                cooldown_remaining=cooldown_remaining,
            )
        if await self.registry.is_opted_out(target):
            return ChallengeResultModel(success=False, reason=ChallengeFailureReason.target_opted_out)

        challenger_balance = await self.balance_store.get_balance(challenger)
        if challenger_balance < amount:
            return ChallengeResultModel(
                success=False,
                reason=ChallengeFailureReason.insufficient_funds,
                balance=challenger_balance,
            )
        if await self.balance_store.get_balance(target) < amount:
            return ChallengeResultModel(
                success=False, reason=ChallengeFailureReason.target_insufficient_funds
            )

        created_at = self.registry.now_ms()
        if not await self.registry.create_duel(challenger, target, amount, created_at=created_at):
            # Lost against a concurrent challenge of the same challenger, or Redis failed.
            if await self.registry.has_active_duel(challenger):
                return ChallengeResultModel(
                    success=False, reason=ChallengeFailureReason.already_pending
                )
            return ChallengeResultModel(success=False, reason=ChallengeFailureReason.error)

        await self.registry.set_cooldown(challenger)
        duel = DuelChallengeSchema(
            challenger=challenger, target=target, amount=amount, created_at=created_at
        )
        if self.alarm is not None:
            self.alarm.schedule_timeout(duel)
        logging.info(f"{challenger} challenged {target} for {amount}")
        return ChallengeResultModel(success=True, duel=duel)

    async def accept(self, target: str) -> DuelOutcomeModel:
        """Accept the incoming challenge of target, spin both grids and settle

        Args:
            target (str): Player accepting

        Returns:
            DuelOutcomeModel: no_duel, rejected (accept reason), voided or settled
        """
        incoming = await self.registry.find_incoming_duel(target)
        if incoming is None:
            return DuelOutcomeModel(status=DuelStatus.no_duel)

        accepted = await self.registry.accept_duel(incoming.challenger)
        if not accepted.success:
            return DuelOutcomeModel(
                status=DuelStatus.rejected, duel=incoming, reason=accepted.reason.value
            )
        duel = accepted.duel
        if self.alarm is not None:
            self.alarm.cancel_timeout(duel.challenger)

        # Stakes may have changed since the challenge was issued.
        if await self.balance_store.get_balance(duel.challenger) < duel.amount:
            return DuelOutcomeModel(
                status=DuelStatus.voided, duel=duel, reason="challenger_insufficient_funds"
            )
        if await self.balance_store.get_balance(duel.target) < duel.amount:
            return DuelOutcomeModel(
                status=DuelStatus.voided, duel=duel, reason="target_insufficient_funds"
            )

        challenger_grid, target_grid, challenger_score, target_score = simulate_duel(
            rng=self.rng, score_utils=self.score_utils
        )
        return await self.settle_duel(
            duel, challenger_grid, target_grid, challenger_score, target_score
        )

    async def settle_duel(
        self,
        duel: DuelChallengeSchema,
        challenger_grid: list[str],
        target_grid: list[str],
        challenger_score: DuelScoreModel,
        target_score: DuelScoreModel,
    ) -> DuelOutcomeModel:
        """Move the wager from loser to winner and write the duel log

        Args:
            duel (DuelChallengeSchema): The accepted challenge
            challenger_grid (list[str]): Challenger's symbols
            target_grid (list[str]): Target's symbols
            challenger_score (DuelScoreModel): Score of challenger_grid
            target_score (DuelScoreModel): Score of target_grid

        Raises:
            SettlementError: The loser was debited but crediting the winner failed

        Returns:
            DuelOutcomeModel: settled, or voided if the loser no longer covers the wager
        """
        resolution = resolve_duel(challenger_score.score, target_score.score, duel.amount)
        outcome = DuelOutcomeModel(
            status=DuelStatus.settled,
            duel=duel,
            challenger_grid=challenger_grid,
            target_grid=target_grid,
            challenger_score=challenger_score,
            target_score=target_score,
            pot=resolution.pot,
        )

        if resolution.winner is not None:
            if resolution.winner == DuelWinner.challenger:
                winner, loser = duel.challenger, duel.target
                loser_role = DuelWinner.target
            else:
                winner, loser = duel.target, duel.challenger
                loser_role = DuelWinner.challenger

            # Checked against the balance at settlement time, not at challenge time.
            deducted = await self.balance_store.deduct(loser, duel.amount)
            if not deducted.success:
                logging.info(
                    f"Duel {duel.challenger} vs {duel.target} voided: "
                    f"{loser} has {deducted.new_balance} < {duel.amount}"
                )
                return outcome.model_copy(
                    update={
                        "status": DuelStatus.voided,
                        "reason": f"{loser_role.value}_insufficient_funds",
                    }
                )

            try:
                winner_balance = await self.balance_store.credit(winner, duel.amount)
            except Exception as e:
                logging.critical(
                    f"Duel settlement half-moved: {loser} debited {duel.amount} but crediting "
                    f"{winner} failed (challenger={duel.challenger}, target={duel.target}, "
                    f"created_at={duel.created_at}): {e}"
                )
                raise SettlementError(
                    f"{loser} debited {duel.amount}, {winner} not credited"
                ) from e

            outcome = outcome.model_copy(
                update={"winner": winner, "winner_balance": winner_balance}
            )

        await self.duel_log.log_duel(data_converter.convert_outcome_to_duel_log(outcome))
        logging.info(
            f"Duel {duel.challenger} vs {duel.target} settled: "
            f"{challenger_score.score} vs {target_score.score}, winner={outcome.winner}"
        )
        return outcome

    async def decline(self, target: str) -> DuelChallengeSchema | None:
        """Decline the incoming challenge of target

        Returns:
            DuelChallengeSchema: The declined challenge, None if there was none
        """
        incoming = await self.registry.find_incoming_duel(target)
        if incoming is None:
            return None
        if not await self.registry.decline_duel(incoming.challenger):
            return None
        if self.alarm is not None:
            self.alarm.cancel_timeout(incoming.challenger)
        logging.info(f"{target} declined the duel of {incoming.challenger}")
        return incoming
