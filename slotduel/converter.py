import logging

from pydantic import ValidationError

from slotduel.models.dc_models import DuelOutcomeModel
from slotduel.models.schema_models import (
    DuelChallengeSchema,
    DuelDataSchema,
    DuelLogSchema,
)


class DataConverter:
    """This class is used to convert duel data between stored and in-memory formats."""

    def convert_challenge_to_json(self, challenge: DuelChallengeSchema) -> str:
        """Serialize a challenge to the JSON stored under duel:{challenger}

        Args:
            challenge (DuelChallengeSchema): The pending challenge

        Returns:
            str: {"target", "amount", "createdAt"}
        """
        duel_data = DuelDataSchema(
            target=challenge.target.lower(),
            amount=challenge.amount,
            created_at=challenge.created_at,
        )
        return duel_data.model_dump_json(by_alias=True)

    def convert_json_to_challenge(self, challenger: str, value: str) -> DuelChallengeSchema | None:
        """Parse the stored JSON back into a challenge

        Args:
            challenger (str): Player the key belongs to
            value (str): Raw value read from Redis

        Returns:
            DuelChallengeSchema: The challenge, None when the value is corrupt
        """
        try:
            duel_data = DuelDataSchema.model_validate_json(value)
        except ValidationError as e:
            logging.error(f"Malformed duel record for {challenger}: {value!r} ({e})")
            return None
        return DuelChallengeSchema(
            challenger=challenger.lower(),
            target=duel_data.target,
            amount=duel_data.amount,
            created_at=duel_data.created_at,
        )

    def convert_outcome_to_duel_log(self, outcome: DuelOutcomeModel) -> DuelLogSchema:
        """Build the immutable log record of a settled duel

        Args:
            outcome (DuelOutcomeModel): A settled outcome, grids and scores filled

        Returns:
            DuelLogSchema: Record handed to the duel log
        """
        return DuelLogSchema(
            challenger=outcome.duel.challenger,
            target=outcome.duel.target,
            amount=outcome.duel.amount,
            challenger_grid=outcome.challenger_grid,
            target_grid=outcome.target_grid,
            challenger_score=outcome.challenger_score.score,
            target_score=outcome.target_score.score,
            winner=outcome.winner,
            pot=outcome.pot,
        )
