import logging
from typing import List

from sqlalchemy.ext.asyncio import async_sessionmaker

from slotduel.crud import SQL_FAULTS, CreateData, ReadData
from slotduel.load_secrets import LedgerSettings
from slotduel.models.schema_models import DuelHistorySchema, DuelLogSchema


class DuelLogWriter:
    """Append-only duel history in the relational store. Used for audit, never for gameplay."""

    def __init__(self, Session: async_sessionmaker | None, settings: LedgerSettings):
        self.Session: async_sessionmaker | None = Session
        self.settings: LedgerSettings = settings

    @property
    def enabled(self) -> bool:
        return self.settings.sql_enabled and self.Session is not None

    async def log_duel(self, duel_log: DuelLogSchema) -> None:
        """Write one finished duel. Failures are logged and swallowed."""
        if not self.enabled:
            return
        try:
            async with self.Session() as session:
                await CreateData.create_duel_log(duel_log, session)
        except SQL_FAULTS as e:
            logging.error(
                f"Failed to log duel {duel_log.challenger} vs {duel_log.target} "
                f"(amount={duel_log.amount}, winner={duel_log.winner}): {e}"
            )

    async def get_duel_history(self, username: str, limit: int = 10) -> List[DuelHistorySchema]:
        """Newest duels of a player, empty when the relational store is off or failing."""
        if not self.enabled:
            return []
        try:
            async with self.Session() as session:
                return await ReadData.read_duel_history(username.lower(), limit, session)
        except SQL_FAULTS as e:
            logging.error(f"Failed to read duel history of {username}: {e}")
            return []
