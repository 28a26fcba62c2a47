from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import case, desc, or_, select, update
from datetime import datetime
from typing import List
import logging

from slotduel.models.dc_models import SqlBalanceError, SqlBalanceResultModel
from slotduel.models.schema_models import DuelHistorySchema, DuelLogSchema, UserSchema
from slotduel.models.schemas import DuelLog, User

# Raised by drivers when the database cannot be reached at all.
SQL_FAULTS = (SQLAlchemyError, OSError)


class UpdateData:
    @staticmethod
    async def atomic_deduct_balance(
        username: str, amount: int, session: AsyncSession
    ) -> SqlBalanceResultModel:
        """Subtract amount only if the stored balance covers it, in one statement

        Args:
            username (str): Lower-cased player name
            amount (int): Positive amount to subtract

        Returns:
            SqlBalanceResultModel: success=False with the current balance if it is too low,
                error set if the database could not answer
        """
        async with session:
            try:
                stmt = (
                    update(User)
                    .where(User.username == username, User.balance >= amount)
                    .values(balance=User.balance - amount, updated_at=datetime.now())
                    .returning(User.balance)
                    .execution_options(synchronize_session=False)
                )
                result = await session.execute(stmt)
                new_balance = result.scalar_one_or_none()
                if new_balance is not None:
                    await session.commit()
                    return SqlBalanceResultModel(success=True, new_balance=new_balance)

                await session.rollback()
                current = await session.scalar(
                    select(User.balance).where(User.username == username)
                )
                if current is None:
                    return SqlBalanceResultModel(
                        success=False, error=SqlBalanceError.user_not_found
                    )
                return SqlBalanceResultModel(success=False, new_balance=current)
            except SQL_FAULTS as e:
                logging.warning(f"Failed to deduct balance in SQL for {username}: {e}")
                return SqlBalanceResultModel(
                    success=False, error=SqlBalanceError.sql_unavailable
                )

    @staticmethod
    async def atomic_adjust_balance(
        username: str, amount: int, max_balance: int, session: AsyncSession
    ) -> SqlBalanceResultModel:
        """Add amount and cap the result at max_balance, in one statement

        Args:
            username (str): Lower-cased player name
            amount (int): Amount to add
            max_balance (int): Upper bound of any balance

        Returns:
            SqlBalanceResultModel: The capped balance, or error set if the database could not answer
        """
        async with session:
            try:
                raised = User.balance + amount
                stmt = (
                    update(User)
                    .where(User.username == username)
                    .values(
                        balance=case((raised > max_balance, max_balance), else_=raised),
                        updated_at=datetime.now(),
                    )
                    .returning(User.balance)
                    .execution_options(synchronize_session=False)
                )
                result = await session.execute(stmt)
                new_balance = result.scalar_one_or_none()
                if new_balance is None:
                    await session.rollback()
                    return SqlBalanceResultModel(
                        success=False, error=SqlBalanceError.user_not_found
                    )
                await session.commit()
                return SqlBalanceResultModel(success=True, new_balance=new_balance)
            except SQL_FAULTS as e:
                logging.warning(f"Failed to credit balance in SQL for {username}: {e}")
                return SqlBalanceResultModel(
                    success=False, error=SqlBalanceError.sql_unavailable
                )

    @staticmethod
    async def upsert_balance(username: str, balance: int, session: AsyncSession) -> bool:
        """Mirror a balance written to the key/value store. Last writer wins.

        Args:
            username (str): Lower-cased player name
            balance (int): Already clamped balance
        """
        async with session:
            try:
                user = await session.get(User, username)
                if user is None:
                    session.add(User(username=username, balance=balance))
                else:
                    user.balance = balance
                    user.updated_at = datetime.now()
                await session.commit()
                return True
            except SQL_FAULTS as e:
                logging.error(f"Failed to mirror balance for {username}: {e}")
                return False

    @staticmethod
    async def update_duel_opt_out(username: str, opt_out: bool, session: AsyncSession) -> bool:
        """Mirror the opt-out flag onto an existing user row

        A missing row is left alone: inserting it would create a zero balance
        the conditioned updates would then treat as authoritative.
        """
        async with session:
            try:
                stmt = (
                    update(User)
                    .where(User.username == username)
                    .values(duel_opt_out=opt_out, updated_at=datetime.now())
                    .execution_options(synchronize_session=False)
                )
                await session.execute(stmt)
                await session.commit()
                return True
            except SQL_FAULTS as e:
                logging.error(f"Failed to mirror duel opt-out for {username}: {e}")
                return False


class ReadData:
    @staticmethod
    async def read_user_data(username: str, session: AsyncSession) -> UserSchema | None:
        """Read one user row

        Args:
            username (str): Lower-cased player name

        Returns:
            UserSchema: The row, None if missing
        """
        async with session:
            result = await session.get(User, username)
            if result is None:
                return None
            return UserSchema.model_validate(result)

    @staticmethod
    async def read_duel_history(
        username: str, limit: int, session: AsyncSession
    ) -> List[DuelHistorySchema]:
        """Read the newest duels a player took part in

        Args:
            username (str): Lower-cased player name
            limit (int): Maximum number of rows

        Returns:
            List[DuelHistorySchema]: Newest first
        """
        async with session:
            stmt = (
                select(DuelLog)
                .where(or_(DuelLog.challenger == username, DuelLog.target == username))
                .order_by(desc(DuelLog.created_at))
                .limit(limit)
            )
            result = await session.execute(stmt)
            return [DuelHistorySchema.model_validate(row) for row in result.scalars().all()]


class CreateData:
    @staticmethod
    async def create_duel_log(duel_log: DuelLogSchema, session: AsyncSession):
        """Append a finished duel. Rows are never updated afterwards.

        Args:
            duel_log (DuelLogSchema): Both grids, both scores, winner and pot
        """
        async with session:
            new_duel_log = DuelLog(
                challenger=duel_log.challenger.lower(),
                target=duel_log.target.lower(),
                amount=duel_log.amount,
                challenger_grid=duel_log.challenger_grid,
                target_grid=duel_log.target_grid,
                challenger_score=duel_log.challenger_score,
                target_score=duel_log.target_score,
                winner=duel_log.winner.lower() if duel_log.winner else None,
                pot=duel_log.pot,
            )
            session.add(new_duel_log)
            await session.commit()
