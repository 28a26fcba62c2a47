"""Balance ledger over two stores.

- Redis holds user:{player} and serves every read.
- The relational store (optional) answers deduct/credit with one conditioned
  UPDATE, which removes the read/then-write race for a single balance.
- This layer owns session boundaries; routers and the duel service never touch
  sessions directly.

KNOWN LIMITATION: Redis alone gives no compare-and-swap here, so the fallback
used when SQL is disabled, unreachable or has no row for the player is a plain
GET/compute/SET. A concurrent mutation between the GET and the SET is lost.
It is only tolerated because callers already serialize per player: the duel
claim lock admits one accept per challenge, and cooldowns throttle spins and
transfers.
"""

import logging

from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import async_sessionmaker

from slotduel.crud import UpdateData
from slotduel.keys import USER_PREFIX, kv_key
from slotduel.load_secrets import LedgerSettings
from slotduel.models.dc_models import DeductResultModel, SqlBalanceError

# Errors after which the SQL answer is not authoritative.
_FALLBACK_ERRORS = (SqlBalanceError.sql_unavailable, SqlBalanceError.user_not_found)


class BalanceStore:
    def __init__(
        self,
        redis: Redis,
        Session: async_sessionmaker | None,
        settings: LedgerSettings,
    ):
        """Initialize BalanceStore with both stores and the ledger flags.

        Session may be None, which is the same as settings.sql_enabled=False.
        """
        self.redis: Redis = redis
        self.Session: async_sessionmaker | None = Session
        self.settings: LedgerSettings = settings

    @property
    def sql_enabled(self) -> bool:
        return self.settings.sql_enabled and self.Session is not None

    @property
    def dual_write(self) -> bool:
        return self.sql_enabled and self.settings.dual_write

    def clamp(self, balance: int) -> int:
        return max(0, min(balance, self.settings.max_balance))

    async def get_balance(self, username: str) -> int:
        """Read the current balance from Redis

        Args:
            username (str): Player name

        Returns:
            int: Balance clamped to [0, max_balance]; 0 for unknown or corrupt values
        """
        value = await self.redis.get(kv_key(USER_PREFIX, username))
        if value is None:
            return 0
        try:
            balance = int(value)
        except ValueError:
            logging.error(f"Corrupt balance for {username}: {value!r}, reading it as 0")
            return 0
        return self.clamp(balance)

    async def set_balance(self, username: str, balance: int) -> int:
        """Overwrite a balance (admin and initial grants). Mirrors into SQL on dual write.

        Returns:
            int: The clamped balance that was stored
        """
        safe_balance = self.clamp(balance)
        await self.redis.set(kv_key(USER_PREFIX, username), str(safe_balance))
        await self._mirror_balance(username, safe_balance)
        return safe_balance

    async def grant_starting_balance(self, username: str) -> int:
        """Create a balance on a player's first qualifying action; existing balances are kept."""
        created = await self.redis.set(
            kv_key(USER_PREFIX, username), str(self.settings.starting_balance), nx=True
        )
        if created:
            logging.info(f"Granted starting balance to {username}")
            await self._mirror_balance(username, self.settings.starting_balance)
            return self.settings.starting_balance
        return await self.get_balance(username)

    async def adjust_balance(self, username: str, delta: int) -> int:
        """Signed read-modify-write on Redis. Not atomic, see the module docstring.

        Returns:
            int: The clamped new balance
        """
        current = await self.get_balance(username)
        new_balance = self.clamp(current + delta)
        await self.redis.set(kv_key(USER_PREFIX, username), str(new_balance))
        await self._mirror_balance(username, new_balance)
        return new_balance

    async def deduct(self, username: str, amount: int) -> DeductResultModel:
        """Subtract amount if the balance covers it

        Insufficient funds is an ordinary result (success=False), never an
        exception, and leaves the balance untouched.

        Args:
            username (str): Player name
            amount (int): Positive amount

        Returns:
            DeductResultModel: success flag and the balance after the call
        """
        if amount <= 0:
            raise ValueError(f"deduct amount must be positive, got {amount}")
        username = username.lower()

        if self.sql_enabled:
            async with self.Session() as session:
                result = await UpdateData.atomic_deduct_balance(username, amount, session)
            if result.error not in _FALLBACK_ERRORS:
                await self._sync_mirror_from_sql(username, result.new_balance)
                return DeductResultModel(success=result.success, new_balance=result.new_balance)

        logging.warning(
            f"Deducting {amount} from {username} with the non-atomic Redis fallback"
        )
        current = await self.get_balance(username)
        if current < amount:
            return DeductResultModel(success=False, new_balance=current)
        new_balance = await self.set_balance(username, current - amount)
        return DeductResultModel(success=True, new_balance=new_balance)

    async def credit(self, username: str, amount: int) -> int:
        """Add amount, capped at max_balance. The excess over the cap is dropped.

        The amount actually added is new_balance - old_balance.

        Args:
            username (str): Player name
            amount (int): Positive amount

        Returns:
            int: The balance after the call
        """
        if amount <= 0:
            raise ValueError(f"credit amount must be positive, got {amount}")
        username = username.lower()

        if self.sql_enabled:
            async with self.Session() as session:
                result = await UpdateData.atomic_adjust_balance(
                    username, amount, self.settings.max_balance, session
                )
            if result.success:
                await self._sync_mirror_from_sql(username, result.new_balance)
                return result.new_balance

        logging.warning(f"Crediting {amount} to {username} with the non-atomic Redis fallback")
        current = await self.get_balance(username)
        return await self.set_balance(username, current + amount)

    async def _mirror_balance(self, username: str, balance: int) -> None:
        if not self.dual_write:
            return
        async with self.Session() as session:
            await UpdateData.upsert_balance(username.lower(), balance, session)

    async def _sync_mirror_from_sql(self, username: str, balance: int) -> None:
        """Overwrite the Redis copy with a balance SQL already committed.

        A failure here leaves a stale mirror until the next write; the SQL
        change stands, so it is logged and not raised.
        """
        try:
            await self.redis.set(kv_key(USER_PREFIX, username), str(balance))
        except RedisError as e:
            logging.error(f"Failed to mirror SQL balance {balance} of {username} into Redis: {e}")
