"""Duel challenge registry on Redis.

KEYS:
- duel:{challenger} -> {"target", "amount", "createdAt"}; one pending challenge per challenger
- duel:{challenger}:claim:{createdAt} -> "1"; claim marker of one accept attempt
- duel_optout:{player} -> "true"
- duel_cooldown:{player} -> epoch ms after which a new challenge may be issued

There is no index of "challenges aimed at me": the target side scans duel:*.
Expired challenges are removed lazily whenever a read meets them.
"""

import logging
import math
import time
from typing import Callable

from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import async_sessionmaker

from slotduel.converter import DataConverter
from slotduel.crud import UpdateData
from slotduel.keys import (
    DUEL_COOLDOWN_PREFIX,
    DUEL_OPTOUT_PREFIX,
    DUEL_PREFIX,
    KV_TRUE,
    claim_key,
    is_challenge_key,
    kv_key,
)
from slotduel.load_secrets import LedgerSettings
from slotduel.models.dc_models import AcceptDuelResultModel, AcceptFailureReason
from slotduel.models.schema_models import DuelChallengeSchema

data_converter = DataConverter()


class DuelRegistry:
    def __init__(
        self,
        redis: Redis,
        settings: LedgerSettings,
        Session: async_sessionmaker | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize DuelRegistry.

        Args:
            redis (Redis): Key/value store holding every duel key
            settings (LedgerSettings): Timeouts, cooldown and claim TTL
            Session (async_sessionmaker, optional): Used to mirror opt-out flags on dual write
            clock (Callable[[], float], optional): Epoch seconds. Defaults to time.time.
        """
        self.redis: Redis = redis
        self.settings: LedgerSettings = settings
        self.Session: async_sessionmaker | None = Session
        self.clock: Callable[[], float] = clock

    def now_ms(self) -> int:
        return int(self.clock() * 1000)

    def is_expired(self, challenge: DuelChallengeSchema) -> bool:
        return self.now_ms() > challenge.created_at + self.settings.duel_timeout_seconds * 1000

    async def create_duel(
        self, challenger: str, target: str, amount: int, created_at: int | None = None
    ) -> bool:
        """Store a new pending challenge

        Refuses to overwrite a pending challenge of the same challenger.
        Balance, cooldown and opt-out checks belong to the caller.

        Args:
            challenger (str): Player issuing the challenge
            target (str): Player being challenged
            amount (int): Wager of each player
            created_at (int, optional): Epoch ms. Defaults to now.

        Returns:
            bool: True if the challenge was stored
        """
        if challenger.lower() == target.lower():
            return False
        if amount < self.settings.duel_min_amount:
            return False

        challenge = DuelChallengeSchema(
            challenger=challenger.lower(),
            target=target.lower(),
            amount=amount,
            created_at=created_at if created_at is not None else self.now_ms(),
        )
        key = kv_key(DUEL_PREFIX, challenger)
        value = data_converter.convert_challenge_to_json(challenge)
        ttl = self.settings.duel_timeout_seconds + 10
        try:
            if await self.redis.set(key, value, ex=ttl, nx=True):
                return True
            # The slot may hold an expired or malformed challenge whose key TTL has not run out yet.
            stored = await self.redis.get(key)
            if stored is not None:
                existing = data_converter.convert_json_to_challenge(challenger, stored)
                if existing is not None and not self.is_expired(existing):
                    return False
                await self.redis.delete(key)
            return bool(await self.redis.set(key, value, ex=ttl, nx=True))
        except RedisError as e:
            logging.error(f"Failed to create duel {challenger} -> {target} ({amount}): {e}")
            return False

    async def get_duel(self, challenger: str) -> DuelChallengeSchema | None:
        """Read the pending challenge of a challenger; an expired one is deleted and reported absent."""
        key = kv_key(DUEL_PREFIX, challenger)
        value = await self.redis.get(key)
        if value is None:
            return None
        challenge = data_converter.convert_json_to_challenge(challenger, value)
        if challenge is None:
            return None
        if self.is_expired(challenge):
            await self.redis.delete(key)
            return None
        return challenge

    async def has_active_duel(self, challenger: str) -> bool:
        return await self.get_duel(challenger) is not None

    async def find_incoming_duel(self, target: str) -> DuelChallengeSchema | None:
        """Find a pending challenge aimed at target by scanning every challenge

        Expired challenges met during the scan are deleted.

        Args:
            target (str): Player looking for an incoming challenge

        Returns:
            DuelChallengeSchema: The first live challenge found, None otherwise
        """
        target = target.lower()
        async for key in self.redis.scan_iter(match=f"{DUEL_PREFIX}*"):
            if not is_challenge_key(key):
                continue
            value = await self.redis.get(key)
            if value is None:
                continue
            challenger = key[len(DUEL_PREFIX):]
            challenge = data_converter.convert_json_to_challenge(challenger, value)
            if challenge is None:
                continue
            if self.is_expired(challenge):
                await self.redis.delete(key)
                continue
            if challenge.target == target:
                return challenge
        return None

    async def delete_duel(self, challenger: str) -> bool:
        """Delete a pending challenge

        Returns:
            bool: True if a challenge was removed
        """
        try:
            return await self.redis.delete(kv_key(DUEL_PREFIX, challenger)) > 0
        except RedisError as e:
            logging.error(f"Failed to delete duel of {challenger}: {e}")
            return False

    async def decline_duel(self, challenger: str) -> bool:
        """PENDING -> EMPTY without settlement."""
        return await self.delete_duel(challenger)

    async def accept_duel(self, challenger: str) -> AcceptDuelResultModel:
        """Accept a pending challenge; exactly one of several concurrent calls succeeds

        Redis offers no compare-and-swap on the challenge itself, so the claim
        marker gives concurrent requests an early collision check and only the
        request whose delete actually removed the challenge wins. The winner's
        marker is left to expire so a request that read the challenge earlier
        still meets it.

        Args:
            challenger (str): Player whose challenge is accepted

        Returns:
            AcceptDuelResultModel: success with the challenge, or a failure reason
        """
        key = kv_key(DUEL_PREFIX, challenger)
        try:
            value = await self.redis.get(key)
            if value is None:
                return AcceptDuelResultModel(success=False, reason=AcceptFailureReason.not_found)

            challenge = data_converter.convert_json_to_challenge(challenger, value)
            if challenge is None:
                return AcceptDuelResultModel(success=False, reason=AcceptFailureReason.error)

            if self.is_expired(challenge):
                await self.redis.delete(key)
                return AcceptDuelResultModel(success=False, reason=AcceptFailureReason.expired)

            # Scoped to this instance so a marker left by an earlier duel never blocks a new one.
            marker = claim_key(challenger, challenge.created_at)
            if await self.redis.get(marker) is not None:
                return AcceptDuelResultModel(
                    success=False, reason=AcceptFailureReason.already_claimed
                )
            claimed = await self.redis.set(
                marker, "1", ex=self.settings.claim_ttl_seconds, nx=True
            )
            if not claimed:
                return AcceptDuelResultModel(
                    success=False, reason=AcceptFailureReason.already_claimed
                )

            removed = await self.redis.delete(key)
            if removed == 0 or await self.redis.exists(key):
                await self.redis.delete(marker)
                return AcceptDuelResultModel(
                    success=False, reason=AcceptFailureReason.race_condition
                )
        except RedisError as e:
            logging.error(f"Failed to accept duel of {challenger}: {e}")
            return AcceptDuelResultModel(success=False, reason=AcceptFailureReason.error)

        return AcceptDuelResultModel(success=True, duel=challenge)

    async def set_opt_out(self, username: str, opt_out: bool) -> None:
        key = kv_key(DUEL_OPTOUT_PREFIX, username)
        if opt_out:
            await self.redis.set(key, KV_TRUE)
        else:
            await self.redis.delete(key)

        if self.Session is not None and self.settings.sql_enabled and self.settings.dual_write:
            async with self.Session() as session:
                await UpdateData.update_duel_opt_out(username.lower(), opt_out, session)

    async def is_opted_out(self, username: str) -> bool:
        return await self.redis.get(kv_key(DUEL_OPTOUT_PREFIX, username)) == KV_TRUE

    async def set_cooldown(self, username: str) -> int:
        """Start the challenge cooldown of a player

        Returns:
            int: Epoch ms at which the cooldown ends
        """
        expires_at = self.now_ms() + self.settings.duel_cooldown_seconds * 1000
        await self.redis.set(
            kv_key(DUEL_COOLDOWN_PREFIX, username),
            str(expires_at),
            ex=self.settings.duel_cooldown_seconds + 10,
        )
        return expires_at

    async def get_cooldown_remaining(self, username: str) -> int:
        """Seconds until username may issue a new challenge, 0 if none."""
        value = await self.redis.get(kv_key(DUEL_COOLDOWN_PREFIX, username))
        if value is None:
            return 0
        try:
            expires_at = int(value)
        except ValueError:
            logging.error(f"Corrupt duel cooldown for {username}: {value!r}")
            return 0
        remaining = math.ceil((expires_at - self.now_ms()) / 1000)
        return remaining if remaining > 0 else 0
