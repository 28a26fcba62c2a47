"""Timeout notifications for pending duels.

Expiry itself is enforced lazily from createdAt; this only tells the chat
that a challenge ran out. Jobs live in the process-local scheduler, so a
restart loses pending notifications but never affects the ledger.
"""

import json
import logging
from datetime import datetime, timedelta

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from redis.asyncio import Redis
from redis.exceptions import RedisError

from slotduel.keys import DUEL_PREFIX, NOTIFICATION_CHANNEL, kv_key
from slotduel.models.schema_models import DuelChallengeSchema
from slotduel.services.duel_registry import DuelRegistry, data_converter

NOTIFY_DELAY_SECONDS = 2


def timeout_job_id(challenger: str) -> str:
    return f"duel_timeout:{challenger.lower()}"


class DuelTimeoutAlarm:
    def __init__(self, scheduler: AsyncIOScheduler, registry: DuelRegistry, redis: Redis):
        self.scheduler: AsyncIOScheduler = scheduler
        self.registry: DuelRegistry = registry
        self.redis: Redis = redis

    def schedule_timeout(self, challenge: DuelChallengeSchema) -> None:
        """Schedule the notification for DUEL_TIMEOUT + 2 seconds after creation.

        A newer challenge of the same challenger replaces the older job.
        """
        run_at = datetime.fromtimestamp(challenge.created_at / 1000) + timedelta(
            seconds=self.registry.settings.duel_timeout_seconds + NOTIFY_DELAY_SECONDS
        )
        self.scheduler.add_job(
            self.fire,
            "date",
            run_date=run_at,
            args=[challenge.challenger, challenge.created_at],
            id=timeout_job_id(challenge.challenger),
            replace_existing=True,
        )

    def cancel_timeout(self, challenger: str) -> None:
        try:
            self.scheduler.remove_job(timeout_job_id(challenger))
        except JobLookupError:
            pass

    async def fire(self, challenger: str, created_at: int) -> bool:
        """Drop the challenge instance created at created_at and announce it.

        Returns:
            bool: True if a notification was published
        """
        key = kv_key(DUEL_PREFIX, challenger)
        try:
            value = await self.redis.get(key)
            if value is None:
                return False
            challenge = data_converter.convert_json_to_challenge(challenger, value)
            if challenge is None or challenge.created_at != created_at:
                # Already resolved and replaced by a newer challenge.
                return False
            await self.redis.delete(key)
            payload = json.dumps(
                {
                    "event": "duel_expired",
                    "challenger": challenge.challenger,
                    "target": challenge.target,
                    "amount": challenge.amount,
                }
            )
            await self.redis.publish(NOTIFICATION_CHANNEL, payload)
            logging.info(f"Duel of {challenger} against {challenge.target} timed out")
            return True
        except RedisError as e:
            logging.error(f"Failed to send duel timeout for {challenger}: {e}")
            return False
