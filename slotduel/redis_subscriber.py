import json
import logging
from typing import AsyncGenerator

from redis.asyncio import Redis

from slotduel.keys import NOTIFICATION_CHANNEL


def format_sse_message(payload: str) -> str:
    """Turn a published notification into one SSE frame named after its event."""
    try:
        event = json.loads(payload).get("event", "message")
    except (json.JSONDecodeError, AttributeError):
        logging.error(f"Malformed duel notification: {payload!r}")
        event = "message"
    return f"event: {event}\ndata: {payload}\n\n"


class NotificationSubscriber:
    """Redis subscriber class to relay duel notifications as SSE events."""

    def __init__(self, redis: Redis, channel: str = NOTIFICATION_CHANNEL):
        self.redis: Redis = redis
        self.channel: str = channel

    async def event_generator(self) -> AsyncGenerator[str, None]:
        """Yield one SSE frame per message published on the channel."""
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(self.channel)
        try:
            while True:
                msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=None)
                if msg and msg["type"] == "message":
                    yield format_sse_message(msg["data"])
        finally:
            logging.info("Unsubscribing from channel")
            await pubsub.unsubscribe(self.channel)
            await pubsub.close()
