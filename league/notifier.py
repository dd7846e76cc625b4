import logging
from typing import Iterable, Optional

import redis

from shared.events import Event

logger = logging.getLogger(__name__)

GLOBAL_CHANNEL = "global:announcements"


def user_channel(wallet_address: str) -> str:
    return f"user:{wallet_address}:notifications"


class Notifier:
    """
    Fans membership events out over Redis pub/sub.

    Without a Redis client the notifier runs in local mode and only logs.
    Publishing is best effort: callers publish after their transaction has
    committed, and a Redis outage is logged rather than raised.
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        self.redis = redis_client
        if self.redis is None:
            logger.info("Notifier running in local mode (no Redis configured)")

    @classmethod
    def from_url(cls, redis_url: str) -> "Notifier":
        if not redis_url:
            return cls(None)
        client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5
        )
        return cls(client)

    @property
    def is_local(self) -> bool:
        return self.redis is None

    def publish(self, channel: str, event: Event) -> bool:
        if self.is_local:
            logger.debug(f"Local mode: {event.to_dict()['type']} on {channel}: {event.data}")
            return False

        try:
            self.redis.publish(channel, event.to_json())
            return True
        except redis.exceptions.RedisError as e:
            logger.warning(f"Failed to publish {event.to_dict()['type']} to {channel}: {e}")
            return False

    def notify_wallets(self, wallets: Iterable[str], event: Event) -> int:
        """Publish the event on each wallet's channel. Returns the delivered count."""
        delivered = 0
        for wallet in dict.fromkeys(wallets):
            if wallet and self.publish(user_channel(wallet), event):
                delivered += 1
        return delivered

    def announce(self, event: Event) -> bool:
        return self.publish(GLOBAL_CHANNEL, event)

    def ping(self) -> bool:
        if self.is_local:
            return False
        try:
            return bool(self.redis.ping())
        except redis.exceptions.RedisError:
            return False
