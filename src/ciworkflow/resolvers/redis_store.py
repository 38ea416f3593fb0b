# resolvers/redis_store.py
from __future__ import annotations

from typing import Any, Iterable, List, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..errors import ExternalResolutionError
from ..settings import TRIGGER_KEY_PREFIX


def trigger_key(src: str, prefix: str = TRIGGER_KEY_PREFIX) -> str:
    return f"{prefix}{src}"


class RedisTriggerResolver:
    """
    Trigger lookups against Redis lists.

    `<prefix>sd@12:main` holds the downstream identifiers of `sd@12:main`,
    in notification order.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        key_prefix: str = TRIGGER_KEY_PREFIX,
        client: Any = None,
    ):
        if client is None:
            if not redis_url:
                raise ValueError("RedisTriggerResolver needs a redis_url or a client")
            client = redis.from_url(redis_url, decode_responses=True)
        self.r = client
        self.key_prefix = key_prefix

    async def get_dest_from_src(self, src: str) -> List[str]:
        try:
            return list(await self.r.lrange(trigger_key(src, self.key_prefix), 0, -1))
        except RedisError as e:
            raise ExternalResolutionError(f"Redis lookup failed: {e}", src=src) from e

    async def set_dests(self, src: str, dests: Iterable[str]) -> None:
        """Replace the downstream list of `src` (used to seed the store)."""
        key = trigger_key(src, self.key_prefix)
        dests = list(dests)
        await self.r.delete(key)
        if dests:
            await self.r.rpush(key, *dests)  # keep notification order

    async def close(self) -> None:
        await self.r.aclose()
