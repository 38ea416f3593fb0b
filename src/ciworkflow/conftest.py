# conftest.py
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError


class FakeRedis:
    """Just enough of redis.asyncio.Redis for list lookups."""

    def __init__(self, fail=False):
        self.lists = {}
        self.fail = fail
        self.closed = False

    async def lrange(self, key, start, end):
        if self.fail:
            raise RedisConnectionError("connection refused")
        return list(self.lists.get(key, []))

    async def delete(self, key):
        self.lists.pop(key, None)

    async def rpush(self, key, *values):
        self.lists.setdefault(key, []).extend(values)

    async def aclose(self):
        self.closed = True


@pytest.fixture
def fake_redis():
    return FakeRedis()
