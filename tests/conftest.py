import asyncio

import pytest

from app.errors import UpstreamFailure
from app.jobs.store import InMemoryJobStore


class FakeRedis:
    """Just enough of the redis.asyncio API for the store and limiter."""

    def __init__(self):
        self.data = {}
        self.expiries = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        if ex is not None:
            self.expiries[key] = ex
        return True

    async def incr(self, key):
        self.data[key] = int(self.data.get(key, 0)) + 1
        return self.data[key]

    async def expire(self, key, seconds, nx=False):
        if nx and key in self.expiries:
            return False
        self.expiries[key] = seconds
        return True

    async def ping(self):
        return True


class BrokenRedis:
    async def _fail(self, *args, **kwargs):
        raise ConnectionError("redis is down")

    get = set = incr = expire = ping = _fail


class FakePredictionClient:
    """Scripted upstream. ``polls`` items are dicts or exceptions to raise."""

    def __init__(self, start=None, polls=None, block_start=False):
        self.start_result = start if start is not None else "https://upstream.test/p/1"
        self.polls = list(polls or [])
        self.block_start = block_start
        self.start_calls = []
        self.poll_calls = []

    async def start(self, model_input):
        self.start_calls.append(model_input)
        if self.block_start:
            await asyncio.Event().wait()
        if isinstance(self.start_result, Exception):
            raise self.start_result
        return self.start_result

    async def poll(self, poll_url):
        self.poll_calls.append(poll_url)
        item = self.polls.pop(0) if self.polls else {"status": "processing"}
        if isinstance(item, Exception):
            raise item
        return item


class Clock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def store():
    return InMemoryJobStore()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def broken_redis():
    return BrokenRedis()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def make_client():
    return FakePredictionClient


@pytest.fixture
def upstream_error():
    return UpstreamFailure("connection refused")


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def no_sleep(sleeps):
    async def _sleep(seconds):
        sleeps.append(seconds)
    return _sleep
