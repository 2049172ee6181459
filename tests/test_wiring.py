import logging

from fastapi.testclient import TestClient

from app import main
from app.config import Settings
from app.db.redis_client import create_redis
from app.jobs.store import InMemoryJobStore, RedisJobStore
from app.main import build_job_service
from app.ratelimit.limiter import InMemoryRateLimiter, NoopRateLimiter, RedisRateLimiter
from app.upstream.prediction_client import PredictionClient


def test_without_redis_uses_memory_store_and_fails_open():
    settings = Settings(redis_url="")

    assert create_redis(settings) is None
    service = build_job_service(settings)

    assert isinstance(service.store, InMemoryJobStore)
    assert isinstance(service.limiter, NoopRateLimiter)
    assert isinstance(service.orchestrator._client, PredictionClient)


def test_with_redis_shares_the_client(fake_redis, make_client):
    settings = Settings(rate_limit_max_requests=5, rate_limit_window_minutes=60, key_prefix="rs:")

    service = build_job_service(settings, redis_client=fake_redis, prediction_client=make_client())

    assert isinstance(service.store, RedisJobStore)
    assert isinstance(service.limiter, RedisRateLimiter)
    assert service.limiter.max_requests == 5
    assert service.limiter.window_seconds == 3600


def test_rate_limit_can_be_disabled(fake_redis, make_client):
    settings = Settings(rate_limit_enabled=False)

    service = build_job_service(settings, redis_client=fake_redis, prediction_client=make_client())

    assert isinstance(service.limiter, NoopRateLimiter)


def test_in_memory_limiter_is_used_without_redis_when_enabled():
    settings = Settings(redis_url="", rate_limit_in_memory=True, rate_limit_max_requests=3)

    service = build_job_service(settings)

    assert isinstance(service.limiter, InMemoryRateLimiter)
    assert service.limiter.max_requests == 3


def test_in_memory_limiter_respects_disabled_flag():
    settings = Settings(redis_url="", rate_limit_in_memory=True, rate_limit_enabled=False)

    assert isinstance(build_job_service(settings).limiter, NoopRateLimiter)


def test_lifespan_configures_logging_and_closes_upstream_client(monkeypatch):
    levels = []
    closed = []
    monkeypatch.setattr(main, "configure_logging", levels.append)
    monkeypatch.setattr(PredictionClient, "close", lambda self: closed.append(self))
    settings = Settings(redis_url="", log_level="DEBUG", shutdown_grace_seconds=0.05)

    with TestClient(main.create_app(settings=settings)) as http:
        assert http.get("/health").json()["store"] == "memory"
        assert levels == ["DEBUG"]
        assert closed == []

    assert len(closed) == 1


def test_importing_the_app_leaves_root_logging_alone(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

    main.create_app(settings=Settings(redis_url=""))

    assert calls == []
