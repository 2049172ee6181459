"""Restyle Backend - FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import Settings, settings as default_settings
from app.api.errors import register_error_handlers
from app.api.v1.router import v1_router, generate_router_compat
from app.api.v1.health import router as health_root_router
from app.db.redis_client import create_redis
from app.jobs.orchestrator import GenerationOrchestrator
from app.jobs.poller import Poller
from app.jobs.runner import BackgroundRunner
from app.jobs.service import JobService
from app.jobs.store import InMemoryJobStore, RedisJobStore
from app.ratelimit.limiter import InMemoryRateLimiter, NoopRateLimiter, RedisRateLimiter
from app.upstream.prediction_client import PredictionClient


def configure_logging(level: str = "INFO") -> None:
    """Root logging setup, done once at startup rather than on import."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_job_service(settings: Settings, redis_client=None, prediction_client=None) -> JobService:
    """Wire store, limiter, upstream client, poller, orchestrator and runner."""
    if redis_client is not None:
        store = RedisJobStore(
            redis_client,
            key_prefix=settings.key_prefix,
            ttl_seconds=settings.job_ttl_seconds,
        )
    else:
        store = InMemoryJobStore()

    window_seconds = settings.rate_limit_window_minutes * 60
    if settings.rate_limit_enabled and redis_client is not None:
        limiter = RedisRateLimiter(
            redis_client,
            max_requests=settings.rate_limit_max_requests,
            window_seconds=window_seconds,
            key_prefix=settings.key_prefix,
        )
    elif settings.rate_limit_enabled and settings.rate_limit_in_memory:
        # Single-process development: count locally
        limiter = InMemoryRateLimiter(
            max_requests=settings.rate_limit_max_requests,
            window_seconds=window_seconds,
        )
    else:
        # No counter backend: fail open
        limiter = NoopRateLimiter(
            max_requests=settings.rate_limit_max_requests,
            window_seconds=window_seconds,
        )

    if prediction_client is None:
        prediction_client = PredictionClient(
            api_token=settings.replicate_api_token,
            model_version=settings.replicate_model_version,
            api_url=settings.replicate_api_url,
            timeout=settings.upstream_timeout_seconds,
        )

    poller = Poller(
        store,
        prediction_client,
        max_attempts=settings.poll_max_attempts,
        interval=settings.poll_interval_seconds,
    )
    orchestrator = GenerationOrchestrator(store, prediction_client, poller)
    runner = BackgroundRunner(store)
    return JobService(store, limiter, orchestrator, runner)


def create_app(settings: Optional[Settings] = None, job_service: Optional[JobService] = None) -> FastAPI:
    """Build the FastAPI app.

    Passing ``job_service`` skips client construction in the lifespan
    (tests inject in-memory collaborators this way).
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown logic."""
        redis_client = None
        prediction_client = None
        service = job_service
        configure_logging(settings.log_level)
        print(f"Starting Restyle Backend on port {settings.port}")

        if service is None:
            redis_client = create_redis(settings)
            if redis_client is None:
                print("REDIS_URL not set: using in-memory job store")
            if not settings.replicate_api_token:
                print("REPLICATE_API_TOKEN not set: upstream calls will be rejected")
            prediction_client = PredictionClient(
                api_token=settings.replicate_api_token,
                model_version=settings.replicate_model_version,
                api_url=settings.replicate_api_url,
                timeout=settings.upstream_timeout_seconds,
            )
            service = build_job_service(
                settings, redis_client=redis_client, prediction_client=prediction_client
            )

        print(f"Job store: {service.store.backend}")
        print(f"Rate limiter: {type(service.limiter).__name__}")
        print(f"Polling: {settings.poll_max_attempts} attempts every {settings.poll_interval_seconds}s")
        app.state.job_service = service

        yield

        # Shutdown
        print("Shutting down Restyle Backend")
        await service.runner.stop(settings.shutdown_grace_seconds)
        await service.store.close()
        if prediction_client is not None:
            prediction_client.close()
        if redis_client is not None:
            await redis_client.aclose()

    app = FastAPI(
        title="Restyle Backend",
        description="Queues clothing restyle jobs on an upstream prediction service",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    # Mount routers
    app.include_router(health_root_router, tags=["health"])  # GET /health at root
    app.include_router(v1_router)  # All /api/v1/* endpoints
    app.include_router(generate_router_compat)  # /generate used by the browser client
    return app


app = create_app()
