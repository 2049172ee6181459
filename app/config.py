"""Application configuration via environment variables."""

from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Redis (empty -> in-memory job store, rate limiter fails open)
    redis_url: str = ""
    key_prefix: str = ""
    job_ttl_seconds: int = 0  # 0 = no expiry, left to the store's config

    # Upstream prediction service
    replicate_api_token: str = ""
    replicate_api_url: str = "https://api.replicate.com/v1/predictions"
    replicate_model_version: str = (
        "f203e9b8755a51b23f8ebdd80bb4f8b7177685b8d3fcca949abfbf8606b6d42a"
    )
    upstream_timeout_seconds: float = 30.0

    # Polling
    poll_max_attempts: int = 60
    poll_interval_seconds: float = 1.0

    # Admission control
    rate_limit_enabled: bool = True
    rate_limit_max_requests: int = 20
    rate_limit_window_minutes: int = 1440
    rate_limit_in_memory: bool = False  # without Redis: count per process instead of failing open

    # Server
    log_level: str = "INFO"
    port: int = 8000
    cors_origins: List[str] = ["http://localhost:3000", "*"]
    shutdown_grace_seconds: float = 5.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
