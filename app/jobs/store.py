"""Job store interface with Redis and in-process implementations.

The store is the sole source of truth for job status. Each job lives under
one key whose value is the JSON document ``{"status": ..., "result": ...}``.
Writes go through :meth:`JobStore.transition`, which enforces the
``queued -> completed | failed`` state machine.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from app.errors import InternalError, InvalidTransition
from app.jobs.models import JobRecord, JobStatus


class JobStore(ABC):
    """Abstract key-value store for job records."""

    backend = "abstract"

    @abstractmethod
    async def _get_raw(self, job_id: str) -> Optional[str]:
        ...

    @abstractmethod
    async def _set_raw(self, job_id: str, value: str) -> None:
        ...

    async def get(self, job_id: str) -> Optional[JobRecord]:
        """Return the job record, or None if the id is unknown."""
        raw = await self._get_raw(job_id)
        if raw is None:
            return None
        try:
            doc = json.loads(raw)
            return JobRecord(id=job_id, status=doc["status"], result=doc.get("result"))
        except (ValueError, KeyError, TypeError) as exc:
            raise InternalError(f"Corrupt job record for {job_id}: {exc}") from exc

    async def create(self, job_id: str) -> JobRecord:
        """Write the initial ``queued`` record for a new job."""
        record = JobRecord(id=job_id)
        await self._set_raw(job_id, json.dumps(record.to_document()))
        return record

    async def transition(
        self, job_id: str, status: JobStatus, result: Any = None
    ) -> JobRecord:
        """Move a queued job into a terminal status.

        Raises InvalidTransition when the job is already terminal, when the
        target is not terminal, or when ``completed`` carries no result.
        """
        status = JobStatus(status)
        if not status.is_terminal:
            raise InvalidTransition(f"{status.value} is not a terminal status")
        if status is JobStatus.COMPLETED and result is None:
            raise InvalidTransition("completed job requires a result")
        if status is JobStatus.FAILED:
            result = None

        current = await self.get(job_id)
        if current is not None and current.status.is_terminal:
            raise InvalidTransition(
                f"job {job_id} is already {current.status.value}"
            )

        record = JobRecord(id=job_id, status=status, result=result)
        await self._set_raw(job_id, json.dumps(record.to_document()))
        return record

    async def ping(self) -> Optional[bool]:
        """Backend health; None when there is nothing to check."""
        return None

    async def close(self) -> None:
        return None


class InMemoryJobStore(JobStore):
    """Process-local store for development and tests. Not shared across workers."""

    backend = "memory"

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def _get_raw(self, job_id: str) -> Optional[str]:
        return self._data.get(job_id)

    async def _set_raw(self, job_id: str, value: str) -> None:
        async with self._lock:
            self._data[job_id] = value

    def __len__(self) -> int:
        return len(self._data)


class RedisJobStore(JobStore):
    """Job store backed by a ``redis.asyncio`` client.

    The client is owned by the application lifespan; ``close`` is a no-op
    here so the same connection can be shared with the rate limiter.
    """

    backend = "redis"

    def __init__(self, client, key_prefix: str = "", ttl_seconds: int = 0):
        self._client = client
        self._prefix = key_prefix
        self._ttl = ttl_seconds

    def _key(self, job_id: str) -> str:
        return f"{self._prefix}{job_id}"

    async def _get_raw(self, job_id: str) -> Optional[str]:
        try:
            value = await self._client.get(self._key(job_id))
        except Exception as exc:
            raise InternalError(f"Job store unavailable: {exc}") from exc
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def _set_raw(self, job_id: str, value: str) -> None:
        try:
            if self._ttl > 0:
                await self._client.set(self._key(job_id), value, ex=self._ttl)
            else:
                await self._client.set(self._key(job_id), value)
        except Exception as exc:
            raise InternalError(f"Job store unavailable: {exc}") from exc

    async def ping(self) -> Optional[bool]:
        try:
            return bool(await self._client.ping())
        except Exception:
            return False
