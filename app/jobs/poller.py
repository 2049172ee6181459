"""Bounded polling of an upstream prediction until it reaches a terminal state."""

import asyncio
import logging
from typing import Awaitable, Callable

from app.errors import UpstreamFailure
from app.jobs.models import JobRecord, JobStatus
from app.jobs.store import JobStore

logger = logging.getLogger(__name__)

UPSTREAM_SUCCEEDED = "succeeded"
UPSTREAM_FAILED = {"failed", "canceled"}


class Poller:
    """Polls one prediction URL per call to :meth:`run`.

    Every outcome ends in exactly one terminal write for the job:
    ``completed`` on an upstream ``succeeded``; ``failed`` on an upstream
    failure, a transport/parse error, or when ``max_attempts`` polls have
    all come back non-terminal. Errors are not retried; the attempt budget
    only covers "still running" responses.
    """

    def __init__(
        self,
        store: JobStore,
        client,
        max_attempts: int = 60,
        interval: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._store = store
        self._client = client
        self.max_attempts = max_attempts
        self.interval = interval
        self._sleep = sleep

    async def run(self, job_id: str, poll_url: str) -> JobRecord:
        for attempt in range(1, self.max_attempts + 1):
            logger.debug("Polling job %s (attempt %d/%d)", job_id, attempt, self.max_attempts)
            try:
                state = await self._client.poll(poll_url)
            except UpstreamFailure as exc:
                logger.error("Error polling job %s: %s", job_id, exc)
                return await self._store.transition(job_id, JobStatus.FAILED)

            status = state.get("status")
            if status == UPSTREAM_SUCCEEDED:
                output = state.get("output")
                if output is None:
                    logger.error("Job %s succeeded upstream without output", job_id)
                    return await self._store.transition(job_id, JobStatus.FAILED)
                logger.info("Job %s completed after %d poll(s)", job_id, attempt)
                return await self._store.transition(job_id, JobStatus.COMPLETED, output)

            if status in UPSTREAM_FAILED:
                logger.info("Job %s reported %s upstream", job_id, status)
                return await self._store.transition(job_id, JobStatus.FAILED)

            if attempt < self.max_attempts:
                await self._sleep(self.interval)

        logger.warning("Job %s still running after %d polls, giving up", job_id, self.max_attempts)
        return await self._store.transition(job_id, JobStatus.FAILED)
