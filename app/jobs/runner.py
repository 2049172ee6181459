"""Detached execution of generation jobs on the running event loop.

Replaces a bare fire-and-forget call: every job runs in its own
``asyncio.Task`` that the runner holds a reference to until it finishes.
Anything the job coroutine fails to handle is logged and turned into the
terminal ``failed`` write, so a client polling the job always sees it end.
"""

import asyncio
import logging
from typing import Coroutine, Dict

from app.errors import InvalidTransition, RestyleError
from app.jobs.models import JobStatus
from app.jobs.store import JobStore

logger = logging.getLogger(__name__)


class BackgroundRunner:
    """Owns in-flight generation tasks for the lifetime of the app."""

    def __init__(self, store: JobStore):
        self._store = store
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def inflight(self) -> int:
        return len(self._tasks)

    def spawn(self, job_id: str, coro: Coroutine) -> asyncio.Task:
        """Schedule ``coro`` for ``job_id`` and return without awaiting it."""
        task = asyncio.create_task(self._guard(job_id, coro), name=f"generate-{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(lambda _t: self._tasks.pop(job_id, None))
        return task

    async def _guard(self, job_id: str, coro: Coroutine) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            logger.warning("Job %s cancelled before finishing", job_id)
            await self._mark_failed(job_id)
            raise
        except Exception:
            logger.exception("Unhandled error in job %s", job_id)
            await self._mark_failed(job_id)

    async def _mark_failed(self, job_id: str) -> None:
        try:
            await self._store.transition(job_id, JobStatus.FAILED)
        except InvalidTransition:
            # A terminal status was already written.
            pass
        except RestyleError as exc:
            logger.error("Could not record failure for job %s: %s", job_id, exc)

    async def join(self) -> None:
        """Wait for every in-flight job (used by tests and shutdown)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def stop(self, grace_seconds: float = 5.0) -> None:
        """Give in-flight jobs ``grace_seconds`` to finish, then cancel the rest."""
        tasks = list(self._tasks.values())
        if not tasks:
            return
        logger.info("Waiting for %d in-flight job(s)", len(tasks))
        _done, pending = await asyncio.wait(tasks, timeout=grace_seconds)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
