"""Submission and status handling for generation jobs."""

import logging
import uuid
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from app.errors import AdmissionDenied, NotFound, ValidationError
from app.jobs.models import GenerateRequest, JobRecord
from app.jobs.orchestrator import GenerationOrchestrator
from app.jobs.runner import BackgroundRunner
from app.jobs.store import JobStore
from app.ratelimit.limiter import RateLimiter

logger = logging.getLogger(__name__)


class JobService:
    """Front door for the generate API.

    Holds the explicitly constructed collaborators built once in the app
    lifespan: store, rate limiter, orchestrator and background runner.
    """

    def __init__(
        self,
        store: JobStore,
        limiter: RateLimiter,
        orchestrator: GenerationOrchestrator,
        runner: BackgroundRunner,
    ):
        self.store = store
        self.limiter = limiter
        self.orchestrator = orchestrator
        self.runner = runner

    async def submit(self, payload: Any, identity: Optional[str]) -> str:
        """Admit, validate, record and start a generation job.

        Steps:
        1. Rate-limit the caller (raises AdmissionDenied)
        2. Validate the body (raises ValidationError)
        3. Write the ``queued`` record
        4. Start the orchestrator in the background
        5. Return the job id

        The id is only returned once the queued record is stored.
        """
        admission = await self.limiter.admit(identity)
        if not admission.allowed:
            logger.info("Rejected submission from %r: limit %d reached", identity, admission.limit)
            raise AdmissionDenied(limit=admission.limit, remaining=admission.remaining)

        try:
            request = GenerateRequest.model_validate(payload)
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid request body: {exc.error_count()} error(s)") from exc

        job_id = str(uuid.uuid4())
        await self.store.create(job_id)
        self.runner.spawn(job_id, self.orchestrator.run(job_id, request))
        logger.info("Queued job %s (%s)", job_id, request.theme.value)
        return job_id

    async def get_status(self, job_id: Optional[str]) -> JobRecord:
        """Look up a job. Read-only."""
        if not job_id:
            raise ValidationError("Job ID is required")
        record = await self.store.get(job_id)
        if record is None:
            raise NotFound("Job not found")
        return record
