"""Bridges an internal job to the upstream prediction service."""

import logging
from typing import Any, Dict

from app.errors import UpstreamFailure
from app.jobs.models import GenerateRequest, JobRecord, JobStatus, clothing_category
from app.jobs.poller import Poller
from app.jobs.store import JobStore

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = "a person wearing {prompt}"


def build_model_input(request: GenerateRequest) -> Dict[str, Any]:
    """Translate a client request into the upstream model's input payload."""
    return {
        "image": request.image_url,
        "clothing": clothing_category(request.theme),
        "prompt": PROMPT_TEMPLATE.format(prompt=request.prompt),
    }


class GenerationOrchestrator:
    """Starts the upstream prediction and hands its polling URL to the Poller.

    The start call is made exactly once. If it fails for any reason the job
    is written as ``failed`` and no poll is attempted.
    """

    def __init__(self, store: JobStore, client, poller: Poller):
        self._store = store
        self._client = client
        self._poller = poller

    async def run(self, job_id: str, request: GenerateRequest) -> JobRecord:
        model_input = build_model_input(request)
        try:
            poll_url = await self._client.start(model_input)
        except UpstreamFailure as exc:
            logger.error("Error starting generation for job %s: %s", job_id, exc)
            return await self._store.transition(job_id, JobStatus.FAILED)

        logger.info("Job %s started upstream, polling %s", job_id, poll_url)
        return await self._poller.run(job_id, poll_url)
