"""Generate API: submit an image restyle job and poll its status."""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from app.api.deps import get_job_service
from app.jobs.models import GenerateResponse, JobStatusResponse
from app.jobs.service import JobService

router = APIRouter()


@router.post("/generate", response_model=GenerateResponse)
async def submit_generation(request: Request, service: JobService = Depends(get_job_service)):
    """Queue a generation job.

    Body: ``{imageUrl, theme, prompt}``. Returns ``{jobId}`` immediately;
    the caller polls ``GET /generate?jobId=`` until the job is terminal.
    The body is decoded here but validated after the rate limit check.
    """
    try:
        payload = await request.json()
    except ValueError:
        payload = None

    identity = request.headers.get("x-real-ip")
    job_id = await service.submit(payload, identity)
    return GenerateResponse(job_id=job_id)


@router.get("/generate", response_model=JobStatusResponse)
async def get_generation_status(
    jobId: Optional[str] = None,
    service: JobService = Depends(get_job_service),
):
    """Return ``{status, result}`` for a job."""
    record = await service.get_status(jobId)
    return JobStatusResponse(status=record.status, result=record.result)
