"""FastAPI dependencies resolving the objects built in the lifespan."""

from fastapi import HTTPException, Request

from app.jobs.service import JobService


def get_job_service(request: Request) -> JobService:
    service = getattr(request.app.state, "job_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Job service not initialized")
    return service
