"""Health check endpoint."""

from fastapi import APIRouter, Depends

from app.api.deps import get_job_service
from app.jobs.service import JobService

router = APIRouter()


@router.get("/health")
async def health_check(service: JobService = Depends(get_job_service)):
    """Service health, job store backend and in-flight job count."""
    return {
        "status": "healthy",
        "store": service.store.backend,
        "redis_ok": await service.store.ping(),
        "inflight_jobs": service.runner.inflight,
    }
