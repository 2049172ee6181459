"""Job record and request models."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class JobStatus(str, Enum):
    QUEUED = "queued"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.QUEUED


class Theme(str, Enum):
    """Clothing category selector offered by the client UI."""
    TOP_WEAR = "Top Wear"
    BOTTOM_WEAR = "Bottom Wear"


# Closed mapping: every accepted selector has exactly one upstream value.
CLOTHING_CATEGORIES = {
    Theme.TOP_WEAR: "topwear",
    Theme.BOTTOM_WEAR: "bottomwear",
}


def clothing_category(theme: Theme) -> str:
    """Translate a UI theme into the upstream ``clothing`` vocabulary."""
    return CLOTHING_CATEGORIES[Theme(theme)]


class JobRecord(BaseModel):
    """Persisted state of one generation job.

    Only ``id`` is kept outside the stored document; the store serializes
    ``status`` and ``result`` under the id key.
    """
    id: str
    status: JobStatus = JobStatus.QUEUED
    result: Optional[Any] = None

    def to_document(self) -> dict:
        return {"status": self.status.value, "result": self.result}


class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_url: str = Field(alias="imageUrl")
    theme: Theme
    prompt: str


class GenerateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(serialization_alias="jobId")


class JobStatusResponse(BaseModel):
    status: JobStatus
    result: Optional[Any] = None
