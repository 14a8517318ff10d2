"""Pydantic schemas for upload endpoints."""

from typing import Optional
from pydantic import BaseModel

from common.types import UploadOutcome


class UploadResultResponse(BaseModel):
    """Result entry for one uploaded file."""
    name: str
    url: Optional[str] = None
    error: Optional[str] = None
    status: str

    @classmethod
    def from_outcome(cls, outcome: UploadOutcome) -> "UploadResultResponse":
        return cls(
            name=outcome.name,
            url=outcome.url,
            error=outcome.error,
            status=outcome.status.value,
        )
