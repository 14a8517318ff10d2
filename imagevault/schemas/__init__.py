"""Pydantic schemas for API requests and responses."""

from imagevault.schemas.uploads import UploadResultResponse
from imagevault.schemas.common import ErrorResponse

__all__ = [
    "UploadResultResponse",
    "ErrorResponse",
]
