"""Shared data type definitions (ObjectMetadata, ObjectResolution, UploadOutcome)."""

from dataclasses import dataclass, asdict, replace
from enum import Enum
from typing import Any, Dict, Optional


class UploadStatus(str, Enum):
    """
    Per-file outcome of an upload.
    """
    CACHED = "cached"
    UPLOADED = "uploaded"
    OVERWRITTEN = "overwritten"
    ERROR = "error"


@dataclass(frozen=True)
class ObjectMetadata:
    """
    Metadata record for one logical object.

    completed is True only once every chunk record has been written.
    """
    object_id: str
    name: str
    mime_type: str
    total_size: int
    chunk_count: int
    created_at: float
    content_digest: str
    completed: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ObjectMetadata":
        return cls(
            object_id=data["object_id"],
            name=data["name"],
            mime_type=data["mime_type"],
            total_size=int(data["total_size"]),
            chunk_count=int(data["chunk_count"]),
            created_at=float(data["created_at"]),
            content_digest=data["content_digest"],
            completed=bool(data["completed"]),
        )

    def mark_completed(self) -> "ObjectMetadata":
        return replace(self, completed=True)


@dataclass(frozen=True)
class ObjectResolution:
    """
    Result of looking up a content digest.
    """
    object_id: str
    completed: bool


@dataclass(frozen=True)
class ObjectReservation:
    """
    Object id reserved for a write; created is False when an existing id is reused.
    """
    object_id: str
    created: bool


@dataclass(frozen=True)
class UploadOutcome:
    """
    Result entry for a single uploaded file.
    """
    name: str
    status: UploadStatus
    url: Optional[str] = None
    error: Optional[str] = None
