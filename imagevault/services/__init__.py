"""Service layer for business logic."""

from imagevault.services.ingest_service import IngestService

__all__ = [
    "IngestService",
]
