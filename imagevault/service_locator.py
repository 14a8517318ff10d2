"""Service locator for process-wide components."""

from typing import Optional

from imagevault.read_cache import ReadCache
from imagevault.services.ingest_service import IngestService

_ingest_service: Optional[IngestService] = None
_read_cache: Optional[ReadCache] = None


def set_ingest_service(service: Optional[IngestService]):
    """Set global ingest service instance"""
    global _ingest_service
    _ingest_service = service


def get_ingest_service() -> IngestService:
    """Get global ingest service instance"""
    if _ingest_service is None:
        raise RuntimeError("Ingest service is not initialized")
    return _ingest_service


def set_read_cache(cache: Optional[ReadCache]):
    """Set global read cache instance"""
    global _read_cache
    _read_cache = cache


def get_read_cache() -> Optional[ReadCache]:
    """Get global read cache instance"""
    return _read_cache
