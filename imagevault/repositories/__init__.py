"""Repository layer for data access."""

from imagevault.repositories.blob_repository import BlobRepository

__all__ = [
    "BlobRepository",
]
