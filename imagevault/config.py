"""Configuration settings for the image store server."""

import os
from typing import Optional

from common.constants import (
    CHUNK_SIZE_BYTES,
    KV_VALUE_SIZE_LIMIT_BYTES,
    CACHE_TTL_SECONDS,
    CACHE_SWEEP_INTERVAL_SECONDS,
)


DATABASE_PATH = os.environ.get("IMAGEVAULT_DATABASE_PATH", "./data/imagevault.db")

SERVER_HOST = os.environ.get("IMAGEVAULT_HOST", "0.0.0.0")

SERVER_PORT = int(os.environ.get("IMAGEVAULT_PORT", "8000"))

CHUNK_SIZE = int(os.environ.get("IMAGEVAULT_CHUNK_SIZE", str(CHUNK_SIZE_BYTES)))

KV_VALUE_LIMIT = int(os.environ.get("IMAGEVAULT_KV_VALUE_LIMIT", str(KV_VALUE_SIZE_LIMIT_BYTES)))

CACHE_TTL = float(os.environ.get("IMAGEVAULT_CACHE_TTL", str(CACHE_TTL_SECONDS)))

CACHE_SWEEP_INTERVAL = float(
    os.environ.get("IMAGEVAULT_CACHE_SWEEP_INTERVAL", str(CACHE_SWEEP_INTERVAL_SECONDS))
)

_max_entries = os.environ.get("IMAGEVAULT_CACHE_MAX_ENTRIES")
CACHE_MAX_ENTRIES: Optional[int] = int(_max_entries) if _max_entries else None

PUBLIC_BASE_URL: Optional[str] = os.environ.get("IMAGEVAULT_PUBLIC_BASE_URL") or None

INDEX_HTML_PATH = os.environ.get(
    "IMAGEVAULT_INDEX_HTML",
    os.path.join(os.path.dirname(__file__), "static", "index.html"),
)


def validate_chunk_size(chunk_size: int, value_limit: int = KV_VALUE_LIMIT) -> int:
    """
    Check that chunk records fit in a single KV value.

    Args:
        chunk_size: Configured chunk size in bytes
        value_limit: Backing store per-value ceiling in bytes

    Returns:
        The validated chunk size

    Raises:
        ValueError: If chunk_size is not positive or not below value_limit
    """
    if not isinstance(chunk_size, int) or isinstance(chunk_size, bool) or chunk_size < 1:
        raise ValueError(f"Chunk size must be a positive integer, got {chunk_size!r}")
    if chunk_size >= value_limit:
        raise ValueError(
            f"Chunk size {chunk_size} must be below the KV value limit of {value_limit} bytes"
        )
    return chunk_size
