"""Project-wide constants (chunk size, KV limits, cache timing)."""

CHUNK_SIZE_BYTES: int = 50 * 1024  # 50 KiB, below the KV per-value ceiling
KV_VALUE_SIZE_LIMIT_BYTES: int = 64 * 1024

CACHE_TTL_SECONDS: float = 60.0
CACHE_SWEEP_INTERVAL_SECONDS: float = 30.0

DIGEST_ALGORITHM: str = "md5"

IMAGES_PREFIX: str = "images"
DIGEST_INDEX_PREFIX: str = "md5_to_id"
META_KEY: str = "meta"
CHUNK_KEY: str = "chunk"

DEFAULT_MIME_TYPE: str = "application/octet-stream"
