"""Content digest calculation and verification helpers."""

import hashlib

from common.constants import DIGEST_ALGORITHM


def digest(payload: bytes, algorithm: str = DIGEST_ALGORITHM) -> str:
    """
    Compute the content digest used as the dedup key.

    Computed over the exact bytes received, before chunking.

    Args:
        payload: Full object payload
        algorithm: hashlib algorithm name

    Returns:
        Lowercase hexadecimal digest
    """
    return hashlib.new(algorithm, payload).hexdigest()


def verify_digest(payload: bytes, expected: str, algorithm: str = DIGEST_ALGORITHM) -> bool:
    """
    Check that payload hashes to expected.
    """
    return digest(payload, algorithm) == expected
