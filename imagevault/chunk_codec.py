"""Splits payloads into fixed-size chunks and reassembles them."""

from typing import List, Optional, Sequence

from imagevault.exceptions import IntegrityError


def chunk_count(total_size: int, chunk_size: int) -> int:
    """
    Number of chunks needed for a payload of total_size bytes.
    """
    if chunk_size < 1:
        raise ValueError(f"Chunk size must be positive, got {chunk_size}")
    return -(-total_size // chunk_size)


def split(payload: bytes, chunk_size: int) -> List[bytes]:
    """
    Split payload into ordered chunks of at most chunk_size bytes.

    Args:
        payload: Raw bytes to split
        chunk_size: Maximum chunk length in bytes

    Returns:
        List of chunks; empty for a zero-length payload
    """
    count = chunk_count(len(payload), chunk_size)
    view = memoryview(payload)
    return [bytes(view[i * chunk_size:(i + 1) * chunk_size]) for i in range(count)]


def join(chunks: Sequence[Optional[bytes]], total_size: int) -> bytes:
    """
    Concatenate chunks in index order into exactly total_size bytes.

    Args:
        chunks: One entry per expected index; None marks a missing chunk
        total_size: Expected length of the reassembled payload

    Returns:
        Reassembled payload

    Raises:
        IntegrityError: If a chunk is missing or the length does not match
    """
    buffer = bytearray()
    for index, chunk in enumerate(chunks):
        if chunk is None:
            raise IntegrityError(f"Missing chunk {index}")
        buffer.extend(chunk)

    if len(buffer) != total_size:
        raise IntegrityError(
            f"Reassembled {len(buffer)} bytes, expected {total_size}"
        )
    return bytes(buffer)
