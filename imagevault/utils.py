"""Utility helper functions for the image store."""

import uuid
from typing import Optional


def generate_uuid() -> str:
    """
    Generate a new UUID4 string.

    Returns:
        UUID4 string
    """
    return str(uuid.uuid4())


def file_extension(filename: Optional[str]) -> str:
    """
    Trailing dot-segment of a filename, without the dot.

    Args:
        filename: Original upload filename (e.g., "cat.photo.png")

    Returns:
        Extension string (e.g., "png"), or "" when there is none
    """
    if not filename:
        return ""
    parts = filename.split('.')
    return parts[-1] if len(parts) > 1 else ""


def build_image_url(origin: str, object_id: str, filename: Optional[str]) -> str:
    """
    Public URL for an object, decorated with the original file extension.

    Args:
        origin: Scheme and host (e.g., "http://localhost:8000")
        object_id: Object identifier
        filename: Original upload filename

    Returns:
        URL of the form {origin}/image/{object_id}[.{ext}]
    """
    extension = file_extension(filename)
    suffix = f".{extension}" if extension else ""
    return f"{origin.rstrip('/')}/image/{object_id}{suffix}"


def parse_image_id(image_name: str) -> str:
    """
    Extract the object id from the last path segment of an image URL.

    The extension suffix is decorative and ignored.
    """
    last_segment = image_name.rstrip('/').split('/')[-1]
    return last_segment.split('.')[0]
