"""Image read API routes."""

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from imagevault.exceptions import ObjectNotFoundError
from imagevault.schemas.common import ErrorResponse
from imagevault.service_locator import get_ingest_service
from imagevault.services.ingest_service import IngestService
from imagevault.utils import parse_image_id

router = APIRouter(prefix="/image", tags=["Images"])


@router.get(
    "/{image_name:path}",
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def get_image(
    image_name: str,
    ingest_service: IngestService = Depends(get_ingest_service),
):
    """
    Serve a stored image.

    Parameters:
        - image_name: Object id, optionally followed by a decorative .{ext}

    Returns:
        - Raw image bytes with the stored Content-Type

    Raises:
        - 404: Image absent or not yet completed
        - 500: Completed image is missing chunk data
    """
    object_id = parse_image_id(image_name)
    if not object_id:
        raise ObjectNotFoundError("Image not found")

    payload, mime_type = await ingest_service.handle_read(object_id)
    return Response(content=payload, media_type=mime_type)
