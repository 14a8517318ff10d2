"""Upload API routes."""

from typing import List

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from starlette.formparsers import MultiPartException

from common.types import UploadStatus
from imagevault.exceptions import ValidationError
from imagevault.schemas.common import ErrorResponse
from imagevault.schemas.uploads import UploadResultResponse
from imagevault.service_locator import get_ingest_service
from imagevault.services.ingest_service import IngestService

router = APIRouter(tags=["Upload"])


@router.post(
    "/upload",
    responses={
        200: {"model": List[UploadResultResponse]},
        400: {"model": ErrorResponse},
        500: {"model": List[UploadResultResponse]},
    },
)
async def upload_images(
    request: Request,
    ingest_service: IngestService = Depends(get_ingest_service),
):
    """
    Upload one or more images.

    Parameters:
        - file: One or more multipart parts named "file"

    Returns:
        - JSON array of {name, url?, error?, status} per submitted file,
          status being cached, uploaded, overwritten or error

    Raises:
        - 400: No files present or malformed multipart body
        - 500: At least one file failed to store
    """
    try:
        form = await request.form()
    except MultiPartException as e:
        raise ValidationError(f"Malformed multipart body: {e}") from e

    files = form.getlist("file")
    origin = f"{request.url.scheme}://{request.url.netloc}"

    results = await ingest_service.handle_upload(files, origin)

    failed = any(result.status == UploadStatus.ERROR for result in results)
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR if failed else status.HTTP_200_OK

    return JSONResponse(
        status_code=status_code,
        content=[
            UploadResultResponse.from_outcome(result).model_dump(exclude_none=True)
            for result in results
        ],
    )
