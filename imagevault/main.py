"""Entry point for the image store service."""

import time
import uuid

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import FileResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from common.logging_config import setup_logging
from imagevault import config
from imagevault.database import init_database
from imagevault.exceptions import (
    ImageVaultException,
    ValidationError,
    ObjectNotFoundError,
    IncompleteObjectError,
    IntegrityError,
    StorageError,
)
from imagevault.kv_store import KVStore
from imagevault.object_locks import ObjectLockRegistry
from imagevault.read_cache import ReadCache
from imagevault.repositories.blob_repository import BlobRepository
from imagevault.routes.image_routes import router as image_router
from imagevault.routes.upload_routes import router as upload_router
from imagevault.service_locator import (
    get_read_cache,
    set_ingest_service,
    set_read_cache,
)
from imagevault.services.ingest_service import IngestService

logger = setup_logging('imagevault')

app = FastAPI(
    title="imagevault",
    description="Content-addressed image store over a chunked key-value backend",
    version="1.0.0"
)


def build_ingest_service() -> IngestService:
    """
    Wire the KV store, repository, read cache and lock registry together.
    """
    config.validate_chunk_size(config.CHUNK_SIZE, config.KV_VALUE_LIMIT)

    kv = KVStore(value_limit=config.KV_VALUE_LIMIT)
    repository = BlobRepository(kv, chunk_size=config.CHUNK_SIZE)
    cache = ReadCache(
        ttl_seconds=config.CACHE_TTL,
        sweep_interval_seconds=config.CACHE_SWEEP_INTERVAL,
        max_entries=config.CACHE_MAX_ENTRIES,
    )
    return IngestService(
        repository,
        cache,
        locks=ObjectLockRegistry(),
        public_base_url=config.PUBLIC_BASE_URL,
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(
        f"Request started: {request.method} {request.url.path} [request_id={request_id}]"
    )

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
async def startup_event():
    """
    Initialize database, wire services and start the cache sweep.
    """
    logger.info("imagevault service starting up...")

    init_database()
    logger.info("Database initialized")

    service = build_ingest_service()
    set_ingest_service(service)
    set_read_cache(service.cache)

    await service.cache.start()
    logger.info(f"Chunk size {service.repository.chunk_size} bytes, cache TTL {service.cache.ttl_seconds}s")


@app.on_event("shutdown")
async def shutdown_event():
    """
    Stop background tasks on application shutdown.
    """
    logger.info("imagevault service shutting down...")

    cache = get_read_cache()
    if cache:
        await cache.stop()
        cache.clear()

    set_read_cache(None)
    set_ingest_service(None)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Validation error: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc), "code": "VALIDATION_ERROR"}
    )


@app.exception_handler(ObjectNotFoundError)
@app.exception_handler(IncompleteObjectError)
async def image_not_found_handler(request: Request, exc: ImageVaultException):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.info(
        f"Image not available: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": "Image not found or not yet completed", "code": "IMAGE_NOT_FOUND"}
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Storage consistency fault: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Image data incomplete", "code": "IMAGE_DATA_INCOMPLETE"}
    )


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Storage error: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Storage unavailable", "code": "STORAGE_ERROR"}
    )


@app.exception_handler(ImageVaultException)
async def imagevault_exception_handler(request: Request, exc: ImageVaultException):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"imagevault exception: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error", "code": "INTERNAL_ERROR"}
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": "Not Found", "code": "NOT_FOUND"}
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None)
    )


app.include_router(upload_router)
app.include_router(image_router)


@app.get("/")
@app.get("/index.html")
async def index():
    """
    Landing page with an upload form.
    """
    return FileResponse(config.INDEX_HTML_PATH, media_type="text/html")


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "imagevault.main:app",
        host=config.SERVER_HOST,
        port=config.SERVER_PORT,
    )


if __name__ == "__main__":
    main()
