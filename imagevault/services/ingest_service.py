"""Ingest service: per-file upload orchestration and cached reads."""

from typing import List, Optional, Sequence, Tuple, Union

from fastapi import UploadFile

from common.logging_config import get_logger
from common.types import UploadOutcome, UploadStatus
from imagevault import content_hasher
from imagevault.exceptions import ImageVaultException, ValidationError
from imagevault.object_locks import ObjectLockRegistry
from imagevault.read_cache import ReadCache
from imagevault.repositories.blob_repository import BlobRepository
from imagevault.utils import build_image_url

logger = get_logger(__name__)

FormEntry = Union[UploadFile, str]


class IngestService:
    def __init__(
        self,
        repository: BlobRepository,
        cache: ReadCache,
        locks: Optional[ObjectLockRegistry] = None,
        public_base_url: Optional[str] = None,
    ):
        self.repository = repository
        self.cache = cache
        self.locks = locks or ObjectLockRegistry()
        self.public_base_url = public_base_url

    async def handle_upload(self, files: Sequence[FormEntry], origin: str) -> List[UploadOutcome]:
        """
        Ingest every submitted file independently.

        A failing file is reported as an error entry and never aborts
        the remaining files.

        Args:
            files: Form entries submitted under the "file" field
            origin: Request origin used to build public URLs

        Returns:
            One UploadOutcome per submitted entry, in order

        Raises:
            ValidationError: If no files were submitted
        """
        if not files:
            raise ValidationError("No files uploaded")

        base_url = self.public_base_url or origin
        results = []

        for file in files:
            if isinstance(file, str):
                results.append(
                    UploadOutcome(name="unknown", status=UploadStatus.ERROR, error="Invalid file data")
                )
                continue

            results.append(await self._ingest_file(file, base_url))

        failed = sum(1 for result in results if result.status == UploadStatus.ERROR)
        logger.info(f"Upload batch finished: {len(results) - failed} succeeded, {failed} failed")
        return results

    async def _ingest_file(self, file: UploadFile, base_url: str) -> UploadOutcome:
        name = file.filename or "unknown"

        try:
            payload = await file.read()
            digest = content_hasher.digest(payload)
            object_id, status = await self.store(payload, name, file.content_type, digest)
        except ImageVaultException as e:
            logger.error(f"Error processing file {name}: {e}")
            return UploadOutcome(name=name, status=UploadStatus.ERROR, error=str(e))
        except Exception as e:
            logger.error(f"Unexpected error processing file {name}: {e}", exc_info=True)
            return UploadOutcome(name=name, status=UploadStatus.ERROR, error="Failed to store file")

        return UploadOutcome(
            name=name,
            status=status,
            url=build_image_url(base_url, object_id, name),
        )

    async def store(
        self,
        payload: bytes,
        name: str,
        mime_type: Optional[str],
        digest: str,
    ) -> Tuple[str, UploadStatus]:
        """
        Apply the dedup policy to one payload.

        A completed object with the same digest is reused without writing.
        An incomplete one is overwritten in place under its existing id.
        Otherwise a new object is allocated.

        Returns:
            (object_id, status)
        """
        existing = await self.repository.resolve(digest)
        if existing is not None and existing.completed:
            logger.info(f"File {name} (digest: {digest}) already exists and is completed")
            return existing.object_id, UploadStatus.CACHED

        reservation = await self.repository.create_or_reuse(digest)
        object_id = reservation.object_id

        async with self.locks.hold(object_id):
            metadata = await self.repository.get_metadata(object_id)
            if metadata is not None and metadata.completed:
                logger.info(f"File {name} (digest: {digest}) was completed by a concurrent upload")
                return object_id, UploadStatus.CACHED

            if not reservation.created:
                logger.info(f"File {name} (digest: {digest}) exists but is not completed. Overwriting")

            await self.repository.write_payload(object_id, payload, name, mime_type, digest)

        status = UploadStatus.UPLOADED if reservation.created else UploadStatus.OVERWRITTEN
        logger.info(f"File {name} stored as {object_id} [status={status.value}]")
        return object_id, status

    async def handle_read(self, object_id: str) -> Tuple[bytes, str]:
        """
        Serve an object from the read cache, falling back to the repository.

        Args:
            object_id: Object identifier

        Returns:
            (payload, mime_type)

        Raises:
            ObjectNotFoundError: If the object does not exist
            IncompleteObjectError: If the object is still being written
            IntegrityError: If a completed object is missing chunk data
        """
        cached = self.cache.get(object_id)
        if cached is not None:
            metadata = await self.repository.get_metadata(object_id)
            if metadata is not None:
                logger.info(f"Serving image {object_id} from cache")
                return cached, metadata.mime_type
            self.cache.invalidate(object_id)

        metadata, payload = await self.repository.read_object(object_id)
        self.cache.put(object_id, payload)
        return payload, metadata.mime_type
