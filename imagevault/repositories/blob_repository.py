"""Blob repository: object metadata, chunk records and the digest index on the KV store."""

import time
from typing import Callable, List, Optional, Tuple

from common.constants import (
    IMAGES_PREFIX,
    DIGEST_INDEX_PREFIX,
    META_KEY,
    CHUNK_KEY,
    DEFAULT_MIME_TYPE,
)
from common.logging_config import get_logger
from common.types import ObjectMetadata, ObjectResolution, ObjectReservation
from imagevault import chunk_codec
from imagevault.config import CHUNK_SIZE, validate_chunk_size
from imagevault.content_hasher import verify_digest
from imagevault.exceptions import (
    IncompleteObjectError,
    IntegrityError,
    ObjectNotFoundError,
    StorageError,
)
from imagevault.kv_store import Key, KVStore
from imagevault.utils import generate_uuid

logger = get_logger(__name__)


def meta_key(object_id: str) -> Key:
    return (IMAGES_PREFIX, object_id, META_KEY)


def chunk_key(object_id: str, index: int) -> Key:
    return (IMAGES_PREFIX, object_id, CHUNK_KEY, index)


def digest_key(digest: str) -> Key:
    return (DIGEST_INDEX_PREFIX, digest)


class BlobRepository:
    """
    Persistent data model for chunked objects.

    Writes follow a two-phase protocol: metadata with completed=False,
    then every chunk, then metadata with completed=True. Each step is
    awaited before the next is issued, so a reader that sees
    completed=True also sees every chunk.
    """

    def __init__(
        self,
        kv: KVStore,
        chunk_size: int = CHUNK_SIZE,
        verify_on_read: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        self.kv = kv
        self.chunk_size = validate_chunk_size(chunk_size, kv.value_limit)
        self.verify_on_read = verify_on_read
        self._clock = clock

    async def get_metadata(self, object_id: str) -> Optional[ObjectMetadata]:
        entry = await self.kv.get(meta_key(object_id))
        if entry.value is None:
            return None
        return ObjectMetadata.from_dict(entry.value)

    async def resolve(self, digest: str) -> Optional[ObjectResolution]:
        """
        Look up the object indexed under a content digest.

        Args:
            digest: Content digest

        Returns:
            ObjectResolution, or None if the digest was never indexed.
            Missing metadata for an indexed id reads as not completed.
        """
        entry = await self.kv.get(digest_key(digest))
        if entry.value is None:
            return None

        object_id = entry.value
        metadata = await self.get_metadata(object_id)
        completed = metadata is not None and metadata.completed
        return ObjectResolution(object_id=object_id, completed=completed)

    async def create_or_reuse(self, digest: str) -> ObjectReservation:
        """
        Reserve an object id for a digest.

        An unindexed digest gets a fresh id, written together with its
        index entry and a completed=False placeholder in one conditional
        commit. If another writer indexed the digest first, the winner's
        id is reused.

        Args:
            digest: Content digest

        Returns:
            ObjectReservation with created=True only for a freshly allocated id

        Raises:
            StorageError: If the conflict winner cannot be resolved
        """
        existing = await self.resolve(digest)
        if existing is not None:
            return ObjectReservation(object_id=existing.object_id, created=False)

        object_id = generate_uuid()
        placeholder = ObjectMetadata(
            object_id=object_id,
            name="",
            mime_type=DEFAULT_MIME_TYPE,
            total_size=0,
            chunk_count=0,
            created_at=self._clock(),
            content_digest=digest,
            completed=False,
        )

        committed = await (
            self.kv.atomic()
            .check(digest_key(digest), None)
            .set(digest_key(digest), object_id)
            .set(meta_key(object_id), placeholder.to_dict())
            .commit()
        )
        if committed:
            logger.debug(f"Allocated object {object_id} for digest {digest}")
            return ObjectReservation(object_id=object_id, created=True)

        winner = await self.resolve(digest)
        if winner is None:
            raise StorageError(f"Digest {digest} conflicted but no indexed object was found")

        logger.info(f"Lost race for digest {digest}, reusing object {winner.object_id}")
        return ObjectReservation(object_id=winner.object_id, created=False)

    async def write_payload(
        self,
        object_id: str,
        payload: bytes,
        name: str,
        mime_type: str,
        digest: str,
    ) -> ObjectMetadata:
        """
        Write an object's chunks and flip its completed flag last.

        Args:
            object_id: Reserved object id
            payload: Full object bytes
            name: Original filename
            mime_type: MIME type reported by the client
            digest: Content digest of payload

        Returns:
            Completed metadata record
        """
        chunks = chunk_codec.split(payload, self.chunk_size)
        metadata = ObjectMetadata(
            object_id=object_id,
            name=name,
            mime_type=mime_type or DEFAULT_MIME_TYPE,
            total_size=len(payload),
            chunk_count=len(chunks),
            created_at=self._clock(),
            content_digest=digest,
            completed=False,
        )

        await self.kv.set(meta_key(object_id), metadata.to_dict())

        for index, chunk in enumerate(chunks):
            await self.kv.set(chunk_key(object_id, index), chunk)

        completed = metadata.mark_completed()
        await self.kv.set(meta_key(object_id), completed.to_dict())
        logger.info(f"Stored object {object_id} ({completed.total_size} bytes, {completed.chunk_count} chunks)")

        await self._delete_stale_chunks(object_id, completed.chunk_count)
        return completed

    async def read(self, object_id: str) -> bytes:
        _, payload = await self.read_object(object_id)
        return payload

    async def read_object(self, object_id: str) -> Tuple[ObjectMetadata, bytes]:
        """
        Reassemble a completed object.

        Args:
            object_id: Object identifier

        Returns:
            (metadata, payload)

        Raises:
            ObjectNotFoundError: If no metadata exists
            IncompleteObjectError: If the object is still being written
            IntegrityError: If chunk data is missing or inconsistent
        """
        metadata = await self.get_metadata(object_id)
        if metadata is None:
            raise ObjectNotFoundError(f"Image {object_id} not found")
        if not metadata.completed:
            raise IncompleteObjectError(f"Image {object_id} is not yet completed")

        entries = await self.kv.get_many(
            [chunk_key(object_id, index) for index in range(metadata.chunk_count)]
        )

        try:
            payload = chunk_codec.join([entry.value for entry in entries], metadata.total_size)
        except IntegrityError as e:
            logger.error(f"Storage consistency fault for completed image {object_id}: {e}")
            raise IntegrityError(f"Image {object_id} data incomplete: {e}") from e

        if self.verify_on_read and not verify_digest(payload, metadata.content_digest):
            logger.error(f"Digest mismatch for completed image {object_id}")
            raise IntegrityError(f"Image {object_id} does not match its content digest")

        return metadata, payload

    async def list_chunk_indexes(self, object_id: str) -> List[int]:
        entries = await self.kv.list((IMAGES_PREFIX, object_id, CHUNK_KEY))
        return [entry.key[-1] for entry in entries]

    async def _delete_stale_chunks(self, object_id: str, chunk_count: int) -> None:
        stale = [index for index in await self.list_chunk_indexes(object_id) if index >= chunk_count]
        for index in stale:
            await self.kv.delete(chunk_key(object_id, index))
        if stale:
            logger.info(f"Removed {len(stale)} stale chunks [object_id={object_id}]")
