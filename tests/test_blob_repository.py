"""Integration tests for the blob repository."""

import asyncio
import os

import pytest

from common.types import ObjectMetadata
from imagevault.content_hasher import digest
from imagevault.exceptions import (
    IncompleteObjectError,
    IntegrityError,
    ObjectNotFoundError,
)
from imagevault.kv_store import KVStore
from imagevault.repositories.blob_repository import (
    BlobRepository,
    chunk_key,
    digest_key,
    meta_key,
)

KIB = 1024


async def _store(repository, payload, name="photo.png", mime_type="image/png"):
    content_digest = digest(payload)
    reservation = await repository.create_or_reuse(content_digest)
    await repository.write_payload(reservation.object_id, payload, name, mime_type, content_digest)
    return reservation.object_id


class TestRepositoryConstruction:

    def test_rejects_chunk_size_above_value_limit(self, test_db):
        with pytest.raises(ValueError):
            BlobRepository(KVStore(value_limit=1024), chunk_size=2048)


class TestResolveAndCreate:

    @pytest.mark.asyncio
    async def test_resolve_unknown_digest(self, repository):
        assert await repository.resolve("0" * 32) is None

    @pytest.mark.asyncio
    async def test_create_writes_index_and_incomplete_metadata(self, repository, kv_store):
        reservation = await repository.create_or_reuse("d" * 32)

        assert reservation.created is True
        assert (await kv_store.get(digest_key("d" * 32))).value == reservation.object_id

        metadata = await repository.get_metadata(reservation.object_id)
        assert metadata.completed is False
        assert metadata.content_digest == "d" * 32

        resolution = await repository.resolve("d" * 32)
        assert resolution.object_id == reservation.object_id
        assert resolution.completed is False

    @pytest.mark.asyncio
    async def test_create_reuses_incomplete_object(self, repository):
        first = await repository.create_or_reuse("d" * 32)
        second = await repository.create_or_reuse("d" * 32)

        assert second.object_id == first.object_id
        assert second.created is False

    @pytest.mark.asyncio
    async def test_concurrent_create_has_single_winner(self, repository):
        results = await asyncio.gather(
            *(repository.create_or_reuse("e" * 32) for _ in range(4))
        )

        assert len({result.object_id for result in results}) == 1
        assert sum(1 for result in results if result.created) == 1

    @pytest.mark.asyncio
    async def test_lost_race_falls_back_to_winner(self, repository, kv_store, monkeypatch):
        original_resolve = repository.resolve
        calls = []

        async def racing_resolve(content_digest):
            calls.append(content_digest)
            if len(calls) == 1:
                await kv_store.set(digest_key(content_digest), "winner-id")
                return None
            return await original_resolve(content_digest)

        monkeypatch.setattr(repository, "resolve", racing_resolve)

        reservation = await repository.create_or_reuse("f" * 32)
        assert reservation.object_id == "winner-id"
        assert reservation.created is False

    @pytest.mark.asyncio
    async def test_indexed_digest_without_metadata_reads_incomplete(self, repository, kv_store):
        await kv_store.set(digest_key("a" * 32), "orphan-id")

        resolution = await repository.resolve("a" * 32)
        assert resolution.object_id == "orphan-id"
        assert resolution.completed is False


class TestWriteAndRead:

    @pytest.mark.asyncio
    async def test_120_kib_object_uses_three_chunks(self, repository, kv_store):
        payload = os.urandom(120 * KIB)
        object_id = await _store(repository, payload)

        metadata = await repository.get_metadata(object_id)
        assert metadata.completed is True
        assert metadata.chunk_count == 3
        assert metadata.total_size == 120 * KIB
        assert metadata.mime_type == "image/png"

        sizes = [len((await kv_store.get(chunk_key(object_id, i))).value) for i in range(3)]
        assert sizes == [50 * KIB, 50 * KIB, 20 * KIB]

        assert await repository.read(object_id) == payload

    @pytest.mark.asyncio
    async def test_empty_object(self, repository):
        object_id = await _store(repository, b"", name="empty.gif", mime_type="image/gif")

        metadata = await repository.get_metadata(object_id)
        assert metadata.chunk_count == 0
        assert metadata.completed is True
        assert await repository.read(object_id) == b""

    @pytest.mark.asyncio
    async def test_read_unknown_object(self, repository):
        with pytest.raises(ObjectNotFoundError):
            await repository.read("does-not-exist")

    @pytest.mark.asyncio
    async def test_read_incomplete_object(self, repository, kv_store):
        reservation = await repository.create_or_reuse("b" * 32)
        await kv_store.set(chunk_key(reservation.object_id, 0), b"partial")

        with pytest.raises(IncompleteObjectError):
            await repository.read(reservation.object_id)

    @pytest.mark.asyncio
    async def test_missing_chunk_on_completed_object(self, repository, kv_store):
        object_id = await _store(repository, os.urandom(60 * KIB))
        await kv_store.delete(chunk_key(object_id, 1))

        with pytest.raises(IntegrityError):
            await repository.read(object_id)

    @pytest.mark.asyncio
    async def test_verify_on_read_detects_corruption(self, kv_store):
        repository = BlobRepository(kv_store, chunk_size=16, verify_on_read=True)
        object_id = await _store(repository, b"0123456789abcdef0123")
        await kv_store.set(chunk_key(object_id, 1), b"XXXX")

        with pytest.raises(IntegrityError, match="content digest"):
            await repository.read(object_id)

    @pytest.mark.asyncio
    async def test_reader_never_sees_partial_write(self, repository, kv_store, monkeypatch):
        payload = os.urandom(120 * KIB)
        content_digest = digest(payload)
        reservation = await repository.create_or_reuse(content_digest)
        object_id = reservation.object_id

        reached = asyncio.Event()
        release = asyncio.Event()
        original_set = kv_store.set

        async def gated_set(key, value):
            if key == chunk_key(object_id, 1):
                reached.set()
                await release.wait()
            return await original_set(key, value)

        monkeypatch.setattr(kv_store, "set", gated_set)

        writer = asyncio.create_task(
            repository.write_payload(object_id, payload, "big.png", "image/png", content_digest)
        )
        await reached.wait()

        with pytest.raises(IncompleteObjectError):
            await repository.read(object_id)

        release.set()
        await writer

        assert await repository.read(object_id) == payload

    @pytest.mark.asyncio
    async def test_write_order_is_metadata_chunks_metadata(self, repository, kv_store, monkeypatch):
        writes = []
        original_set = kv_store.set

        async def recording_set(key, value):
            if key[-1] == "meta":
                writes.append(("meta", value["completed"]))
            else:
                writes.append(("chunk", key[-1]))
            return await original_set(key, value)

        monkeypatch.setattr(kv_store, "set", recording_set)

        payload = os.urandom(101 * KIB)
        content_digest = digest(payload)
        reservation = await repository.create_or_reuse(content_digest)
        await repository.write_payload(reservation.object_id, payload, "a.png", "image/png", content_digest)

        assert writes == [
            ("meta", False),
            ("chunk", 0),
            ("chunk", 1),
            ("chunk", 2),
            ("meta", True),
        ]

    @pytest.mark.asyncio
    async def test_overwrite_removes_stale_chunks(self, repository, kv_store):
        payload = os.urandom(70 * KIB)
        content_digest = digest(payload)
        reservation = await repository.create_or_reuse(content_digest)
        for index in range(5):
            await kv_store.set(chunk_key(reservation.object_id, index), b"stale")

        await repository.write_payload(reservation.object_id, payload, "a.png", "image/png", content_digest)

        assert await repository.list_chunk_indexes(reservation.object_id) == [0, 1]
        assert await repository.read(reservation.object_id) == payload

    @pytest.mark.asyncio
    async def test_metadata_round_trips_through_store(self, repository, kv_store):
        object_id = await _store(repository, b"abc", name="tiny.webp", mime_type="image/webp")

        raw = (await kv_store.get(meta_key(object_id))).value
        metadata = ObjectMetadata.from_dict(raw)
        assert metadata.name == "tiny.webp"
        assert metadata.content_digest == digest(b"abc")
        assert metadata.object_id == object_id
