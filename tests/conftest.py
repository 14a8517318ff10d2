"""Shared pytest fixtures for all tests."""

from io import BytesIO
from pathlib import Path

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from common.constants import CHUNK_SIZE_BYTES
from imagevault.database import init_database
from imagevault.kv_store import KVStore
from imagevault.read_cache import ReadCache
from imagevault.repositories.blob_repository import BlobRepository
from imagevault.services.ingest_service import IngestService


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def test_db(tmp_path, monkeypatch) -> Path:
    """
    Point the database at a fresh temporary file.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to the initialized SQLite file
    """
    db_path = tmp_path / "test.db"
    monkeypatch.setattr("imagevault.database.DATABASE_PATH", str(db_path))
    monkeypatch.setattr("imagevault.config.DATABASE_PATH", str(db_path))
    init_database()
    return db_path


@pytest.fixture
def kv_store(test_db) -> KVStore:
    return KVStore()


@pytest.fixture
def repository(kv_store) -> BlobRepository:
    return BlobRepository(kv_store, chunk_size=CHUNK_SIZE_BYTES)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def read_cache(fake_clock) -> ReadCache:
    return ReadCache(ttl_seconds=60, clock=fake_clock)


@pytest.fixture
def ingest_service(repository, read_cache) -> IngestService:
    return IngestService(repository, read_cache)


@pytest.fixture
def make_upload():
    """
    Factory for in-memory UploadFile instances.

    Returns:
        Callable (name, data, content_type) -> UploadFile
    """
    def _make(name: str, data: bytes, content_type: str = "image/png") -> UploadFile:
        return UploadFile(
            file=BytesIO(data),
            filename=name,
            headers=Headers({"content-type": content_type}),
        )

    return _make
