"""Shared fixtures: a filesystem-backed coordinator and app per test, plus fault-injecting stores."""
import asyncio
import io
from typing import BinaryIO, Iterator

import pytest
from fastapi.testclient import TestClient

from upload_coordinator.core import Settings, StoreIOError
from upload_coordinator.main import create_app
from upload_coordinator.services import UploadCoordinator
from upload_coordinator.storage import BlobStore, FilesystemBlobStore


class MemoryBlobStore(BlobStore):
    """Dict-backed store; subclasses override single operations to inject faults."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.put_calls: list[str] = []

    def put(self, key: str, stream: BinaryIO, length: int = -1) -> None:
        self.put_calls.append(key)
        self.objects[key] = stream.read()

    def get(self, key: str):
        if key not in self.objects:
            raise StoreIOError("get", key, KeyError(key))
        return io.BytesIO(self.objects[key])

    def list(self, prefix: str) -> Iterator[str]:
        for key in sorted(self.objects):
            if key.startswith(prefix):
                yield key

    def delete(self, key: str) -> None:
        self.objects.pop(key, None)

    def exists(self, key: str) -> bool:
        return key in self.objects


def make_settings(tmp_path, **overrides) -> Settings:
    temp_dir = tmp_path / "merge-tmp"
    temp_dir.mkdir(exist_ok=True)
    values = dict(
        STORAGE_BACKEND="filesystem",
        FILESYSTEM_ROOT=str(tmp_path / "blobs"),
        MERGE_TEMP_DIR=str(temp_dir),
        AUTO_CREATE_BUCKET=True,
        STORE_TIMEOUT_SECONDS=5,
        # Small blocks so every chunk is copied in several reads
        READ_BLOCK_SIZE=4,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
def store(settings) -> FilesystemBlobStore:
    store = FilesystemBlobStore(settings.FILESYSTEM_ROOT)
    store.ensure_bucket()
    return store


@pytest.fixture
def coordinator(store, settings) -> UploadCoordinator:
    return UploadCoordinator(store, settings)


@pytest.fixture
def client(settings, store):
    with TestClient(create_app(settings, store)) as test_client:
        yield test_client


def store_chunks(coordinator: UploadCoordinator, session_id: str, filename: str, chunks: dict[int, bytes]):
    """Upload {index: payload} through the coordinator."""
    for index, payload in chunks.items():
        asyncio.run(coordinator.store_chunk(session_id, filename, index, io.BytesIO(payload)))


def read_object(store: BlobStore, key: str) -> bytes:
    reader = store.get(key)
    try:
        return reader.read()
    finally:
        reader.close()
