"""
Chunked upload coordinator: the single entry point the HTTP layer talks to
"""
import logging
from typing import AsyncIterator, BinaryIO, Optional, Sequence

from ..core.config import Settings
from ..core.exceptions import ArtifactNotFoundError
from ..storage.base import BlobStore
from .executor import run_bounded
from .keys import UploadKeys
from .merge import MergeEngine, MergeResult
from .registry import ChunkRegistry, Completeness, StoredChunk

logger = logging.getLogger(__name__)


class UploadCoordinator:
    """
    Business logic for chunked uploads.

    Holds no per-session state: every answer comes from the blob store, so
    any number of requests (or processes) can share one store.
    """

    def __init__(self, store: BlobStore, settings: Settings):
        self.store = store
        self.settings = settings
        self.registry = ChunkRegistry(store, settings)
        self.merge_engine = MergeEngine(store, self.registry, settings)

    async def store_chunk(
        self,
        session_id: str,
        filename: str,
        index: int,
        stream: BinaryIO,
        expected_md5: Optional[str] = None,
    ) -> StoredChunk:
        return await self.registry.store_chunk(session_id, filename, index, stream, expected_md5)

    async def list_uploaded(self, session_id: str, filename: str) -> list[int]:
        return await self.registry.list_uploaded(session_id, filename)

    async def missing(self, session_id: str, filename: str, expected_total: int) -> list[int]:
        return await self.registry.missing(session_id, filename, expected_total)

    async def completeness(self, session_id: str, filename: str, expected_total: int) -> Completeness:
        return await self.registry.completeness(session_id, filename, expected_total)

    async def merge(
        self,
        session_id: str,
        filename: str,
        expected_total: Optional[int] = None,
        indices: Optional[Sequence[int]] = None,
        expected_sha256: Optional[str] = None,
    ) -> MergeResult:
        return await self.merge_engine.merge(
            session_id,
            filename,
            expected_total=expected_total,
            indices=indices,
            expected_sha256=expected_sha256,
        )

    async def purge(self, session_id: str, filename: str) -> int:
        return await self.registry.purge(session_id, filename)

    async def locate_artifact(self, session_id: str, filename: str) -> str:
        """Key of the merged artifact; ArtifactNotFoundError if it was never merged"""
        key = UploadKeys.merged(session_id, filename)
        found = await run_bounded(
            self.store.exists,
            key,
            timeout=self.settings.STORE_TIMEOUT_SECONDS,
            operation="stat",
            key=key,
        )
        if not found:
            raise ArtifactNotFoundError(key)
        return key

    async def stream_artifact(self, key: str) -> AsyncIterator[bytes]:
        """
        Yield the stored object block by block.

        Each read is its own bounded executor call, so the event loop stays
        free and a client disconnect stops the transfer between blocks.
        """
        timeout = self.settings.STORE_TIMEOUT_SECONDS
        reader = await run_bounded(self.store.get, key, timeout=timeout, operation="get", key=key)
        try:
            while True:
                block = await run_bounded(
                    reader.read, self.settings.READ_BLOCK_SIZE, timeout=timeout, operation="read", key=key
                )
                if not block:
                    break
                yield block
        finally:
            reader.close()

    async def ensure_bucket(self) -> None:
        await run_bounded(
            self.store.ensure_bucket,
            timeout=self.settings.STORE_TIMEOUT_SECONDS,
            operation="ensure_bucket",
            key="",
        )
