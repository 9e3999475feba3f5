"""
Chunk registry: durable chunk writes and point-in-time completeness queries.

The blob store is the only source of truth. A chunk "exists" exactly when
its key exists, so there is no session record to keep in sync and no
read-before-write check on upload.
"""
import hashlib
import logging
from dataclasses import dataclass, field
from typing import BinaryIO, Optional

from ..core.config import Settings
from ..core.exceptions import ChecksumMismatchError, ClientInputError
from ..storage.base import BlobStore
from .executor import run_bounded
from .keys import UploadKeys

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredChunk:
    """Confirmation of a chunk write"""

    key: str
    index: int
    size: int
    md5: str


@dataclass(frozen=True)
class Completeness:
    """Snapshot of a session's chunk set against an expected total"""

    expected_total: int
    uploaded: list[int]
    missing: list[int]
    unexpected: list[int] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.missing and not self.unexpected


def validate_total(expected_total: int, max_chunks: int, field_name: str = "expectedTotal") -> None:
    if expected_total < 1:
        raise ClientInputError(field_name, f"{field_name} must be >= 1")
    if expected_total > max_chunks:
        raise ClientInputError(field_name, f"{field_name} must be <= {max_chunks}")


def _digest(stream: BinaryIO, block_size: int) -> tuple[int, str]:
    """MD5 and size of a seekable stream, rewound afterwards"""
    hasher = hashlib.md5()
    size = 0
    while block := stream.read(block_size):
        hasher.update(block)
        size += len(block)
    stream.seek(0)
    return size, hasher.hexdigest()


class ChunkRegistry:
    """Upload path and status queries for chunked uploads"""

    def __init__(self, store: BlobStore, settings: Settings):
        self.store = store
        self.settings = settings

    async def _call(self, func, *args, operation: str, key: str):
        return await run_bounded(
            func, *args, timeout=self.settings.STORE_TIMEOUT_SECONDS, operation=operation, key=key
        )

    async def store_chunk(
        self,
        session_id: str,
        filename: str,
        index: int,
        stream: BinaryIO,
        expected_md5: Optional[str] = None,
    ) -> StoredChunk:
        """
        Write one chunk, replacing whatever was stored at that index.

        The stream must be seekable: it is hashed first, then rewound and
        handed to the store with its exact length. Nothing is written when
        `expected_md5` is given and does not match.
        """
        if index >= self.settings.MAX_CHUNKS:
            raise ClientInputError("chunkIndex", f"chunkIndex must be < {self.settings.MAX_CHUNKS}")
        key = UploadKeys.chunk(session_id, filename, index)

        size, md5 = await self._call(
            _digest, stream, self.settings.READ_BLOCK_SIZE, operation="hash", key=key
        )
        if expected_md5 and expected_md5.lower() != md5:
            logger.warning(
                f"Checksum mismatch for chunk {index} of {session_id}/{filename}: "
                f"expected {expected_md5}, got {md5}"
            )
            raise ChecksumMismatchError(expected_md5, md5, what=f"chunk {index}")

        await self._call(self.store.put, key, stream, size, operation="put", key=key)
        logger.info(f"Stored chunk {index} for {session_id}/{filename} ({size} bytes)")
        return StoredChunk(key=key, index=index, size=size, md5=md5)

    async def _list_keys(self, prefix: str) -> list[str]:
        return await self._call(
            lambda: list(self.store.list(prefix)), operation="list", key=prefix
        )

    async def list_chunk_keys(self, session_id: str, filename: str) -> dict[int, str]:
        """
        Map chunk index -> key for everything under the session prefix.

        The listing is drained completely before any key is parsed; one
        unparseable key fails the whole call with CorruptionError.
        """
        prefix = UploadKeys.session_prefix(session_id, filename)
        keys = await self._list_keys(prefix)
        return {UploadKeys.chunk_index(prefix, key): key for key in keys}

    async def list_uploaded(self, session_id: str, filename: str) -> list[int]:
        """Indices durably stored right now, ascending"""
        return sorted(await self.list_chunk_keys(session_id, filename))

    async def completeness(self, session_id: str, filename: str, expected_total: int) -> Completeness:
        validate_total(expected_total, self.settings.MAX_CHUNKS)
        uploaded = await self.list_uploaded(session_id, filename)
        present = set(uploaded)
        return Completeness(
            expected_total=expected_total,
            uploaded=uploaded,
            missing=[i for i in range(expected_total) if i not in present],
            unexpected=[i for i in uploaded if i >= expected_total],
        )

    async def missing(self, session_id: str, filename: str, expected_total: int) -> list[int]:
        """Indices in 0..expected_total-1 not stored yet, ascending"""
        return (await self.completeness(session_id, filename, expected_total)).missing

    async def purge(self, session_id: str, filename: str) -> int:
        """
        Delete every key under the session prefix, parseable or not.

        Returns how many keys were removed.
        """
        keys = await self._list_keys(UploadKeys.session_prefix(session_id, filename))
        for key in keys:
            await self._call(self.store.delete, key, operation="delete", key=key)
        logger.info(f"Purged {len(keys)} chunks for {session_id}/{filename}")
        return len(keys)
