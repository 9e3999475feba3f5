"""
Merge engine: reassemble a session's chunks into one artifact
"""
import hashlib
import logging
import tempfile
from dataclasses import dataclass, field
from typing import BinaryIO, Optional, Sequence

from ..core.config import Settings
from ..core.exceptions import (
    ChecksumMismatchError,
    ClientInputError,
    IncompleteUploadError,
    StoreIOError,
)
from ..storage.base import BlobStore
from .executor import run_bounded
from .keys import UploadKeys
from .registry import ChunkRegistry, validate_total

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MergeResult:
    """
    Outcome of a merge.

    When the artifact was merged earlier, chunk_count and size are None and
    sha256 is only filled in if the caller asked for it to be checked.
    """

    key: str
    chunk_count: Optional[int]
    size: Optional[int] = None
    sha256: Optional[str] = None
    already_merged: bool = False
    cleanup_failures: list[str] = field(default_factory=list)


def _validate_indices(indices: Sequence[int], max_chunks: int) -> list[int]:
    if not indices:
        raise ClientInputError("chunks", "chunks must list at least one index")
    if len(indices) > max_chunks:
        raise ClientInputError("chunks", f"chunks must list at most {max_chunks} indices")
    if any(i < 0 for i in indices):
        raise ClientInputError("chunks", "chunk indices must be >= 0")
    if max(indices) >= max_chunks:
        raise ClientInputError("chunks", f"chunk indices must be < {max_chunks}")
    if len(set(indices)) != len(indices):
        raise ClientInputError("chunks", "chunks contains duplicate indices")
    return sorted(indices)


class MergeEngine:
    """
    Streams chunks in ascending index order into a local temp file, commits
    the result under the merged key with a single put, then deletes the chunks.

    At most one read block of chunk data is held in memory. The destination
    key is only ever written once, after every chunk was read successfully,
    so a failed or cancelled merge leaves nothing under it.
    """

    def __init__(self, store: BlobStore, registry: ChunkRegistry, settings: Settings):
        self.store = store
        self.registry = registry
        self.settings = settings

    async def _call(self, func, *args, operation: str, key: str, timeout: float = None):
        return await run_bounded(
            func,
            *args,
            timeout=timeout or self.settings.STORE_TIMEOUT_SECONDS,
            operation=operation,
            key=key,
        )

    async def merge(
        self,
        session_id: str,
        filename: str,
        expected_total: Optional[int] = None,
        indices: Optional[Sequence[int]] = None,
        expected_sha256: Optional[str] = None,
    ) -> MergeResult:
        """
        Merge the session's chunks into `merged/{session}/{filename}`.

        Exactly one of `expected_total` (chunks 0..N-1, nothing else) or
        `indices` (an explicit chunk list) must be given. Raises
        IncompleteUploadError before writing anything when the stored chunk
        set does not match. Cleanup failures after the commit are logged and
        returned in the result, never raised.
        """
        if (expected_total is None) == (indices is None):
            raise ClientInputError("expectedTotal", "Provide exactly one of expectedTotal or chunks")
        if expected_total is not None:
            validate_total(expected_total, self.settings.MAX_CHUNKS)
            selected = list(range(expected_total))
        else:
            selected = _validate_indices(indices, self.settings.MAX_CHUNKS)

        final_key = UploadKeys.merged(session_id, filename)
        chunk_keys = await self.registry.list_chunk_keys(session_id, filename)

        if not chunk_keys and await self._call(
            self.store.exists, final_key, operation="stat", key=final_key
        ):
            sha256 = None
            if expected_sha256:
                sha256 = await self._hash_object(final_key)
                if expected_sha256.lower() != sha256:
                    logger.warning(
                        f"Existing {final_key} does not match requested hash: "
                        f"expected {expected_sha256}, got {sha256}"
                    )
                    raise ChecksumMismatchError(expected_sha256, sha256, what="merged file")
            logger.info(f"Session {session_id}/{filename} already merged into {final_key}")
            return MergeResult(key=final_key, chunk_count=None, sha256=sha256, already_merged=True)

        missing = [i for i in selected if i not in chunk_keys]
        unexpected = (
            sorted(i for i in chunk_keys if i >= expected_total) if expected_total is not None else []
        )
        if missing or unexpected:
            logger.warning(
                f"Merge refused for {session_id}/{filename}: missing={missing} unexpected={unexpected}"
            )
            raise IncompleteUploadError(missing, unexpected)

        logger.info(f"Merging {len(selected)} chunks for {session_id}/{filename}")
        size, sha256 = await self._assemble_and_commit(
            [chunk_keys[i] for i in selected], final_key, expected_sha256
        )
        logger.info(f"Committed {final_key} ({size} bytes, sha256 {sha256[:16]})")

        failures = await self._cleanup(session_id, filename, list(chunk_keys.values()))
        return MergeResult(
            key=final_key,
            chunk_count=len(selected),
            size=size,
            sha256=sha256,
            cleanup_failures=failures,
        )

    async def _assemble_and_commit(
        self, keys: list[str], final_key: str, expected_sha256: Optional[str]
    ) -> tuple[int, str]:
        hasher = hashlib.sha256()
        size = 0
        # TemporaryFile is unlinked on close, including on error or cancellation
        try:
            tmp = tempfile.TemporaryFile(dir=self.settings.MERGE_TEMP_DIR)
        except OSError as e:
            logger.error(f"Cannot create merge temp file for {final_key}: {e}")
            raise StoreIOError("write", final_key, e) from e
        with tmp:
            for key in keys:
                size += await self._append_chunk(key, tmp, hasher)

            sha256 = hasher.hexdigest()
            if expected_sha256 and expected_sha256.lower() != sha256:
                logger.warning(f"Merged content hash mismatch for {final_key}: expected {expected_sha256}, got {sha256}")
                raise ChecksumMismatchError(expected_sha256, sha256, what="merged file")

            tmp.flush()
            tmp.seek(0)
            await self._call(
                self.store.put,
                final_key,
                tmp,
                size,
                operation="put",
                key=final_key,
                timeout=self.settings.MERGE_COMMIT_TIMEOUT_SECONDS,
            )
        return size, sha256

    async def _append_chunk(self, key: str, dest: BinaryIO, hasher) -> int:
        """Copy one chunk into dest block by block; the chunk stream is closed before returning"""
        block_size = self.settings.READ_BLOCK_SIZE
        reader = await self._call(self.store.get, key, operation="get", key=key)
        written = 0
        try:
            while True:
                block = await self._call(reader.read, block_size, operation="read", key=key)
                if not block:
                    break
                hasher.update(block)
                try:
                    dest.write(block)
                except OSError as e:
                    logger.error(f"Writing merge temp file failed at {key}: {e}")
                    raise StoreIOError("write", key, e) from e
                written += len(block)
        finally:
            reader.close()
        return written

    async def _hash_object(self, key: str) -> str:
        """SHA-256 of a stored object, read block by block"""
        hasher = hashlib.sha256()
        reader = await self._call(self.store.get, key, operation="get", key=key)
        try:
            while block := await self._call(
                reader.read, self.settings.READ_BLOCK_SIZE, operation="read", key=key
            ):
                hasher.update(block)
        finally:
            reader.close()
        return hasher.hexdigest()

    async def _cleanup(self, session_id: str, filename: str, keys: list[str]) -> list[str]:
        """Best-effort delete of merged chunks. Returns the keys that could not be removed."""
        failures = []
        for key in keys:
            try:
                await self._call(self.store.delete, key, operation="delete", key=key)
            except StoreIOError as e:
                logger.warning(f"Cleanup failed for {key} after merging {session_id}/{filename}: {e}")
                failures.append(key)
        if failures:
            logger.warning(f"{len(failures)} chunk(s) left behind for {session_id}/{filename}")
        else:
            logger.info(f"Cleaned up {len(keys)} chunks for {session_id}/{filename}")
        return failures
