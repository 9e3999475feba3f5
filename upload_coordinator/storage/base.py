"""
Blob store interface consumed by the coordinator
"""
from abc import ABC, abstractmethod
from typing import BinaryIO, Iterator, Protocol


class ReadableStream(Protocol):
    """What `BlobStore.get` hands back: read blocks, then close"""

    def read(self, size: int = -1) -> bytes: ...

    def close(self) -> None: ...


class BlobStore(ABC):
    """
    Key-addressed byte storage.

    Implementations are blocking; the coordinator runs every call in a worker
    thread with a timeout. Library errors must be translated into
    `StoreIOError` so callers only deal with one failure type.
    """

    @abstractmethod
    def put(self, key: str, stream: BinaryIO, length: int = -1) -> None:
        """Store the stream under key, replacing any existing object.

        The object must not be visible under key until the write completes.
        `length` is -1 when the size is unknown.
        """

    @abstractmethod
    def get(self, key: str) -> ReadableStream:
        """Open the object for sequential reading. Caller must close it."""

    @abstractmethod
    def list(self, prefix: str) -> Iterator[str]:
        """Lazily yield every key that starts with prefix"""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key. Deleting a missing key is not an error."""

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check if key exists"""

    def ensure_bucket(self) -> None:
        """Create the bucket/namespace if the backend has one"""
