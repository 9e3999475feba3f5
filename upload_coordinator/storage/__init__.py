"""Storage module exports"""
from ..core.config import Settings
from .base import BlobStore, ReadableStream
from .filesystem import FilesystemBlobStore
from .minio_store import MinioBlobStore
from .s3_store import S3BlobStore


def build_blob_store(settings: Settings) -> BlobStore:
    """Create the blob store selected by STORAGE_BACKEND"""
    if settings.STORAGE_BACKEND == "filesystem":
        return FilesystemBlobStore(settings.FILESYSTEM_ROOT)
    if settings.STORAGE_BACKEND == "s3":
        return S3BlobStore(settings)
    return MinioBlobStore(settings)


__all__ = [
    "BlobStore",
    "ReadableStream",
    "FilesystemBlobStore",
    "MinioBlobStore",
    "S3BlobStore",
    "build_blob_store",
]
