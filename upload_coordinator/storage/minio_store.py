"""
MinIO blob store adapter
"""
import logging
from typing import BinaryIO, Iterator

import urllib3
from minio import Minio
from minio.error import S3Error

from ..core.config import Settings
from ..core.exceptions import StoreIOError
from .base import BlobStore

logger = logging.getLogger(__name__)

# Part size used when the stream length is unknown (MinIO requires >= 5 MiB)
UNKNOWN_LENGTH_PART_SIZE = 10 * 1024 * 1024


class MinioObjectStream:
    """Wraps a MinIO GET response so closing it also returns the connection to the pool"""

    def __init__(self, response, key: str):
        self._response = response
        self._key = key

    def read(self, size: int = -1) -> bytes:
        try:
            return self._response.read(None if size < 0 else size)
        except (urllib3.exceptions.HTTPError, OSError) as e:
            raise StoreIOError("read", self._key, e) from e

    def close(self) -> None:
        self._response.close()
        self._response.release_conn()


class MinioBlobStore(BlobStore):
    """
    Object storage using the MinIO SDK (S3-compatible).

    Keys are used verbatim as object names inside a single bucket. All calls
    go through an urllib3 pool with connect/read timeouts so a stalled MinIO
    node cannot pin a worker thread forever.
    """

    def __init__(self, settings: Settings, client: Minio = None):
        if client is None:
            timeout = settings.STORE_TIMEOUT_SECONDS
            client = Minio(
                endpoint=settings.MINIO_ENDPOINT,
                access_key=settings.MINIO_ACCESS_KEY,
                secret_key=settings.MINIO_SECRET_KEY,
                secure=settings.MINIO_SECURE,
                region=settings.MINIO_REGION,
                http_client=urllib3.PoolManager(
                    timeout=urllib3.Timeout(connect=timeout, read=timeout),
                    retries=urllib3.Retry(total=0),
                ),
            )
        self.client = client
        self.bucket = settings.MINIO_BUCKET
        self.region = settings.MINIO_REGION
        logger.info(f"MinIO client initialized: {settings.MINIO_ENDPOINT}/{self.bucket}")

    def ensure_bucket(self) -> None:
        """Create bucket if it doesn't exist"""
        try:
            if not self.client.bucket_exists(bucket_name=self.bucket):
                self.client.make_bucket(bucket_name=self.bucket, location=self.region)
                logger.info(f"Created MinIO bucket: {self.bucket}")
            else:
                logger.info(f"MinIO bucket exists: {self.bucket}")
        except S3Error as e:
            logger.error(f"Failed to create bucket {self.bucket}: {e}")
            raise StoreIOError("ensure_bucket", self.bucket, e) from e

    def put(self, key: str, stream: BinaryIO, length: int = -1) -> None:
        # A single PUT (or completed multipart upload) is atomic per object
        try:
            self.client.put_object(
                bucket_name=self.bucket,
                object_name=key,
                data=stream,
                length=length,
                part_size=UNKNOWN_LENGTH_PART_SIZE if length < 0 else 0,
                content_type="application/octet-stream",
            )
        except (S3Error, urllib3.exceptions.HTTPError, OSError) as e:
            logger.error(f"Failed to put {key}: {e}")
            raise StoreIOError("put", key, e) from e

    def get(self, key: str) -> MinioObjectStream:
        try:
            response = self.client.get_object(bucket_name=self.bucket, object_name=key)
        except (S3Error, urllib3.exceptions.HTTPError, OSError) as e:
            logger.error(f"Failed to get {key}: {e}")
            raise StoreIOError("get", key, e) from e
        return MinioObjectStream(response, key)

    def list(self, prefix: str) -> Iterator[str]:
        try:
            for obj in self.client.list_objects(
                bucket_name=self.bucket, prefix=prefix, recursive=True
            ):
                yield obj.object_name
        except (S3Error, urllib3.exceptions.HTTPError, OSError) as e:
            logger.error(f"Failed to list {prefix}: {e}")
            raise StoreIOError("list", prefix, e) from e

    def delete(self, key: str) -> None:
        try:
            self.client.remove_object(bucket_name=self.bucket, object_name=key)
        except (S3Error, urllib3.exceptions.HTTPError, OSError) as e:
            logger.error(f"Failed to delete {key}: {e}")
            raise StoreIOError("delete", key, e) from e

    def exists(self, key: str) -> bool:
        """Check if object exists in storage"""
        try:
            self.client.stat_object(bucket_name=self.bucket, object_name=key)
            return True
        except S3Error as e:
            if e.code in ("NoSuchKey", "NoSuchObject", "ResourceNotFound"):
                return False
            raise StoreIOError("stat", key, e) from e
        except (urllib3.exceptions.HTTPError, OSError) as e:
            raise StoreIOError("stat", key, e) from e
