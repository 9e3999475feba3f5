"""
S3 blob store adapter (boto3), for MinIO or any S3-compatible endpoint
"""
import logging
from typing import BinaryIO, Iterator

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..core.config import Settings
from ..core.exceptions import StoreIOError
from .base import BlobStore

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")


class S3ObjectStream:
    """Body of a GetObject response"""

    def __init__(self, body, key: str):
        self._body = body
        self._key = key

    def read(self, size: int = -1) -> bytes:
        try:
            return self._body.read(None if size < 0 else size)
        except (BotoCoreError, OSError) as e:
            raise StoreIOError("read", self._key, e) from e

    def close(self) -> None:
        self._body.close()


class S3BlobStore(BlobStore):
    """Utility class for S3 storage operations"""

    def __init__(self, settings: Settings, s3_client=None):
        """
        Initialize the S3 client

        Args:
            settings: Endpoint, credentials and bucket come from MINIO_* fields
            s3_client: Pre-built boto3 client (tests inject a stubbed one)
        """
        if s3_client is None:
            timeout = settings.STORE_TIMEOUT_SECONDS
            s3_client = boto3.client(
                "s3",
                endpoint_url=settings.s3_endpoint_url,
                aws_access_key_id=settings.MINIO_ACCESS_KEY,
                aws_secret_access_key=settings.MINIO_SECRET_KEY,
                region_name=settings.MINIO_REGION,
                config=Config(
                    connect_timeout=timeout,
                    read_timeout=timeout,
                    retries={"max_attempts": 1},
                ),
            )
        self.s3_client = s3_client
        self.bucket = settings.MINIO_BUCKET
        logger.info(f"S3 client initialized: {settings.s3_endpoint_url}/{self.bucket}")

    def ensure_bucket(self) -> None:
        try:
            self.s3_client.create_bucket(Bucket=self.bucket)
            logger.info(f"Bucket '{self.bucket}' created successfully")
        except ClientError as e:
            if e.response["Error"]["Code"] in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
                logger.info(f"Bucket '{self.bucket}' already exists")
                return
            logger.error(f"Error creating bucket: {e}")
            raise StoreIOError("ensure_bucket", self.bucket, e) from e

    def put(self, key: str, stream: BinaryIO, length: int = -1) -> None:
        # upload_fileobj switches to multipart for large streams; the object
        # only appears once CompleteMultipartUpload succeeds
        try:
            self.s3_client.upload_fileobj(stream, self.bucket, key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error uploading {key}: {e}")
            raise StoreIOError("put", key, e) from e

    def get(self, key: str) -> S3ObjectStream:
        try:
            response = self.s3_client.get_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error downloading {key}: {e}")
            raise StoreIOError("get", key, e) from e
        return S3ObjectStream(response["Body"], key)

    def list(self, prefix: str) -> Iterator[str]:
        paginator = self.s3_client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    yield obj["Key"]
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error listing objects under {prefix}: {e}")
            raise StoreIOError("list", prefix, e) from e

    def delete(self, key: str) -> None:
        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error deleting {key}: {e}")
            raise StoreIOError("delete", key, e) from e

    def exists(self, key: str) -> bool:
        try:
            self.s3_client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] in NOT_FOUND_CODES:
                return False
            raise StoreIOError("stat", key, e) from e
        except BotoCoreError as e:
            raise StoreIOError("stat", key, e) from e
