"""
Configuration settings for the chunked upload coordinator
"""
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

STORAGE_BACKENDS = ("minio", "s3", "filesystem")


def _env(name: str, default: str) -> str:
    return os.getenv(name, default)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class Settings:
    """
    Application settings.

    Built once at process start and handed to the store factory, the
    coordinator and the HTTP layer. Nothing below the entry point reads the
    environment directly, so tests construct their own instance:

        Settings(STORAGE_BACKEND="filesystem", FILESYSTEM_ROOT=str(tmp_path))
    """

    # Storage backend
    STORAGE_BACKEND: str = field(default_factory=lambda: _env("STORAGE_BACKEND", "minio"))

    # MinIO / S3-compatible object storage
    MINIO_ENDPOINT: str = field(default_factory=lambda: _env("MINIO_ENDPOINT", "localhost:9000"))
    MINIO_ACCESS_KEY: str = field(default_factory=lambda: _env("MINIO_ACCESS_KEY", "minioadmin"))
    MINIO_SECRET_KEY: str = field(default_factory=lambda: _env("MINIO_SECRET_KEY", "minioadmin"))
    MINIO_BUCKET: str = field(default_factory=lambda: _env("MINIO_BUCKET", "upload-bucket"))
    MINIO_SECURE: bool = field(default_factory=lambda: _env_bool("MINIO_SECURE", "false"))
    MINIO_REGION: str = field(default_factory=lambda: _env("MINIO_REGION", "us-east-1"))
    AUTO_CREATE_BUCKET: bool = field(default_factory=lambda: _env_bool("AUTO_CREATE_BUCKET", "true"))

    # Local filesystem storage
    FILESYSTEM_ROOT: str = field(default_factory=lambda: _env("FILESYSTEM_ROOT", "./blob_storage"))

    # Store I/O
    STORE_TIMEOUT_SECONDS: float = field(
        default_factory=lambda: float(_env("STORE_TIMEOUT_SECONDS", "30"))
    )
    READ_BLOCK_SIZE: int = field(default_factory=lambda: int(_env("READ_BLOCK_SIZE", "8192")))
    # Upper bound on expectedTotal and on explicit chunk indices
    MAX_CHUNKS: int = field(default_factory=lambda: int(_env("MAX_CHUNKS", "10000")))
    MERGE_COMMIT_TIMEOUT_SECONDS: float = field(
        default_factory=lambda: float(_env("MERGE_COMMIT_TIMEOUT_SECONDS", "600"))
    )
    MERGE_TEMP_DIR: Optional[str] = field(default_factory=lambda: os.getenv("MERGE_TEMP_DIR") or None)

    # Server
    SERVER_HOST: str = field(default_factory=lambda: _env("SERVER_HOST", "0.0.0.0"))
    SERVER_PORT: int = field(default_factory=lambda: int(_env("SERVER_PORT", "8080")))

    # Logging
    LOG_LEVEL: str = field(default_factory=lambda: _env("LOG_LEVEL", "INFO").upper())

    # Application
    APP_TITLE: str = "Chunked Upload Coordinator"
    APP_DESCRIPTION: str = "Chunked file upload with object-store backed reassembly"
    APP_VERSION: str = "1.0.0"

    def __post_init__(self):
        if self.STORAGE_BACKEND not in STORAGE_BACKENDS:
            raise ValueError(
                f"STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}, "
                f"got {self.STORAGE_BACKEND!r}"
            )
        if self.STORE_TIMEOUT_SECONDS <= 0:
            raise ValueError("STORE_TIMEOUT_SECONDS must be positive")
        if self.MERGE_COMMIT_TIMEOUT_SECONDS <= 0:
            raise ValueError("MERGE_COMMIT_TIMEOUT_SECONDS must be positive")
        if self.READ_BLOCK_SIZE <= 0:
            raise ValueError("READ_BLOCK_SIZE must be positive")
        if self.MAX_CHUNKS <= 0:
            raise ValueError("MAX_CHUNKS must be positive")

    @property
    def s3_endpoint_url(self) -> str:
        """MinIO endpoint as a URL, for boto3"""
        scheme = "https" if self.MINIO_SECURE else "http"
        return f"{scheme}://{self.MINIO_ENDPOINT}"


def get_settings() -> Settings:
    """Read settings from the environment (call once, at startup)"""
    return Settings()
