"""Core module exports"""
from .config import Settings, get_settings
from .exceptions import (
    UploadCoordinatorError,
    ClientInputError,
    IncompleteUploadError,
    CorruptionError,
    StoreIOError,
    ChecksumMismatchError,
    ArtifactNotFoundError,
)

__all__ = [
    "Settings",
    "get_settings",
    "UploadCoordinatorError",
    "ClientInputError",
    "IncompleteUploadError",
    "CorruptionError",
    "StoreIOError",
    "ChecksumMismatchError",
    "ArtifactNotFoundError",
]
