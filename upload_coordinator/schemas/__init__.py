"""Schemas module exports"""
from .upload import (
    ChunkUploadResponse,
    StatusResponse,
    MergeResponse,
    PurgeResponse,
    ErrorResponse,
)

__all__ = [
    "ChunkUploadResponse",
    "StatusResponse",
    "MergeResponse",
    "PurgeResponse",
    "ErrorResponse",
]
