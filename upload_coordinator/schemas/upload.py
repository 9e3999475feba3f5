"""
Pydantic schemas for API responses
"""
from typing import Optional

from pydantic import BaseModel, Field


class ChunkUploadResponse(BaseModel):
    """Chunk stored"""
    message: str
    session_id: str
    filename: str
    chunk_index: int
    size: int = Field(..., description="Bytes stored for this chunk")
    md5: str = Field(..., description="MD5 of the stored chunk (hex)")


class StatusResponse(BaseModel):
    """
    Point-in-time view of a session's chunks.

    Without expectedTotal only `uploaded` is filled in; with it, `missing`
    (and `unexpected`, `complete`) are reported instead.
    """
    session_id: str
    filename: str
    uploaded: Optional[list[int]] = None
    missing: Optional[list[int]] = None
    unexpected: Optional[list[int]] = None
    expected_total: Optional[int] = None
    complete: Optional[bool] = None


class MergeResponse(BaseModel):
    """Merged artifact committed"""
    status: str = Field(..., description="'merged', or 'already_merged' for a repeated request")
    message: str
    key: str = Field(..., description="Storage key of the merged file")
    chunk_count: Optional[int] = Field(None, description="Chunks merged; unset for an already merged file")
    size: Optional[int] = None
    sha256: Optional[str] = None
    cleanup_pending: int = Field(0, description="Chunks that could not be deleted after the merge")


class PurgeResponse(BaseModel):
    """Chunks removed for a session"""
    session_id: str
    filename: str
    deleted: int


class ErrorResponse(BaseModel):
    """Error body returned by every failing endpoint"""
    error: str
    detail: str
    field: Optional[str] = None
    missing: Optional[list[int]] = None
    unexpected: Optional[list[int]] = None
