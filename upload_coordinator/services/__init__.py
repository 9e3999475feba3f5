"""Services module exports"""
from .coordinator import UploadCoordinator
from .keys import UploadKeys, encode_component, decode_component
from .merge import MergeEngine, MergeResult
from .registry import ChunkRegistry, Completeness, StoredChunk

__all__ = [
    "UploadCoordinator",
    "UploadKeys",
    "encode_component",
    "decode_component",
    "MergeEngine",
    "MergeResult",
    "ChunkRegistry",
    "Completeness",
    "StoredChunk",
]
