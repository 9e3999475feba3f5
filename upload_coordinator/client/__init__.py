"""Client module exports"""
from .uploader import ChunkUploader

__all__ = ["ChunkUploader"]
