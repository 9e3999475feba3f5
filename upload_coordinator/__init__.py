"""Chunked upload coordinator: chunk tracking and reassembly over a blob store"""

__version__ = "1.0.0"
