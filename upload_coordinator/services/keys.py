"""
Storage key layout for chunked uploads
"""
import re
from urllib.parse import quote, unquote

from ..core.exceptions import ClientInputError, CorruptionError

CHUNKS_ROOT = "chunks"
MERGED_ROOT = "merged"
PART_PREFIX = "part_"

# Common filename limit (NAME_MAX) for one path segment on local filesystems.
# Two such segments also keep every key well under the 1024-byte S3 key limit.
MAX_SEGMENT_BYTES = 255

_INDEX_RE = re.compile(r"(0|[1-9][0-9]*)")


def encode_component(value: str) -> str:
    """
    Percent-encode a session identifier or filename for use as one key segment.

    Nothing is left unescaped except RFC 3986 unreserved characters other
    than ".", so the result never contains "/" and can never be "." or "..".
    The mapping is injective: distinct inputs give distinct segments.
    """
    return quote(value, safe="").replace(".", "%2E")


def decode_component(segment: str) -> str:
    return unquote(segment)


class UploadKeys:
    """
    Centralized storage key definitions.

    Structure (single bucket):
        chunks/{session}/{filename}/
            part_0, part_1, ..., part_10, ...
        merged/{session}/{filename}

    {session} and {filename} are encoded with `encode_component`, so every
    (session, filename) pair owns a prefix no other pair can overlap, and
    merged artifacts can never be mistaken for chunks.
    """

    @staticmethod
    def _validate(session_id: str, filename: str) -> None:
        if not session_id:
            raise ClientInputError("sessionID", "sessionID is required")
        if not filename:
            raise ClientInputError("filename", "filename is required")
        for field_name, value in (("sessionID", session_id), ("filename", filename)):
            if len(encode_component(value)) > MAX_SEGMENT_BYTES:
                raise ClientInputError(
                    field_name, f"{field_name} is too long (encoded form exceeds {MAX_SEGMENT_BYTES} bytes)"
                )

    @staticmethod
    def session_prefix(session_id: str, filename: str) -> str:
        """Prefix shared by every chunk of one upload session."""
        UploadKeys._validate(session_id, filename)
        return f"{CHUNKS_ROOT}/{encode_component(session_id)}/{encode_component(filename)}/"

    @staticmethod
    def chunk(session_id: str, filename: str, index: int) -> str:
        """Key of a single chunk."""
        if index < 0:
            raise ClientInputError("chunkIndex", "chunkIndex must be >= 0")
        return f"{UploadKeys.session_prefix(session_id, filename)}{PART_PREFIX}{index}"

    @staticmethod
    def merged(session_id: str, filename: str) -> str:
        """Key of the merged artifact."""
        UploadKeys._validate(session_id, filename)
        return f"{MERGED_ROOT}/{encode_component(session_id)}/{encode_component(filename)}"

    @staticmethod
    def chunk_index(prefix: str, key: str) -> int:
        """
        Recover the chunk index from a key listed under `prefix`.

        Raises CorruptionError for anything that is not exactly
        `{prefix}part_{canonical decimal}`.
        """
        if not key.startswith(prefix):
            raise CorruptionError(key)
        leaf = key[len(prefix):]
        if not leaf.startswith(PART_PREFIX):
            raise CorruptionError(key)
        digits = leaf[len(PART_PREFIX):]
        if not _INDEX_RE.fullmatch(digits):
            raise CorruptionError(key)
        return int(digits)

    @staticmethod
    def parse_chunk(key: str) -> tuple[str, str, int]:
        """Decode a chunk key back into (session_id, filename, index)."""
        segments = key.split("/")
        if len(segments) != 4 or segments[0] != CHUNKS_ROOT or not all(segments[1:3]):
            raise CorruptionError(key)
        session_id = decode_component(segments[1])
        filename = decode_component(segments[2])
        prefix = f"{CHUNKS_ROOT}/{segments[1]}/{segments[2]}/"
        # Reject segments that decode fine but are not in canonical encoded form
        try:
            canonical = UploadKeys.session_prefix(session_id, filename)
        except ClientInputError:
            raise CorruptionError(key)
        if prefix != canonical:
            raise CorruptionError(key)
        return session_id, filename, UploadKeys.chunk_index(prefix, key)
