"""
Error taxonomy for the upload coordinator.

Every error knows the HTTP status it maps to and what is safe to show the
client. The FastAPI app renders all of them through one exception handler.
"""
from typing import Any, Iterable, Optional


class UploadCoordinatorError(Exception):
    """Base class for coordinator errors"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def detail(self) -> str:
        """Message that can be returned to the client"""
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {"error": type(self).__name__, "detail": self.detail}


class ClientInputError(UploadCoordinatorError):
    """Malformed or missing request field"""

    status_code = 400

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"Invalid or missing field: {field}")

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["field"] = self.field
        return body


class IncompleteUploadError(UploadCoordinatorError):
    """Merge requested before the chunk set matches what the caller asserted"""

    status_code = 409

    def __init__(self, missing: Iterable[int], unexpected: Iterable[int] = ()):
        self.missing = sorted(missing)
        self.unexpected = sorted(unexpected)
        if self.missing and self.unexpected:
            message = f"Missing chunks: {self.missing}; unexpected chunks: {self.unexpected}"
        elif self.unexpected:
            message = f"Unexpected chunks: {self.unexpected}"
        else:
            message = f"Missing chunks: {self.missing}"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["missing"] = self.missing
        if self.unexpected:
            body["unexpected"] = self.unexpected
        return body


class CorruptionError(UploadCoordinatorError):
    """A stored key under a session prefix is not a valid chunk key"""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Unparseable chunk key: {key}")

    @property
    def detail(self) -> str:
        return "Stored chunk data is inconsistent"


class StoreIOError(UploadCoordinatorError):
    """An underlying blob store call failed or timed out"""

    def __init__(self, operation: str, key: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.key = key
        self.cause = cause
        reason = f": {cause}" if cause is not None else ""
        super().__init__(f"Store {operation} failed for {key}{reason}")

    @property
    def detail(self) -> str:
        # Key and cause may carry internal paths; they only go to the log
        return f"Storage {self.operation} failed"


class ChecksumMismatchError(UploadCoordinatorError):
    """Payload digest does not match the digest the client sent"""

    status_code = 400

    def __init__(self, expected: str, actual: str, what: str = "payload"):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Checksum mismatch for {what}: expected {expected}, got {actual}")


class ArtifactNotFoundError(UploadCoordinatorError):
    """No merged artifact exists for the session"""

    status_code = 404

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Merged artifact not found: {key}")

    @property
    def detail(self) -> str:
        return "Merged file not found"
