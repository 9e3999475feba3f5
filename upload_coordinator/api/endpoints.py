"""
FastAPI endpoints for chunked upload, status, merge and download
"""
import logging
from typing import Annotated, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Header, Query, Request, UploadFile
from fastapi.responses import StreamingResponse

from ..core.exceptions import ClientInputError
from ..schemas import (
    ChunkUploadResponse,
    ErrorResponse,
    MergeResponse,
    PurgeResponse,
    StatusResponse,
)
from ..services import UploadCoordinator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["uploads"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def get_coordinator(request: Request) -> UploadCoordinator:
    """Dependency for the coordinator built at startup"""
    return request.app.state.coordinator


def _require(value: Optional[str], field: str) -> str:
    if value is None or value == "":
        raise ClientInputError(field, f"{field} is required")
    return value


def _parse_int(value: Optional[str], field: str, minimum: int) -> int:
    raw = _require(value, field).strip()
    try:
        number = int(raw)
    except ValueError:
        raise ClientInputError(field, f"{field} must be an integer, got {raw!r}")
    if number < minimum:
        raise ClientInputError(field, f"{field} must be >= {minimum}")
    return number


def _parse_index_list(value: str, field: str = "chunks") -> list[int]:
    """'0,1,2' -> [0, 1, 2]"""
    indices = []
    for position, part in enumerate(value.split(",")):
        part = part.strip()
        if not part:
            raise ClientInputError(field, f"{field} entry {position} is empty")
        try:
            indices.append(int(part))
        except ValueError:
            raise ClientInputError(field, f"{field} entry {position} is not an integer: {part!r}")
    return indices


@router.post("/upload", response_model=ChunkUploadResponse, responses=ERROR_RESPONSES)
async def upload_chunk(
    coordinator: Annotated[UploadCoordinator, Depends(get_coordinator)],
    session_id: Annotated[Optional[str], Form(alias="sessionID")] = None,
    filename: Annotated[Optional[str], Form()] = None,
    chunk_index: Annotated[Optional[str], Form(alias="chunkIndex")] = None,
    total_chunks: Annotated[Optional[str], Form(alias="totalChunks")] = None,
    file: Annotated[Optional[UploadFile], File(description="Chunk payload")] = None,
    x_chunk_md5: Annotated[Optional[str], Header(description="MD5 of the chunk (hex)")] = None,
):
    """
    Store one chunk of an upload session.

    Re-sending the same chunkIndex overwrites the stored chunk, so clients
    can retry freely. totalChunks is informational only.
    """
    session_id = _require(session_id, "sessionID")
    filename = _require(filename, "filename")
    index = _parse_int(chunk_index, "chunkIndex", minimum=0)
    if file is None:
        raise ClientInputError("file", "file part is required")

    logger.info(f"Upload chunk {index} for session {session_id} ({filename})")
    try:
        stored = await coordinator.store_chunk(session_id, filename, index, file.file, x_chunk_md5)
    finally:
        await file.close()

    if total_chunks:
        message = f"Chunk {index} of {total_chunks} uploaded successfully"
    else:
        message = f"Chunk {index} uploaded successfully"

    return ChunkUploadResponse(
        message=message,
        session_id=session_id,
        filename=filename,
        chunk_index=index,
        size=stored.size,
        md5=stored.md5,
    )


@router.api_route(
    "/status",
    methods=["GET", "POST"],
    response_model=StatusResponse,
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
)
async def upload_status(
    request: Request,
    coordinator: Annotated[UploadCoordinator, Depends(get_coordinator)],
):
    """
    Report which chunks are stored for a session.

    Fields come from the query string, or from the form body on POST:
    sessionID, filename and optionally expectedTotal. The answer is a
    snapshot; chunks still in flight may land right after it.
    """
    fields = dict(request.query_params)
    if request.method == "POST":
        form = await request.form()
        fields.update({k: v for k, v in form.items() if isinstance(v, str)})

    session_id = _require(fields.get("sessionID"), "sessionID")
    filename = _require(fields.get("filename"), "filename")
    raw_total = fields.get("expectedTotal")

    if not raw_total:
        uploaded = await coordinator.list_uploaded(session_id, filename)
        logger.info(f"Status for {session_id}/{filename}: {len(uploaded)} chunks uploaded")
        return StatusResponse(session_id=session_id, filename=filename, uploaded=uploaded)

    expected_total = _parse_int(raw_total, "expectedTotal", minimum=1)
    snapshot = await coordinator.completeness(session_id, filename, expected_total)
    logger.info(
        f"Status for {session_id}/{filename}: {len(snapshot.missing)} of {expected_total} chunks missing"
    )
    return StatusResponse(
        session_id=session_id,
        filename=filename,
        missing=snapshot.missing,
        unexpected=snapshot.unexpected or None,
        expected_total=expected_total,
        complete=snapshot.complete,
    )


@router.post(
    "/merge",
    response_model=MergeResponse,
    responses={**ERROR_RESPONSES, 409: {"model": ErrorResponse}},
)
async def merge_upload(
    coordinator: Annotated[UploadCoordinator, Depends(get_coordinator)],
    session_id: Annotated[Optional[str], Form(alias="sessionID")] = None,
    filename: Annotated[Optional[str], Form()] = None,
    expected_total: Annotated[Optional[str], Form(alias="expectedTotal")] = None,
    chunks: Annotated[Optional[str], Form(description="Explicit chunk list, e.g. '0,1,2'")] = None,
    sha256: Annotated[Optional[str], Form(description="Expected SHA-256 of the merged file")] = None,
):
    """
    Concatenate all chunks of a session, in index order, into the final file.

    Only call this after every chunk upload has been acknowledged. Returns
    409 with the missing indices when the session is incomplete.
    """
    session_id = _require(session_id, "sessionID")
    filename = _require(filename, "filename")
    total = _parse_int(expected_total, "expectedTotal", minimum=1) if expected_total else None
    indices = _parse_index_list(chunks) if chunks else None

    logger.info(f"Merge requested for {session_id}/{filename}")
    result = await coordinator.merge(
        session_id,
        filename,
        expected_total=total,
        indices=indices,
        expected_sha256=sha256 or None,
    )

    if result.already_merged:
        message = f"File {filename} was already merged"
    else:
        message = f"File {filename} merged and uploaded successfully"

    return MergeResponse(
        status="already_merged" if result.already_merged else "merged",
        message=message,
        key=result.key,
        chunk_count=result.chunk_count,
        size=result.size,
        sha256=result.sha256,
        cleanup_pending=len(result.cleanup_failures),
    )


@router.delete("/upload", response_model=PurgeResponse, responses=ERROR_RESPONSES)
async def purge_upload(
    coordinator: Annotated[UploadCoordinator, Depends(get_coordinator)],
    session_id: Annotated[Optional[str], Query(alias="sessionID")] = None,
    filename: Annotated[Optional[str], Query()] = None,
):
    """Delete every stored chunk of a session (abandoned or cancelled uploads)"""
    session_id = _require(session_id, "sessionID")
    filename = _require(filename, "filename")

    deleted = await coordinator.purge(session_id, filename)
    return PurgeResponse(session_id=session_id, filename=filename, deleted=deleted)


@router.get("/download", responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}})
async def download_merged(
    coordinator: Annotated[UploadCoordinator, Depends(get_coordinator)],
    session_id: Annotated[Optional[str], Query(alias="sessionID")] = None,
    filename: Annotated[Optional[str], Query()] = None,
):
    """Stream a merged file back to the client"""
    session_id = _require(session_id, "sessionID")
    filename = _require(filename, "filename")

    key = await coordinator.locate_artifact(session_id, filename)
    logger.info(f"Streaming merged file {key}")

    safe_filename = quote(filename, safe="")
    return StreamingResponse(
        coordinator.stream_artifact(key),
        media_type="application/octet-stream",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{safe_filename}"},
    )
