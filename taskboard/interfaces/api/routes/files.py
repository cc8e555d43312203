"""Routes storing, serving and removing the files attached to tasks."""

import logging
import os
from collections.abc import Iterator
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, UploadFile, status
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session

from taskboard.application.use_cases.task_files import (
    BatchUploadResult,
    FileStorageError,
    FileUpload,
    FileValidationError,
    TaskFileNotFoundError,
    TaskNotFoundError,
    delete_task_file as delete_task_file_uc,
    list_task_files as list_task_files_uc,
    open_task_file_download as open_task_file_download_uc,
    upload_task_file as upload_task_file_uc,
    upload_task_files as upload_task_files_uc,
)
from taskboard.config import get_settings
from taskboard.domain.entities import FileRecord, User
from taskboard.infrastructure.chunk_store import ChunkStore, ChunkStoreError, DownloadStream
from taskboard.infrastructure.database import SessionLocal, get_db
from taskboard.interfaces.api.dependencies import (
    get_chunk_store,
    get_current_active_user,
    require_admin,
)
from taskboard.interfaces.api.schemas import (
    BatchUploadItemRead,
    BatchUploadResponse,
    FileRecordRead,
    FileUploadResponse,
    MessageResponse,
    TaskFilesResponse,
)
from taskboard.utils import RangeNotSatisfiableError

router = APIRouter(prefix="/api/task", tags=["files"])
logger = logging.getLogger(__name__)

CACHE_CONTROL = "max-age=31536000"


def _record_to_read_model(record: FileRecord) -> FileRecordRead:
    return FileRecordRead.model_validate(record)


def _status_for(exc: Exception) -> int:
    if isinstance(exc, FileValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, (TaskNotFoundError, TaskFileNotFoundError)):
        return status.HTTP_404_NOT_FOUND
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _to_upload(file: UploadFile) -> FileUpload:
    size = file.size
    if size is None:
        file.file.seek(0, os.SEEK_END)
        size = file.file.tell()
    file.file.seek(0)
    return FileUpload(
        stream=file.file,
        original_name=file.filename,
        content_type=file.content_type,
        size=size,
    )


@router.post("/upload", response_model=FileUploadResponse)
def upload_file(
    task_id: str | None = Form(default=None, alias="taskId"),
    file: UploadFile | None = File(default=None),
    db: Session = Depends(get_db),
    store: ChunkStore = Depends(get_chunk_store),
    current_user: User = Depends(require_admin),
) -> FileUploadResponse:
    """Store one file and attach it to the task ``taskId``."""

    if file is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")

    try:
        record = upload_task_file_uc(
            db,
            store,
            task_id=task_id,
            upload=_to_upload(file),
            user=current_user,
        )
    except FileValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except FileStorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc

    return FileUploadResponse(
        message="File uploaded and associated with task successfully",
        file=_record_to_read_model(record),
    )


@router.post("/upload/batch", response_model=BatchUploadResponse)
async def upload_files(
    task_id: str | None = Form(default=None, alias="taskId"),
    file: list[UploadFile] | None = File(default=None),
    store: ChunkStore = Depends(get_chunk_store),
    current_user: User = Depends(require_admin),
):
    """Store several files for one task concurrently and report each outcome."""

    settings = get_settings()
    try:
        result = await upload_task_files_uc(
            SessionLocal,
            store,
            task_id=task_id,
            uploads=[_to_upload(item) for item in file or []],
            user=current_user,
            max_concurrency=settings.upload_batch_concurrency,
            max_bytes=settings.upload_max_bytes,
        )
    except FileValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    body = BatchUploadResponse(
        success=result.all_succeeded,
        message=_batch_message(result),
        results=[
            BatchUploadItemRead(
                originalname=outcome.original_name,
                success=outcome.succeeded,
                message=outcome.message,
                file=_record_to_read_model(outcome.record) if outcome.record else None,
            )
            for outcome in result.outcomes
        ],
    )
    return JSONResponse(
        status_code=_batch_status(result),
        content=body.model_dump(mode="json", by_alias=True),
    )


def _batch_message(result: BatchUploadResult) -> str:
    stored, failed = len(result.succeeded), len(result.failed)
    if not failed:
        return f"{stored} file(s) uploaded successfully"
    if not stored:
        return f"None of the {failed} file(s) could be uploaded"
    return f"{stored} file(s) uploaded, {failed} failed"


def _batch_status(result: BatchUploadResult) -> int:
    if result.all_succeeded:
        return status.HTTP_200_OK
    if result.is_partial:
        return status.HTTP_207_MULTI_STATUS
    statuses = {_status_for(outcome.error) for outcome in result.failed if outcome.error}
    if len(statuses) == 1:
        return statuses.pop()
    return status.HTTP_400_BAD_REQUEST


@router.get("/files/{file_id}")
def download_file(
    file_id: str,
    range_header: str | None = Header(default=None, alias="Range"),
    db: Session = Depends(get_db),
    store: ChunkStore = Depends(get_chunk_store),
    _: User = Depends(get_current_active_user),
) -> StreamingResponse:
    """Stream the bytes of ``file_id``, honouring a single ``Range`` request."""

    try:
        download = open_task_file_download_uc(
            db, store, file_id=file_id, range_header=range_header
        )
    except RangeNotSatisfiableError as exc:
        raise HTTPException(
            status_code=status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
            detail=str(exc),
            headers={"Content-Range": exc.content_range},
        ) from exc
    except FileValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except FileStorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc

    # Read ahead so a broken first chunk still produces a JSON error.
    try:
        first = next(download.stream, b"")
    except ChunkStoreError as exc:
        download.stream.close()
        logger.exception("Could not read file %s", download.file.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error retrieving file",
        ) from exc

    headers = {
        "Content-Disposition": f'inline; filename="{quote(download.record.originalname)}"',
        "Cache-Control": CACHE_CONTROL,
        "Accept-Ranges": "bytes",
        "Content-Length": str(download.content_length),
    }
    if download.content_range is not None:
        headers["Content-Range"] = download.content_range

    return StreamingResponse(
        _iter_download(download.stream, first),
        status_code=(
            status.HTTP_206_PARTIAL_CONTENT if download.is_partial else status.HTTP_200_OK
        ),
        media_type=download.content_type,
        headers=headers,
    )


def _iter_download(stream: DownloadStream, first: bytes) -> Iterator[bytes]:
    try:
        if first:
            yield first
        yield from stream
    except ChunkStoreError:
        logger.exception("Streaming of file %s was aborted", stream.file.id)
        raise
    finally:
        stream.close()


@router.delete("/{task_id}/files/{file_id}", response_model=MessageResponse)
def delete_file(
    task_id: str,
    file_id: str,
    db: Session = Depends(get_db),
    store: ChunkStore = Depends(get_chunk_store),
    current_user: User = Depends(require_admin),
) -> MessageResponse:
    """Detach ``file_id`` from the task and delete its stored bytes."""

    try:
        delete_task_file_uc(db, store, task_id=task_id, file_id=file_id, user=current_user)
    except FileValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return MessageResponse(success=True, message="File deleted successfully")


@router.get("/task-files/{task_id}", response_model=TaskFilesResponse)
def list_files(
    task_id: str,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_active_user),
) -> TaskFilesResponse:
    """Return the files attached to ``task_id``."""

    try:
        records = list_task_files_uc(db, task_id)
    except FileValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return TaskFilesResponse(files=[_record_to_read_model(record) for record in records])


__all__ = ["router"]
