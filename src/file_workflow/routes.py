from io import BytesIO
from typing import List, Optional

from fastapi import (
    APIRouter,
    Query,
    Request,
    Response,
    UploadFile,
    status
)

from file_workflow.schemas import (
    ArchiveFileResponse,
    AuditEntry,
    FileItem,
    FileTypeCount,
    StatusRecord,
    UpdateStatusRequest,
    UploadFileResponse,
)
from file_workflow.validation import validate_upload
from file_workflow.workflow import FileWorkflowEngine

ROUTER = APIRouter(prefix="/api/files", tags=["Files"])

_NOT_FOUND_RESPONSE = {
    status.HTTP_404_NOT_FOUND: {
        "description": "File not found for the given `blobName`.",
    },
}


def _engine(request: Request) -> FileWorkflowEngine:
    return request.app.state.engine


@ROUTER.post(
    "/upload",
    response_model=UploadFileResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {
            "description": "The file violates the configured upload constraints.",
        },
    },
)
async def upload_file(
    request: Request,
    file: UploadFile,
    file_name: Optional[str] = Query(None, alias="fileName", description="Override the stored file name"),
    folder: Optional[str] = Query(None, description="Target folder; defaults to the in-folder"),
    comment: Optional[str] = Query(None),
    correlation_id: Optional[str] = Query(None, alias="correlationId"),
) -> UploadFileResponse:
    """Upload a file into the in-folder (or `folder`)."""
    engine = _engine(request)
    effective_name = file_name if file_name and file_name.strip() else file.filename
    file_bytes = await file.read()

    validate_upload(effective_name, file.content_type, len(file_bytes), engine.options)

    blob_name = await engine.upload(
        file_bytes,
        effective_name,
        folder=folder,
        content_type=file.content_type,
        correlation_id=correlation_id,
        comment=comment,
    )
    return UploadFileResponse(blob_name=blob_name)


@ROUTER.get(
    "/download/{blob_name:path}",
    responses={
        **_NOT_FOUND_RESPONSE,
        status.HTTP_200_OK: {
            "description": "The file content.",
            "content": {
                "application/octet-stream": {
                    "schema": {"type": "string", "format": "binary"},
                },
            },
        },
    },
)
async def download_file(
    request: Request,
    blob_name: str,
    folder: Optional[str] = Query(None),
) -> Response:
    """Retrieve a file."""
    sink = BytesIO()
    props = await _engine(request).download(blob_name, sink, folder=folder)
    return Response(content=sink.getvalue(), media_type=props.content_type)


@ROUTER.post(
    "/archive/{blob_name:path}",
    response_model=ArchiveFileResponse,
    responses=_NOT_FOUND_RESPONSE,
)
async def archive_file(
    request: Request,
    blob_name: str,
    from_folder: Optional[str] = Query(None, alias="fromFolder"),
    correlation_id: Optional[str] = Query(None, alias="correlationId"),
    comment: Optional[str] = Query(None),
) -> ArchiveFileResponse:
    """Move a file into the archive folder."""
    archived = await _engine(request).archive(
        blob_name,
        from_folder=from_folder,
        correlation_id=correlation_id,
        comment=comment,
    )
    return ArchiveFileResponse(archived=archived)


@ROUTER.get("", response_model=List[FileItem])
async def list_files(
    request: Request,
    folder: Optional[str] = Query(None),
) -> List[FileItem]:
    """List files, optionally restricted to a folder."""
    return [item async for item in _engine(request).list_files(folder)]


@ROUTER.get("/types", response_model=List[FileTypeCount])
async def get_file_type_counts(
    request: Request,
    folder: Optional[str] = Query(None),
) -> List[FileTypeCount]:
    """Count files by extension."""
    return await _engine(request).get_file_type_counts(folder)


@ROUTER.get("/audit", response_model=List[AuditEntry])
async def get_audit(
    request: Request,
    blob_name: Optional[str] = Query(None, alias="blobName"),
    folder: Optional[str] = Query(None),
    take: Optional[int] = Query(None, ge=1),
) -> List[AuditEntry]:
    """Audit history, newest first."""
    return await _engine(request).get_audit(blob_name=blob_name, folder=folder, take=take)


@ROUTER.get(
    "/status/{blob_name:path}",
    response_model=StatusRecord,
    responses=_NOT_FOUND_RESPONSE,
)
async def get_status(
    request: Request,
    blob_name: str,
    folder: Optional[str] = Query(None),
) -> StatusRecord:
    return await _engine(request).get_status(blob_name, folder=folder)


@ROUTER.put(
    "/status/{blob_name:path}",
    response_model=StatusRecord,
    responses={
        status.HTTP_409_CONFLICT: {
            "description": "The status record was modified concurrently.",
        },
    },
)
async def update_status(
    request: Request,
    blob_name: str,
    status_update: UpdateStatusRequest,
) -> StatusRecord:
    """Set the processing status of a file, creating its record if needed."""
    return await _engine(request).update_status(
        blob_name,
        status_update.status,
        folder=status_update.folder,
    )


@ROUTER.delete(
    "/{blob_name:path}",
    responses={
        **_NOT_FOUND_RESPONSE,
        status.HTTP_204_NO_CONTENT: {
            "description": "File deleted successfully.",
        },
    },
)
async def delete_file(
    request: Request,
    blob_name: str,
    response: Response,
    folder: Optional[str] = Query(None),
) -> Response:
    """
    Delete a file.

    NOTE: DELETE requests MUST NOT return a body in the response.
    """
    await _engine(request).delete(blob_name, folder=folder)
    response.status_code = status.HTTP_204_NO_CONTENT
    return response


HEALTH_ROUTER = APIRouter(tags=["System"])


@HEALTH_ROUTER.get("/health")
async def health_check(request: Request):
    """Report API readiness and the deployment mode."""
    settings = request.app.state.settings
    health_status = {
        "status": "ok",
        "deployment_mode": settings.deployment_mode,
        "components": {
            "api": "ready",
            "storage": "ready",
        },
        "ready": True,
    }

    try:
        _engine(request).ensure_resources()
    except Exception as e:
        health_status["components"]["storage"] = f"error: {str(e)}"
        health_status["status"] = "degraded"
        health_status["ready"] = False

    return health_status
