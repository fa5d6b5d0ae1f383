###################################
# --- Domain/response schemas --- #
###################################

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

STATUS_PARTITION_KEY = "fileProcessing"
AUDIT_PARTITION_KEY = "fileAudit"
NO_EXTENSION_KEY = "(none)"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FileProcessingStatus(str, Enum):
    """Lifecycle of a logical file."""
    INITIAL = "Initial"
    UPLOADED = "Uploaded"
    PROCESSING = "Processing"
    PROCESSED = "Processed"
    ARCHIVED = "Archived"


class FileActionType(str, Enum):
    """Actions recorded in the audit log."""
    UPLOAD = "Upload"
    DOWNLOAD = "Download"
    ARCHIVE = "Archive"
    DELETE = "Delete"


class CopyStatus(str, Enum):
    """State of a server-side object copy."""
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    ABORTED = "aborted"


class ObjectProperties(BaseModel):
    """Authoritative properties of a stored object."""
    name: str
    content_type: str = "application/octet-stream"
    content_length: int = 0
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None
    copy_status: Optional[CopyStatus] = None


class CopyHandle(BaseModel):
    """Returned when a server-side copy is started."""
    source: str
    destination: str
    status: CopyStatus
    error: Optional[str] = None


class StatusRecord(BaseModel):
    """Current processing status of one logical file, one row per file."""
    partition_key: str = STATUS_PARTITION_KEY
    row_key: str
    file_name: str
    container_name: str
    folder: str
    status: FileProcessingStatus
    correlation_id: Optional[str] = None
    content_type: Optional[str] = None
    content_length: int = 0
    updated_at: datetime = Field(default_factory=utc_now)
    version: Optional[str] = Field(
        default=None,
        description="Opaque version tag used for optimistic concurrency.",
    )


class AuditEntry(BaseModel):
    """An immutable record of an action taken on a file."""
    partition_key: str = AUDIT_PARTITION_KEY
    row_key: str
    blob_name: str
    container_name: str
    file_name: str
    folder: Optional[str] = None
    status: FileProcessingStatus
    action: FileActionType
    content_type: Optional[str] = None
    content_length: int = 0
    comment: Optional[str] = None
    correlation_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)


class FileItem(BaseModel):
    """A file as seen by a listing of the object store."""
    name: str
    folder: str
    content_length: int = 0
    content_type: str = ""
    last_modified: Optional[datetime] = None


class FileTypeCount(BaseModel):
    """Number of files sharing an extension."""
    file_type: str
    count: int


class FileUploadedEvent(BaseModel):
    """Message published to the notification queue after each upload."""
    blob_name: str
    container_name: str
    folder: Optional[str] = None
    correlation_id: Optional[str] = None
    content_type: Optional[str] = None
    content_length: int = 0
    uploaded_at_utc: datetime = Field(default_factory=utc_now)


class UploadFileResponse(BaseModel):
    """Response model for `POST /api/files/upload`."""
    blob_name: str = Field(
        alias="blobName",
        json_schema_extra={"example": "in/report.pdf"},
    )

    model_config = ConfigDict(populate_by_name=True)


class ArchiveFileResponse(BaseModel):
    """Response model for `POST /api/files/archive/{blobName}`."""
    archived: str = Field(json_schema_extra={"example": "archive/report.pdf"})


class UpdateStatusRequest(BaseModel):
    """Request body for `PUT /api/files/status/{blobName}`."""
    status: FileProcessingStatus
    folder: Optional[str] = None
