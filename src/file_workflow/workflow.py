"""
File workflow engine.

Orchestrates upload, download, archive and status updates across the object
store, the status table, the audit log and the notification queue. There is
no transaction spanning those stores: each operation performs its writes in a
fixed order and documents what is left behind when a later step fails.
"""

import asyncio
import logging
import uuid
from itertools import islice
from typing import AsyncIterator, BinaryIO, Dict, List, Optional, Union

from file_workflow.adapters.clients import AWSClientFactory
from file_workflow.adapters.queue import BaseQueue, QueueFactory
from file_workflow.adapters.storage import S3ObjectStore
from file_workflow.adapters.tables import AuditLog, StatusTable
from file_workflow.errors import ConflictError, CopyFailedError, NotFoundError, TransientIOError
from file_workflow.paths import (
    basename,
    combine,
    extension_key,
    folder_for_status,
    folder_from_name,
    folder_prefix,
    to_row_key,
)
from file_workflow.schemas import (
    AuditEntry,
    CopyHandle,
    CopyStatus,
    FileActionType,
    FileItem,
    FileProcessingStatus,
    FileTypeCount,
    FileUploadedEvent,
    ObjectProperties,
    StatusRecord,
)
from file_workflow.settings import Settings, WorkflowOptions

logger = logging.getLogger(__name__)


def _new_row_key() -> str:
    return uuid.uuid4().hex


class FileWorkflowEngine:
    """
    The sole writer of status records and audit entries.

    The engine holds no state between calls beyond its collaborators, so any
    number of instances may run side by side. Two operations on the same
    logical file race at the status table (see `update_status`).
    """

    def __init__(
        self,
        options: WorkflowOptions,
        store: S3ObjectStore,
        status_table: StatusTable,
        audit_log: AuditLog,
        queue: BaseQueue,
    ):
        self.options = options
        self.store = store
        self.status_table = status_table
        self.audit_log = audit_log
        self.queue = queue

    @classmethod
    def from_settings(cls, settings: Settings) -> "FileWorkflowEngine":
        """Wire the engine to the AWS resources named in `settings`."""
        clients = AWSClientFactory(settings)
        dynamodb = clients.resource("dynamodb")
        return cls(
            options=settings.workflow_options(),
            store=S3ObjectStore(settings.s3_bucket_name, clients.client("s3")),
            status_table=StatusTable(settings.status_table_name, dynamodb),
            audit_log=AuditLog(settings.audit_table_name, dynamodb),
            queue=QueueFactory.get_queue_handler(settings, clients),
        )

    @property
    def container_name(self) -> str:
        return self.options.bucket_name

    def ensure_resources(self) -> None:
        """Create bucket, queue, status table and audit table if absent."""
        self.store.ensure_bucket()
        self.queue.ensure_queue()
        self.status_table.ensure_table()
        self.audit_log.ensure_table()

    #############
    # Upload    #
    #############

    async def upload(
        self,
        content: Union[bytes, BinaryIO],
        file_name: str,
        folder: Optional[str] = None,
        content_type: Optional[str] = None,
        correlation_id: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> str:
        """
        Store a file, mark it `Uploaded`, notify and audit.

        Content is expected to have passed `validate_upload` already. Returns
        the object path the file was stored under. A failure after the object
        write leaves the object (and possibly the status record) in place.
        """
        self.ensure_resources()

        folder = self.options.in_folder if folder is None else folder
        blob_name = combine(folder, file_name)

        self.store.put_object(blob_name, content, content_type)
        # From here on only the store's view of type and length counts
        props = self.store.get_properties(blob_name)

        # Upload is fresh truth: unconditional replace, no version check
        record = self.status_table.upsert(
            StatusRecord(
                row_key=to_row_key(blob_name),
                file_name=file_name,
                container_name=self.container_name,
                folder=folder,
                status=FileProcessingStatus.UPLOADED,
                correlation_id=correlation_id,
                content_type=props.content_type,
                content_length=props.content_length,
            )
        )

        await self._notify_uploaded(
            FileUploadedEvent(
                blob_name=blob_name,
                container_name=self.container_name,
                folder=folder,
                correlation_id=correlation_id,
                content_type=record.content_type,
                content_length=record.content_length,
            )
        )

        self.audit_log.append(
            AuditEntry(
                row_key=_new_row_key(),
                blob_name=blob_name,
                container_name=self.container_name,
                file_name=file_name,
                folder=folder,
                status=FileProcessingStatus.UPLOADED,
                action=FileActionType.UPLOAD,
                content_type=record.content_type,
                content_length=record.content_length,
                comment=comment,
                correlation_id=correlation_id,
            )
        )
        logger.info(f"Upload of {blob_name} complete")
        return blob_name

    async def _notify_uploaded(self, event: FileUploadedEvent) -> None:
        # Best effort: the blob and status writes stand even if this fails
        try:
            await self.queue.add_task(event.model_dump(mode="json"))
        except TransientIOError as e:
            logger.warning(f"Upload notification for {event.blob_name} not delivered: {e.message}")

    #############
    # Download  #
    #############

    async def download(
        self,
        blob_name: str,
        sink: BinaryIO,
        folder: Optional[str] = None,
    ) -> ObjectProperties:
        """Stream a stored file into `sink` and audit the read. Status is untouched."""
        self.ensure_resources()
        path = blob_name if folder is None else combine(folder, blob_name)

        props = self.store.get_properties(path)
        self.store.download(path, sink)

        self.audit_log.append(
            AuditEntry(
                row_key=_new_row_key(),
                blob_name=path,
                container_name=self.container_name,
                file_name=basename(path),
                folder=folder if folder is not None else folder_from_name(path),
                status=self._current_status(path),
                action=FileActionType.DOWNLOAD,
                content_type=props.content_type,
                content_length=props.content_length,
            )
        )
        logger.info(f"Download of {path} complete")
        return props

    def _current_status(self, path: str) -> FileProcessingStatus:
        try:
            return self.status_table.get(to_row_key(path)).status
        except NotFoundError:
            return FileProcessingStatus.INITIAL

    #############
    # Archive   #
    #############

    async def archive(
        self,
        blob_name: str,
        from_folder: Optional[str] = None,
        correlation_id: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> str:
        """
        Move a file into the archive folder by copy-then-delete.

        The source is deleted only after the copy reports `success`. A crash
        between the copy and the delete leaves both objects; archiving again
        converges. Returns the destination path.

        Raises:
            NotFoundError: The source does not exist.
            ConflictError: The source already lives at the archive path.
            CopyFailedError: The copy ended in any state but `success`, or
                did not settle within the polling bounds. The source is intact.
        """
        self.ensure_resources()
        source = blob_name if from_folder is None else combine(from_folder, blob_name)
        if not self.store.object_exists(source):
            raise NotFoundError(f"Blob not found: {source}")

        file_name = basename(source)
        destination = combine(self.options.archive_folder, file_name)
        if destination == source:
            raise ConflictError(f"Blob is already archived: {source}")

        handle = self.store.start_copy(source, destination)
        props = await self._wait_for_copy(handle)
        if props.copy_status != CopyStatus.SUCCESS:
            raise CopyFailedError(
                f"Copy to archive failed with status {props.copy_status.value if props.copy_status else None}"
            )

        # Point of no return
        self.store.delete(source, include_snapshots=True)

        await self._update_status(file_name, FileProcessingStatus.ARCHIVED, self.options.archive_folder)

        self.audit_log.append(
            AuditEntry(
                row_key=_new_row_key(),
                blob_name=destination,
                container_name=self.container_name,
                file_name=file_name,
                folder=self.options.archive_folder,
                status=FileProcessingStatus.ARCHIVED,
                action=FileActionType.ARCHIVE,
                content_type=props.content_type,
                content_length=props.content_length,
                comment=comment,
                correlation_id=correlation_id,
            )
        )
        logger.info(f"Archived {source} -> {destination}")
        return destination

    async def _wait_for_copy(self, handle: CopyHandle) -> ObjectProperties:
        """
        Poll the copy destination with exponential backoff until it leaves `pending`.

        Cancelling the calling task aborts the wait, not the copy itself.
        """
        interval = self.options.copy_poll_interval
        for attempt in range(1, self.options.copy_poll_max_attempts + 1):
            await asyncio.sleep(interval)
            props = self.store.copy_status(handle)
            if props.copy_status != CopyStatus.PENDING:
                return props
            logger.debug(f"Copy to {handle.destination} still pending after poll {attempt}")
            interval = min(interval * self.options.copy_poll_backoff, self.options.copy_poll_max_interval)

        raise CopyFailedError(
            f"Copy to archive failed with status {CopyStatus.PENDING.value} "
            f"after {self.options.copy_poll_max_attempts} polls"
        )

    #################
    # Status        #
    #################

    async def update_status(
        self,
        blob_name: str,
        status: FileProcessingStatus,
        folder: Optional[str] = None,
    ) -> StatusRecord:
        """
        Set the status of a logical file, creating its record if needed.

        An existing record is replaced only if nobody changed it since it was
        read; a concurrent change surfaces as `ConflictError` and is not
        retried. Unlike upload, this path never blindly overwrites.
        """
        self.ensure_resources()
        return await self._update_status(blob_name, status, folder)

    async def _update_status(
        self,
        blob_name: str,
        status: FileProcessingStatus,
        folder: Optional[str],
    ) -> StatusRecord:
        path = blob_name if folder is None else combine(folder, blob_name)
        key = to_row_key(path)
        target_folder = folder_for_status(status, self.options)

        try:
            record = self.status_table.get(key)
        except NotFoundError:
            return self.status_table.insert(
                StatusRecord(
                    row_key=key,
                    file_name=basename(path),
                    container_name=self.container_name,
                    folder=target_folder,
                    status=status,
                )
            )

        updated = record.model_copy(update={"status": status, "folder": target_folder})
        return self.status_table.update_conditional(updated, record.version)

    async def get_status(self, blob_name: str, folder: Optional[str] = None) -> StatusRecord:
        self.ensure_resources()
        path = blob_name if folder is None else combine(folder, blob_name)
        return self.status_table.get(to_row_key(path))

    #############
    # Delete    #
    #############

    async def delete(self, blob_name: str, folder: Optional[str] = None) -> None:
        """Remove a stored file and audit it. The status record is left as is."""
        self.ensure_resources()
        path = blob_name if folder is None else combine(folder, blob_name)
        props = self.store.get_properties(path)
        self.store.delete(path, include_snapshots=True)

        self.audit_log.append(
            AuditEntry(
                row_key=_new_row_key(),
                blob_name=path,
                container_name=self.container_name,
                file_name=basename(path),
                folder=folder if folder is not None else folder_from_name(path),
                status=self._current_status(path),
                action=FileActionType.DELETE,
                content_type=props.content_type,
                content_length=props.content_length,
            )
        )
        logger.info(f"Deleted {path}")

    #####################
    # Listing & types   #
    #####################

    async def list_files(self, folder: Optional[str] = None) -> AsyncIterator[FileItem]:
        """
        Lazily list files under `folder`, one store page at a time.

        Read-only: nothing is audited. Each call starts a fresh enumeration.
        """
        self.ensure_resources()
        for page in self.store.iter_pages(folder_prefix(folder)):
            for summary in page:
                name = summary["name"]
                try:
                    props = self.store.get_properties(name)
                except NotFoundError:
                    # Deleted between the page fetch and now
                    continue
                yield FileItem(
                    name=basename(name),
                    folder=folder_from_name(name),
                    content_length=summary["content_length"],
                    content_type=props.content_type,
                    last_modified=summary["last_modified"],
                )
            await asyncio.sleep(0)

    async def get_file_type_counts(self, folder: Optional[str] = None) -> List[FileTypeCount]:
        """Count files under `folder` by lower-cased extension, most common first."""
        self.ensure_resources()
        counts: Dict[str, int] = {}
        for page in self.store.iter_pages(folder_prefix(folder)):
            for summary in page:
                key = extension_key(summary["name"])
                counts[key] = counts.get(key, 0) + 1
            await asyncio.sleep(0)

        return sorted(
            (FileTypeCount(file_type=file_type, count=count) for file_type, count in counts.items()),
            key=lambda c: (-c.count, c.file_type.lower()),
        )

    #############
    # Audit     #
    #############

    async def get_audit(
        self,
        blob_name: Optional[str] = None,
        folder: Optional[str] = None,
        take: Optional[int] = None,
    ) -> List[AuditEntry]:
        """
        Audit history, newest first.

        With `blob_name`, the store filters on the exact path (folder-prefixed
        when `folder` is given). Without it, the whole audit partition is read
        and filtered by folder here, since the store cannot prefix-filter.
        """
        self.ensure_resources()
        if blob_name and blob_name.strip():
            name = blob_name if not folder or not folder.strip() else combine(folder, blob_name)
            entries = self.audit_log.query_by_blob_name(name)
        else:
            wanted = folder.lower() if folder and folder.strip() else None
            entries = (
                entry
                for entry in self.audit_log.query_partition()
                if wanted is None or (entry.folder or "").lower() == wanted
            )

        results = list(islice(entries, take)) if take is not None else list(entries)
        return sorted(results, key=lambda e: e.timestamp, reverse=True)
