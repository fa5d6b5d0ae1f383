import boto3
import pytest
from botocore.exceptions import ClientError

from file_workflow.adapters.tables import AuditLog, StatusTable
from file_workflow.errors import ConflictError, NotFoundError
from file_workflow.schemas import AuditEntry, FileActionType, FileProcessingStatus, StatusRecord
from tests.consts import TEST_AUDIT_TABLE_NAME, TEST_STATUS_TABLE_NAME


@pytest.fixture
def status_table(mocked_aws) -> StatusTable:
    table = StatusTable(TEST_STATUS_TABLE_NAME, boto3.resource("dynamodb"))
    table.ensure_table()
    return table


@pytest.fixture
def audit_log(mocked_aws) -> AuditLog:
    log = AuditLog(TEST_AUDIT_TABLE_NAME, boto3.resource("dynamodb"))
    log.ensure_table()
    return log


def make_record(row_key: str = "in:a.txt", status=FileProcessingStatus.UPLOADED) -> StatusRecord:
    return StatusRecord(
        row_key=row_key,
        file_name="a.txt",
        container_name="files",
        folder="in",
        status=status,
        content_type="text/plain",
        content_length=3,
    )


def make_entry(row_key: str, blob_name: str, folder: str = "in") -> AuditEntry:
    return AuditEntry(
        row_key=row_key,
        blob_name=blob_name,
        container_name="files",
        file_name=blob_name.rsplit("/", 1)[-1],
        folder=folder,
        status=FileProcessingStatus.UPLOADED,
        action=FileActionType.UPLOAD,
    )


def test__ensure_table_is_idempotent(status_table: StatusTable):
    status_table.ensure_table()


def test__get_missing_record_raises_not_found(status_table: StatusTable):
    with pytest.raises(NotFoundError):
        status_table.get("in:missing.txt")


def test__upsert_replaces_and_changes_version(status_table: StatusTable):
    first = status_table.upsert(make_record())
    second = status_table.upsert(make_record(status=FileProcessingStatus.PROCESSING))

    stored = status_table.get("in:a.txt")
    assert stored.status == FileProcessingStatus.PROCESSING
    assert stored.version == second.version != first.version
    assert stored.content_length == 3


def test__conditional_update_with_stale_version_conflicts(status_table: StatusTable):
    original = status_table.upsert(make_record())

    updated = status_table.update_conditional(
        original.model_copy(update={"status": FileProcessingStatus.PROCESSING}),
        original.version,
    )
    assert updated.version != original.version

    with pytest.raises(ConflictError):
        status_table.update_conditional(
            original.model_copy(update={"status": FileProcessingStatus.PROCESSED}),
            original.version,
        )
    assert status_table.get("in:a.txt").status == FileProcessingStatus.PROCESSING


def test__insert_fails_when_row_exists(status_table: StatusTable):
    status_table.insert(make_record())
    with pytest.raises(ConflictError):
        status_table.insert(make_record())


def test__audit_queries_return_newest_first(audit_log: AuditLog):
    audit_log.append(make_entry("1", "in/a.txt"))
    audit_log.append(make_entry("2", "in/b.txt"))
    audit_log.append(make_entry("3", "in/a.txt"))

    entries = list(audit_log.query_by_blob_name("in/a.txt"))
    assert [e.row_key for e in entries] == ["3", "1"]

    all_entries = list(audit_log.query_partition())
    assert [e.row_key for e in all_entries] == ["3", "2", "1"]
    assert all(e.timestamp.tzinfo is not None for e in all_entries)


def test__audit_rejects_duplicate_row_key(audit_log: AuditLog):
    audit_log.append(make_entry("1", "in/a.txt"))
    with pytest.raises(ClientError):
        audit_log.append(make_entry("1", "in/a.txt"))
