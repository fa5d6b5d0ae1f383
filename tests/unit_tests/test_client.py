import pytest
import requests
from fastapi.testclient import TestClient

from file_workflow.client import FilesApiClient, FilesApiError
from file_workflow.schemas import FileActionType, FileProcessingStatus
from tests.consts import (
    TEST_FILE_CONTENT,
    TEST_FILE_CONTENT_TYPE,
    TEST_FILE_NAME,
)


@pytest.fixture
def api(client: TestClient) -> FilesApiClient:
    return FilesApiClient("http://testserver/", session=client)


def test__defaults_to_requests_session():
    api = FilesApiClient("http://localhost:8000")
    assert isinstance(api.session, requests.Session)
    assert api.base_url == "http://localhost:8000"


def test__upload_download_round_trip(api: FilesApiClient):
    blob_name = api.upload(TEST_FILE_CONTENT, TEST_FILE_NAME, TEST_FILE_CONTENT_TYPE, correlation_id="c-1")

    assert blob_name == f"in/{TEST_FILE_NAME}"
    assert api.download(blob_name) == TEST_FILE_CONTENT
    assert api.download(TEST_FILE_NAME, folder="in") == TEST_FILE_CONTENT


def test__full_lifecycle(api: FilesApiClient):
    blob_name = api.upload(TEST_FILE_CONTENT, TEST_FILE_NAME, TEST_FILE_CONTENT_TYPE)

    record = api.update_status(blob_name, FileProcessingStatus.PROCESSING)
    assert record.status == FileProcessingStatus.PROCESSING
    assert api.get_status(blob_name).version == record.version

    [item] = api.list_files("in")
    assert item.name == TEST_FILE_NAME
    assert [(c.file_type, c.count) for c in api.get_file_type_counts()] == [("txt", 1)]

    archived = api.archive(blob_name, comment="cleanup")
    assert archived == f"archive/{TEST_FILE_NAME}"
    assert api.list_files("in") == []

    api.delete(archived)
    actions = [entry.action for entry in api.get_audit()]
    assert actions == [
        FileActionType.DELETE,
        FileActionType.ARCHIVE,
        FileActionType.UPLOAD,
    ]
    assert len(api.get_audit(take=1)) == 1


def test__error_status_raises(api: FilesApiClient):
    with pytest.raises(FilesApiError) as exc_info:
        api.download("in/missing.txt")

    assert exc_info.value.status_code == 404
    assert "not found" in exc_info.value.detail.lower()


def test__blob_names_with_url_delimiters_round_trip(api: FilesApiClient):
    name = "my#file?.txt"
    blob_name = api.upload(b"data", name, TEST_FILE_CONTENT_TYPE)
    assert blob_name == f"in/{name}"

    assert api.download(name, folder="in") == b"data"
    assert api.download(blob_name) == b"data"
    record = api.get_status(blob_name)
    assert record.row_key == "in:my:file:.txt"
    assert record.file_name == name
    assert api.update_status(blob_name, FileProcessingStatus.PROCESSING).status == FileProcessingStatus.PROCESSING

    assert api.archive(blob_name) == f"archive/{name}"
    api.delete(f"archive/{name}")
    assert [entry.blob_name for entry in api.get_audit(take=1)] == [f"archive/{name}"]
