import os

import pytest
from fastapi.testclient import TestClient
from moto import mock_aws

from file_workflow.main import create_app
from file_workflow.settings import Settings, get_settings
from file_workflow.workflow import FileWorkflowEngine
from tests.consts import (
    TEST_AUDIT_TABLE_NAME,
    TEST_BUCKET_NAME,
    TEST_QUEUE_NAME,
    TEST_STATUS_TABLE_NAME,
)
from tests.fixtures.workflow_fixtures import seed_files, sqs_messages  # noqa: F401


def point_away_from_aws():
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
    os.environ.pop("AWS_PROFILE", None)
    os.environ.pop("AWS_ENDPOINT_URL", None)


@pytest.fixture
def mocked_aws():
    """Route every boto3 call to moto's in-memory backends."""
    point_away_from_aws()
    with mock_aws():
        yield


@pytest.fixture
def settings(mocked_aws, tmp_path) -> Settings:
    # aws-prod keeps endpoint_url unset so that moto can intercept the calls
    return Settings(
        deployment_mode="aws-prod",
        s3_bucket_name=TEST_BUCKET_NAME,
        sqs_queue_name=TEST_QUEUE_NAME,
        status_table_name=TEST_STATUS_TABLE_NAME,
        audit_table_name=TEST_AUDIT_TABLE_NAME,
        storage_dir=str(tmp_path),
        copy_poll_interval=0.01,
        copy_poll_max_interval=0.02,
        copy_poll_max_attempts=5,
    )


@pytest.fixture
def engine(settings: Settings) -> FileWorkflowEngine:
    engine = FileWorkflowEngine.from_settings(settings)
    engine.ensure_resources()
    return engine


@pytest.fixture
def client(settings: Settings, engine: FileWorkflowEngine) -> TestClient:
    app = create_app(settings=settings, engine=engine)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def cli_env(mocked_aws, monkeypatch, tmp_path):
    """Environment for CLI commands, which read settings through `get_settings()`."""
    monkeypatch.setenv("DEPLOYMENT_MODE", "aws-prod")
    monkeypatch.setenv("S3_BUCKET_NAME", TEST_BUCKET_NAME)
    monkeypatch.setenv("SQS_QUEUE_NAME", TEST_QUEUE_NAME)
    monkeypatch.setenv("STATUS_TABLE_NAME", TEST_STATUS_TABLE_NAME)
    monkeypatch.setenv("AUDIT_TABLE_NAME", TEST_AUDIT_TABLE_NAME)
    monkeypatch.setenv("STORAGE_DIR", str(tmp_path))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
