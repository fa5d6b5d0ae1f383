"""Fixtures that seed the mocked stores with files and records."""

import json
from typing import Callable, List

import pytest

from file_workflow.workflow import FileWorkflowEngine
from tests.consts import TEST_FILE_CONTENT, TEST_FILE_CONTENT_TYPE


@pytest.fixture
def seed_files(engine: FileWorkflowEngine) -> Callable:
    """Upload a batch of small text files, returning their blob names."""

    async def _seed(names: List[str], folder: str = "in") -> List[str]:
        return [
            await engine.upload(
                TEST_FILE_CONTENT,
                name,
                folder=folder,
                content_type=TEST_FILE_CONTENT_TYPE,
            )
            for name in names
        ]

    return _seed


def receive_all(sqs_client, queue_url: str) -> list:
    """Receive and delete every message on an SQS queue, decoding the bodies."""
    events = []
    while True:
        response = sqs_client.receive_message(
            QueueUrl=queue_url,
            MaxNumberOfMessages=10,
            WaitTimeSeconds=0,
        )
        messages = response.get("Messages", [])
        if not messages:
            return events
        for message in messages:
            events.append(json.loads(message["Body"]))
            sqs_client.delete_message(QueueUrl=queue_url, ReceiptHandle=message["ReceiptHandle"])


@pytest.fixture
def sqs_messages(engine: FileWorkflowEngine) -> Callable:
    """Drain the notification queue into a list of decoded events."""

    def _drain() -> list:
        return receive_all(engine.queue.sqs, engine.queue.queue_url)

    return _drain
