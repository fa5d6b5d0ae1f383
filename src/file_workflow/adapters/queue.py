import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError

from file_workflow.adapters.clients import AWSClientFactory
from file_workflow.errors import TransientIOError
from file_workflow.settings import Settings

logger = logging.getLogger(__name__)


class BaseQueue:
    """
    Notification queue carrying upload events to downstream processors.

    Publishing only; consumers read the backing queue directly.
    """
    def ensure_queue(self) -> None:
        raise NotImplementedError

    async def add_task(self, task: Dict[str, Any]) -> None:
        raise NotImplementedError


class LocalQueue(BaseQueue):
    """One JSON file per event under `storage_dir/queue_data`, named in time order."""
    def __init__(self, storage_dir: str):
        self.queue_dir = Path(storage_dir) / "queue_data"
        logger.info(f"Local notification queue at {self.queue_dir}")

    def ensure_queue(self) -> None:
        self.queue_dir.mkdir(parents=True, exist_ok=True)

    async def add_task(self, task: Dict[str, Any]) -> None:
        """Write one event file; file-system failures surface as `TransientIOError`."""
        try:
            self.ensure_queue()
            # Unique, time-ordered filename
            filename = f"{time.time_ns()}_{os.getpid()}.json"
            with open(self.queue_dir / filename, 'w') as f:
                json.dump(task, f)
        except OSError as e:
            raise TransientIOError(f"Could not queue upload event locally: {str(e)}") from e
        logger.info(f"Queued upload event {filename}")


class SQSQueue(BaseQueue):
    """Upload events on an SQS queue."""
    def __init__(
        self,
        sqs_client: Any,
        queue_name: str,
        queue_url: Optional[str] = None,
    ):
        self.sqs = sqs_client
        self.queue_name = queue_name
        self.queue_url = queue_url
        logger.info(f"SQS notification queue {self.queue_name} ({self.queue_url or 'url unresolved'})")

    def ensure_queue(self) -> None:
        """Create the queue if needed and resolve its URL."""
        response = self.sqs.create_queue(QueueName=self.queue_name)
        if self.queue_url is None:
            self.queue_url = response["QueueUrl"]

    async def add_task(self, task: Dict[str, Any]) -> None:
        """Publish one event; SQS failures surface as `TransientIOError`."""
        try:
            if self.queue_url is None:
                self.ensure_queue()
            response = self.sqs.send_message(
                QueueUrl=self.queue_url,
                MessageBody=json.dumps(task),
            )
        except (ClientError, BotoCoreError) as e:
            raise TransientIOError(f"Could not publish upload event to SQS: {str(e)}") from e
        logger.info(f"Published upload event {response.get('MessageId')} to {self.queue_name}")


class QueueFactory:
    """Picks the notification queue backing for a deployment mode."""

    @staticmethod
    def get_queue_handler(settings: Settings, clients: Optional[AWSClientFactory] = None) -> BaseQueue:
        deployment_mode = settings.deployment_mode
        logger.info(f"Notification queue for {deployment_mode}")

        if deployment_mode == "local-dev":
            return LocalQueue(settings.storage_dir)
        if deployment_mode in ("aws-mock", "aws-prod"):
            clients = clients or AWSClientFactory(settings)
            return SQSQueue(
                clients.client("sqs"),
                queue_name=settings.sqs_queue_name,
                queue_url=settings.sqs_queue_url,
            )
        raise ValueError(
            f"Invalid deployment_mode: {deployment_mode}. "
            f"Choose from ['local-dev', 'aws-mock', 'aws-prod']"
        )
