"""AWS client construction driven by settings."""

import logging
import os
from typing import Any, Dict

import boto3

from file_workflow.settings import Settings

logger = logging.getLogger(__name__)


class AWSClientFactory:
    """Builds boto3 clients and resources for the configured deployment mode."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.region = settings.aws_region
        self.endpoint_url = settings.aws_endpoint_url
        self.mode = settings.deployment_mode

    def _session(self) -> boto3.Session:
        # Check for AWS profile in environment (for SSO)
        aws_profile = os.environ.get('AWS_PROFILE')
        if aws_profile and self.mode == 'aws-prod':
            return boto3.Session(profile_name=aws_profile, region_name=self.region)
        return boto3.Session(region_name=self.region)

    def _kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {'region_name': self.region}
        if self.settings.aws_access_key_id:
            kwargs['aws_access_key_id'] = self.settings.aws_access_key_id
        if self.settings.aws_secret_access_key:
            kwargs['aws_secret_access_key'] = self.settings.aws_secret_access_key
        # Endpoint URL only for local/mock modes
        if self.endpoint_url and self.mode in ['local-dev', 'aws-mock']:
            kwargs['endpoint_url'] = self.endpoint_url
        return kwargs

    def client(self, service_name: str) -> Any:
        """Create an AWS service client."""
        try:
            client = self._session().client(service_name, **self._kwargs())
            logger.debug(f"Created {service_name} client")
            return client
        except Exception as e:
            logger.error(f"Error creating {service_name} client: {str(e)}")
            raise

    def resource(self, service_name: str) -> Any:
        """Create an AWS service resource."""
        try:
            resource = self._session().resource(service_name, **self._kwargs())
            logger.debug(f"Created {service_name} resource")
            return resource
        except Exception as e:
            logger.error(f"Error creating {service_name} resource: {str(e)}")
            raise
