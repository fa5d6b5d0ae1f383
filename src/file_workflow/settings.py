# src/file_workflow/settings.py
from functools import lru_cache
from typing import Annotated, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class WorkflowOptions(BaseModel):
    """
    Immutable configuration handed to the workflow engine at construction.

    Folder names, validation allow-lists and archive polling bounds all live
    here so that nothing downstream has to reach for global settings.
    """
    model_config = ConfigDict(frozen=True)

    bucket_name: str
    in_folder: str = "in"
    out_folder: str = "out"
    archive_folder: str = "archive"
    allowed_extensions: tuple[str, ...] = ()
    allowed_content_types: tuple[str, ...] = ()
    max_file_size: Optional[int] = None
    copy_poll_interval: float = 0.2
    copy_poll_backoff: float = 2.0
    copy_poll_max_interval: float = 5.0
    copy_poll_max_attempts: int = 20


class Settings(BaseSettings):
    """
    Single source of truth for all application settings.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    Usage:
        from file_workflow.settings import get_settings
        settings = get_settings()
        bucket_name = settings.s3_bucket_name
    """

    # Application Settings
    app_name: str = Field(
        default="file-workflow",
        description="Application name"
    )

    # Deployment Mode
    deployment_mode: str = Field(
        default="local-dev",
        validation_alias=AliasChoices("deployment_mode", "QUEUE_TYPE", "EXEC_MODE"),
        description="Deployment mode: local-dev, aws-mock, or aws-prod"
    )

    # AWS Core Settings
    aws_region: str = Field(
        default="us-east-1",
        alias="AWS_DEFAULT_REGION"
    )

    aws_access_key_id: Optional[str] = Field(
        default=None,
        alias="AWS_ACCESS_KEY_ID"
    )

    aws_secret_access_key: Optional[str] = Field(
        default=None,
        alias="AWS_SECRET_ACCESS_KEY"
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        alias="AWS_ENDPOINT_URL"
    )

    # S3 Configuration
    s3_bucket_name: str = Field(
        default="files",
        description="S3 bucket holding the in/out/archive folders"
    )

    # SQS Configuration
    sqs_queue_name: str = Field(
        default="file-uploads",
        description="SQS queue receiving upload notifications"
    )

    sqs_queue_url: Optional[str] = Field(
        default=None,
        alias="SQS_QUEUE_URL",
        description="Full SQS queue URL"
    )

    # DynamoDB Configuration
    status_table_name: str = Field(
        default="fileProcessing",
        description="Table tracking the processing status of each file"
    )

    audit_table_name: str = Field(
        default="fileAudit",
        description="Append-only table of upload/download/archive actions"
    )

    # Folder layout
    in_folder: str = Field(default="in")
    out_folder: str = Field(default="out")
    archive_folder: str = Field(default="archive")

    # Upload validation
    allowed_extensions: Annotated[List[str], NoDecode] = Field(
        default_factory=list,
        description="Allowed file extensions including the dot, e.g. .pdf"
    )

    allowed_content_types: Annotated[List[str], NoDecode] = Field(
        default_factory=list,
        description="Allowed MIME types"
    )

    max_file_size: Optional[int] = Field(
        default=None,
        description="Upload size ceiling in bytes"
    )

    # Archive copy polling
    copy_poll_interval: float = Field(default=0.2, gt=0)
    copy_poll_backoff: float = Field(default=2.0, ge=1.0)
    copy_poll_max_interval: float = Field(default=5.0, gt=0)
    copy_poll_max_attempts: int = Field(default=20, ge=1)

    # Storage Configuration
    storage_dir: str = Field(
        default="storage",
        description="Local storage directory (file-system queue in local-dev)"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @field_validator('deployment_mode', mode='before')
    @classmethod
    def normalize_deployment_mode(cls, v):
        """Normalize deployment mode values for backwards compatibility."""
        if v:
            mode_mapping = {
                "local-mock": "local-dev",
                "local": "local-dev",
                "hybrid": "aws-mock",
                "cloud": "aws-prod",
            }
            return mode_mapping.get(v, v)
        return v

    @field_validator('deployment_mode')
    @classmethod
    def validate_deployment_mode(cls, v):
        """Validate deployment mode is one of the allowed values."""
        valid_modes = ["local-dev", "aws-mock", "aws-prod"]
        if v not in valid_modes:
            raise ValueError(f"Invalid deployment_mode: {v}. Must be one of {valid_modes}")
        return v

    @field_validator('allowed_extensions', 'allowed_content_types', mode='before')
    @classmethod
    def split_comma_separated(cls, v):
        """Accept `.pdf,.txt` style strings from the environment."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @model_validator(mode='after')
    def apply_local_mode_defaults(self):
        """Point local modes at the moto server with mock credentials unless told otherwise."""
        if self.deployment_mode in ["local-dev", "aws-mock"]:
            if self.aws_endpoint_url is None:
                self.aws_endpoint_url = "http://localhost:5000"
            if self.aws_access_key_id is None:
                self.aws_access_key_id = "mock"
            if self.aws_secret_access_key is None:
                self.aws_secret_access_key = "mock"
            if self.sqs_queue_url is None:
                # For moto, use a simplified format without account number
                self.sqs_queue_url = f"{self.aws_endpoint_url}/queue/{self.sqs_queue_name}"
        return self

    def workflow_options(self) -> WorkflowOptions:
        """Freeze the workflow-relevant subset of the settings."""
        return WorkflowOptions(
            bucket_name=self.s3_bucket_name,
            in_folder=self.in_folder,
            out_folder=self.out_folder,
            archive_folder=self.archive_folder,
            allowed_extensions=tuple(self.allowed_extensions),
            allowed_content_types=tuple(self.allowed_content_types),
            max_file_size=self.max_file_size,
            copy_poll_interval=self.copy_poll_interval,
            copy_poll_backoff=self.copy_poll_backoff,
            copy_poll_max_interval=self.copy_poll_max_interval,
            copy_poll_max_attempts=self.copy_poll_max_attempts,
        )

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=(".env", ".env.local-dev", ".env.aws-mock", ".env.aws-prod"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()
