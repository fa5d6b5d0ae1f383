"""Upload validation utilities."""

from typing import Optional

from file_workflow.errors import FileValidationError
from file_workflow.paths import file_extension
from file_workflow.settings import WorkflowOptions


def validate_upload(
    file_name: str,
    content_type: Optional[str],
    length: int,
    options: WorkflowOptions,
) -> None:
    """
    Check an upload against the configured allow-lists and size ceiling.

    Args:
        file_name: Name the file will be stored under.
        content_type: MIME type supplied by the caller.
        length: Size of the content in bytes.
        options: Workflow configuration holding the constraints.

    Raises:
        FileValidationError: If any constraint is violated.
    """
    if options.allowed_extensions:
        ext = file_extension(file_name)
        allowed = {e.lower() for e in options.allowed_extensions}
        if not ext or ext.lower() not in allowed:
            raise FileValidationError(f"File extension '{ext}' is not allowed.")

    if options.allowed_content_types:
        allowed = {c.lower() for c in options.allowed_content_types}
        if not content_type or not content_type.strip() or content_type.lower() not in allowed:
            raise FileValidationError(f"Content type '{content_type}' is not allowed.")

    if length <= 0:
        raise FileValidationError("Empty files are not allowed.")

    if options.max_file_size is not None and length > options.max_file_size:
        raise FileValidationError(
            f"File size ({length:,} bytes) exceeds the maximum allowed size "
            f"({options.max_file_size:,} bytes)."
        )
