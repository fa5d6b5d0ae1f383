"""Error taxonomy of the file workflow and the HTTP handlers that map it."""

import logging

import pydantic
from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class FileWorkflowError(Exception):
    """Base class for errors raised by the workflow core."""
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(FileWorkflowError):
    """Source object or status record does not exist."""
    status_code = status.HTTP_404_NOT_FOUND


class FileValidationError(FileWorkflowError):
    """An upload violates the configured constraints."""
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(FileWorkflowError):
    """Optimistic-concurrency version mismatch on a status record."""
    status_code = status.HTTP_409_CONFLICT


class CopyFailedError(FileWorkflowError):
    """Server-side copy to the archive did not reach `success`."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class TransientIOError(FileWorkflowError):
    """A queue, store or table call failed."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


async def handle_file_workflow_errors(request: Request, exc: FileWorkflowError) -> JSONResponse:
    """Map workflow errors onto their HTTP equivalents."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
    )


async def handle_pydantic_validation_errors(request: Request, exc: pydantic.ValidationError) -> JSONResponse:
    errors = exc.errors()
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": [
                {
                    "msg": error["msg"],
                    "input": error["input"],
                }
                for error in errors
            ]
        },
    )


async def handle_broad_exceptions(request: Request, call_next):
    """Handle any exception that propagates during the request."""
    try:
        return await call_next(request)
    except Exception as err:
        logger.exception(err)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )
