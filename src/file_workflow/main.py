from textwrap import dedent
import logging
from typing import Optional

import pydantic
from fastapi import FastAPI
from fastapi.routing import APIRoute
from fastapi.middleware.cors import CORSMiddleware

from file_workflow.errors import (
    FileWorkflowError,
    handle_broad_exceptions,
    handle_file_workflow_errors,
    handle_pydantic_validation_errors,
)
from file_workflow.logging_config import setup_logging
from file_workflow.routes import HEALTH_ROUTER, ROUTER
from file_workflow.settings import Settings
from file_workflow.workflow import FileWorkflowEngine

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[FileWorkflowEngine] = None,
) -> FastAPI:
    """Create a FastAPI application."""
    settings = settings or Settings()
    setup_logging(settings.log_level)

    app = FastAPI(
        title="File Workflow API",
        summary="Upload, download and archive files with status and audit tracking",
        version="v1",
        description=dedent(
            """\
        Files are stored under `in/`, `out/` and `archive/` folders of a single bucket.

        | Endpoint | Notes |
        | --- | --- |
        | `POST /api/files/upload` | Stores into the in-folder, marks `Uploaded`, emits a notification |
        | `POST /api/files/archive/{blobName}` | Copy-then-delete into the archive folder |
        | `GET /api/files/audit` | Upload/download/archive/delete history, newest first |
        """
        ),
        docs_url="/",
        generate_unique_id_function=custom_generate_unique_id,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.engine = engine or FileWorkflowEngine.from_settings(settings)
    logger.info(f"File workflow API created in {settings.deployment_mode} mode")

    app.include_router(ROUTER)
    app.include_router(HEALTH_ROUTER)

    app.add_exception_handler(
        exc_class_or_status_code=FileWorkflowError,
        handler=handle_file_workflow_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=pydantic.ValidationError,
        handler=handle_pydantic_validation_errors,
    )
    app.middleware("http")(handle_broad_exceptions)

    return app


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    return f"{route.tags[0]}-{route.name}"


if __name__ == "__main__":
    import uvicorn

    app = create_app()
    uvicorn.run(app, host="0.0.0.0", port=8000)
