# cli.py
import asyncio
import logging
import mimetypes
import sys
from pathlib import Path

import click

from file_workflow.errors import FileWorkflowError
from file_workflow.logging_config import setup_logging
from file_workflow.schemas import FileProcessingStatus
from file_workflow.settings import get_settings
from file_workflow.validation import validate_upload
from file_workflow.workflow import FileWorkflowEngine

logger = logging.getLogger(__name__)


def _engine() -> FileWorkflowEngine:
    settings = get_settings()
    # stdout is reserved for command output, e.g. the bytes of `download`
    setup_logging(settings.log_level, stream=sys.stderr)
    return FileWorkflowEngine.from_settings(settings)


def _run(coro):
    """Run a workflow coroutine, turning workflow errors into a CLI failure."""
    try:
        return asyncio.run(coro)
    except FileWorkflowError as e:
        raise click.ClickException(e.message) from e


@click.group()
def cli():
    """CLI commands for the file workflow"""
    pass


@cli.command()
def show_config():
    """Show current configuration"""
    settings = get_settings()

    print("Current Configuration:")
    print(f"  Deployment Mode: {settings.deployment_mode}")
    print(f"  AWS Region: {settings.aws_region}")
    print(f"  AWS Endpoint: {settings.aws_endpoint_url}")
    print(f"  S3 Bucket: {settings.s3_bucket_name}")
    print(f"  Folders: in={settings.in_folder} out={settings.out_folder} archive={settings.archive_folder}")
    print(f"  SQS Queue Name: {settings.sqs_queue_name}")
    print(f"  SQS Queue URL: {settings.sqs_queue_url}")
    print(f"  Status Table: {settings.status_table_name}")
    print(f"  Audit Table: {settings.audit_table_name}")
    print(f"  Allowed Extensions: {', '.join(settings.allowed_extensions) or '(any)'}")
    print(f"  Max File Size: {settings.max_file_size}")


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--name", "file_name", help="Store under this name instead of the local one")
@click.option("--folder", help="Target folder; defaults to the in-folder")
@click.option("--content-type", help="MIME type; guessed from the name when omitted")
@click.option("--correlation-id")
@click.option("--comment")
def upload(path, file_name, folder, content_type, correlation_id, comment):
    """Upload a local file"""
    engine = _engine()
    file_name = file_name or path.name
    content_type = content_type or mimetypes.guess_type(file_name)[0] or "application/octet-stream"
    content = path.read_bytes()

    try:
        validate_upload(file_name, content_type, len(content), engine.options)
    except FileWorkflowError as e:
        raise click.ClickException(e.message) from e

    blob_name = _run(
        engine.upload(
            content,
            file_name,
            folder=folder,
            content_type=content_type,
            correlation_id=correlation_id,
            comment=comment,
        )
    )
    click.echo(blob_name)


@cli.command()
@click.argument("blob_name")
@click.option("--folder")
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path),
              help="Write to this file instead of stdout")
def download(blob_name, folder, output):
    """Download a stored file"""
    engine = _engine()
    if output is None:
        _run(engine.download(blob_name, sys.stdout.buffer, folder=folder))
        sys.stdout.buffer.flush()
        return
    with open(output, "wb") as sink:
        props = _run(engine.download(blob_name, sink, folder=folder))
    click.echo(f"Wrote {props.content_length} bytes to {output}")


@cli.command()
@click.argument("blob_name")
@click.option("--from-folder")
@click.option("--correlation-id")
@click.option("--comment")
def archive(blob_name, from_folder, correlation_id, comment):
    """Move a file into the archive folder"""
    engine = _engine()
    destination = _run(
        engine.archive(
            blob_name,
            from_folder=from_folder,
            correlation_id=correlation_id,
            comment=comment,
        )
    )
    click.echo(destination)


@cli.command()
@click.argument("blob_name")
@click.option("--folder")
def delete(blob_name, folder):
    """Delete a stored file"""
    _run(_engine().delete(blob_name, folder=folder))
    click.echo(f"Deleted {blob_name}")


@cli.command()
@click.option("--folder")
def ls(folder):
    """List files"""
    engine = _engine()

    async def _collect():
        return [item async for item in engine.list_files(folder)]

    for item in _run(_collect()):
        path = f"{item.folder}/{item.name}" if item.folder else item.name
        click.echo(f"{item.content_length:>10}  {item.content_type:<30}  {path}")


@cli.command()
@click.option("--folder")
def types(folder):
    """Count files by extension"""
    for entry in _run(_engine().get_file_type_counts(folder)):
        click.echo(f"{entry.file_type}\t{entry.count}")


@cli.command()
@click.option("--blob-name")
@click.option("--folder")
@click.option("--take", type=click.IntRange(min=1))
def audit(blob_name, folder, take):
    """Show audit history, newest first"""
    entries = _run(_engine().get_audit(blob_name=blob_name, folder=folder, take=take))
    for entry in entries:
        click.echo(
            f"{entry.timestamp.isoformat()}  {entry.action.value:<8}  "
            f"{entry.status.value:<10}  {entry.blob_name}"
        )


@cli.command()
@click.argument("blob_name")
@click.argument("status", type=click.Choice([s.value for s in FileProcessingStatus]))
@click.option("--folder")
def set_status(blob_name, status, folder):
    """Set the processing status of a file"""
    record = _run(_engine().update_status(blob_name, FileProcessingStatus(status), folder=folder))
    click.echo(f"{record.row_key}: {record.status.value} ({record.folder})")


@cli.command()
@click.option("--host", default="0.0.0.0")
@click.option("--port", default=8000, type=int)
def serve(host, port):
    """Run the HTTP API with uvicorn"""
    import uvicorn
    from file_workflow.main import create_app

    uvicorn.run(create_app(get_settings()), host=host, port=port)


if __name__ == "__main__":
    cli()
