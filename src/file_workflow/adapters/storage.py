"""
S3 object store adapter.

Objects are addressed by their full key; "folders" are nothing more than the
slash-delimited prefix convention on top of those keys.
"""

import logging
from typing import Any, BinaryIO, Dict, Iterator, List, Optional, Union

from botocore.exceptions import ClientError

from file_workflow.errors import NotFoundError
from file_workflow.schemas import CopyHandle, CopyStatus, ObjectProperties

try:
    from mypy_boto3_s3 import S3Client
except ImportError:
    ...

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
COPY_STATUS_METADATA_KEY = "copy-status"
COPY_SOURCE_METADATA_KEY = "copy-source"
DOWNLOAD_CHUNK_SIZE = 64 * 1024

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound", "NoSuchBucket"}


def _is_not_found(err: ClientError) -> bool:
    return err.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES


class S3ObjectStore:
    """Put/get/copy/delete/list of named blobs in a single bucket."""

    def __init__(self, bucket_name: str, s3_client: "S3Client"):
        self.bucket_name = bucket_name
        self.s3 = s3_client

    def ensure_bucket(self) -> None:
        """Create the bucket if it does not exist yet."""
        try:
            self.s3.head_bucket(Bucket=self.bucket_name)
            return
        except ClientError as e:
            if not _is_not_found(e):
                raise

        region = self.s3.meta.region_name
        create_kwargs: Dict[str, Any] = {"Bucket": self.bucket_name}
        if region and region != "us-east-1":
            create_kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}
        try:
            self.s3.create_bucket(**create_kwargs)
            logger.info(f"Created S3 bucket: {self.bucket_name}")
        except ClientError as e:
            if e.response["Error"]["Code"] not in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
                raise

    def put_object(
        self,
        object_key: str,
        content: Union[bytes, BinaryIO],
        content_type: Optional[str] = None,
    ) -> None:
        """
        Upload content to the bucket, replacing any existing object.

        :param object_key: path to the object in the S3 bucket.
        :param content: bytes or a readable binary stream.
        :param content_type: The MIME type of the file, e.g. "text/plain" for a text file.
        """
        self.s3.put_object(
            Bucket=self.bucket_name,
            Key=object_key,
            Body=content,
            ContentType=content_type or DEFAULT_CONTENT_TYPE,
        )
        logger.info(f"Uploaded s3://{self.bucket_name}/{object_key}")

    def _head(self, object_key: str) -> Dict[str, Any]:
        try:
            return self.s3.head_object(Bucket=self.bucket_name, Key=object_key)
        except ClientError as e:
            if _is_not_found(e):
                raise NotFoundError(f"Blob not found: {object_key}") from e
            raise

    def get_properties(self, object_key: str) -> ObjectProperties:
        """Fetch authoritative properties, raising `NotFoundError` if absent."""
        response = self._head(object_key)
        metadata = response.get("Metadata") or {}
        copy_status = metadata.get(COPY_STATUS_METADATA_KEY)
        return ObjectProperties(
            name=object_key,
            content_type=response.get("ContentType") or DEFAULT_CONTENT_TYPE,
            content_length=response.get("ContentLength", 0),
            last_modified=response.get("LastModified"),
            etag=response.get("ETag"),
            copy_status=CopyStatus(copy_status) if copy_status else None,
        )

    def object_exists(self, object_key: str) -> bool:
        try:
            self.s3.head_object(Bucket=self.bucket_name, Key=object_key)
            return True
        except ClientError as e:
            if _is_not_found(e):
                return False
            raise

    def download(self, object_key: str, sink: BinaryIO) -> int:
        """Stream an object into `sink`, returning the number of bytes written."""
        try:
            response = self.s3.get_object(Bucket=self.bucket_name, Key=object_key)
        except ClientError as e:
            if _is_not_found(e):
                raise NotFoundError(f"Blob not found: {object_key}") from e
            raise

        written = 0
        for chunk in response["Body"].iter_chunks(chunk_size=DOWNLOAD_CHUNK_SIZE):
            sink.write(chunk)
            written += len(chunk)
        return written

    def start_copy(self, source_key: str, destination_key: str) -> CopyHandle:
        """
        Start a server-side copy of `source_key` to `destination_key`.

        The destination is stamped with copy-status metadata so that its
        properties report the outcome of the copy. A copy the store rejects
        yields a handle in the `failed` state rather than an exception.
        """
        head = self._head(source_key)
        metadata = dict(head.get("Metadata") or {})
        metadata[COPY_STATUS_METADATA_KEY] = CopyStatus.SUCCESS.value
        metadata[COPY_SOURCE_METADATA_KEY] = source_key

        try:
            self.s3.copy_object(
                Bucket=self.bucket_name,
                Key=destination_key,
                CopySource={"Bucket": self.bucket_name, "Key": source_key},
                MetadataDirective="REPLACE",
                ContentType=head.get("ContentType") or DEFAULT_CONTENT_TYPE,
                Metadata=metadata,
            )
        except ClientError as e:
            logger.error(f"Copy {source_key} -> {destination_key} rejected: {str(e)}")
            return CopyHandle(
                source=source_key,
                destination=destination_key,
                status=CopyStatus.FAILED,
                error=str(e),
            )

        logger.info(f"Started copy {source_key} -> {destination_key}")
        return CopyHandle(source=source_key, destination=destination_key, status=CopyStatus.PENDING)

    def copy_status(self, handle: CopyHandle) -> ObjectProperties:
        """
        Properties of the copy destination with `copy_status` always set.

        A destination that is not visible yet is reported as `pending`.
        """
        if handle.status == CopyStatus.FAILED:
            return ObjectProperties(name=handle.destination, copy_status=CopyStatus.FAILED)
        try:
            props = self.get_properties(handle.destination)
        except NotFoundError:
            return ObjectProperties(name=handle.destination, copy_status=CopyStatus.PENDING)
        if props.copy_status is None:
            props = props.model_copy(update={"copy_status": CopyStatus.SUCCESS})
        return props

    def delete(self, object_key: str, include_snapshots: bool = True) -> None:
        """Delete an object and, optionally, every stored version of it."""
        self.s3.delete_object(Bucket=self.bucket_name, Key=object_key)
        if include_snapshots:
            paginator = self.s3.get_paginator("list_object_versions")
            for page in paginator.paginate(Bucket=self.bucket_name, Prefix=object_key):
                for version in page.get("Versions", []) + page.get("DeleteMarkers", []):
                    if version["Key"] != object_key or version.get("VersionId") in (None, "null"):
                        continue
                    self.s3.delete_object(
                        Bucket=self.bucket_name,
                        Key=object_key,
                        VersionId=version["VersionId"],
                    )
        logger.info(f"Deleted s3://{self.bucket_name}/{object_key}")

    def iter_pages(self, prefix: str = "", page_size: int = 1000) -> Iterator[List[Dict[str, Any]]]:
        """
        Yield pages of object summaries under `prefix`.

        Each summary carries `name`, `content_length` and `last_modified`.
        The generator is finite and can be restarted by calling again.
        """
        paginator = self.s3.get_paginator("list_objects_v2")
        paginate_kwargs: Dict[str, Any] = {
            "Bucket": self.bucket_name,
            "PaginationConfig": {"PageSize": page_size},
        }
        if prefix:
            paginate_kwargs["Prefix"] = prefix

        for page in paginator.paginate(**paginate_kwargs):
            yield [
                {
                    "name": item["Key"],
                    "content_length": item.get("Size", 0),
                    "last_modified": item.get("LastModified"),
                }
                for item in page.get("Contents", [])
            ]
