"""
Synchronous HTTP client for the file workflow API.

Any object with the `requests.Session` call surface can be passed as the
session, which is how the tests drive a FastAPI `TestClient`.
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from file_workflow.schemas import (
    AuditEntry,
    FileItem,
    FileProcessingStatus,
    FileTypeCount,
    StatusRecord,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/files"


def _path(blob_name: str) -> str:
    """Percent-encode a blob name for use in a URL path, keeping its folder slashes."""
    return quote(blob_name, safe="/")


class FilesApiError(Exception):
    """The API answered with an error status."""

    def __init__(self, status_code: int, detail: Any):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class FilesApiClient:
    def __init__(self, base_url: str, session: Optional[Any] = None, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, endpoint: str, **kwargs: Any):
        url = f"{self.base_url}{API_PREFIX}{endpoint}"
        if "params" in kwargs:
            kwargs["params"] = {k: v for k, v in kwargs["params"].items() if v is not None}
        logger.info(f"Making {method} request to {url}")

        response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        if response.status_code >= 400:
            try:
                detail = response.json().get("detail")
            except ValueError:
                detail = response.text
            logger.error(f"API call failed: {response.status_code} {detail}")
            raise FilesApiError(response.status_code, detail)
        logger.debug(f"API call successful: {response.status_code}")
        return response

    def upload(
        self,
        content: bytes,
        file_name: str,
        content_type: str = "application/octet-stream",
        folder: Optional[str] = None,
        comment: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> str:
        """Upload content and return the stored blob name."""
        response = self._request(
            "POST",
            "/upload",
            files={"file": (file_name, content, content_type)},
            params={
                "fileName": file_name,
                "folder": folder,
                "comment": comment,
                "correlationId": correlation_id,
            },
        )
        return response.json()["blobName"]

    def download(self, blob_name: str, folder: Optional[str] = None) -> bytes:
        response = self._request("GET", f"/download/{_path(blob_name)}", params={"folder": folder})
        return response.content

    def archive(
        self,
        blob_name: str,
        from_folder: Optional[str] = None,
        correlation_id: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> str:
        """Archive a file and return its new blob name."""
        response = self._request(
            "POST",
            f"/archive/{_path(blob_name)}",
            params={
                "fromFolder": from_folder,
                "correlationId": correlation_id,
                "comment": comment,
            },
        )
        return response.json()["archived"]

    def delete(self, blob_name: str, folder: Optional[str] = None) -> None:
        self._request("DELETE", f"/{_path(blob_name)}", params={"folder": folder})

    def list_files(self, folder: Optional[str] = None) -> List[FileItem]:
        response = self._request("GET", "", params={"folder": folder})
        return [FileItem.model_validate(item) for item in response.json()]

    def get_file_type_counts(self, folder: Optional[str] = None) -> List[FileTypeCount]:
        response = self._request("GET", "/types", params={"folder": folder})
        return [FileTypeCount.model_validate(item) for item in response.json()]

    def get_audit(
        self,
        blob_name: Optional[str] = None,
        folder: Optional[str] = None,
        take: Optional[int] = None,
    ) -> List[AuditEntry]:
        params: Dict[str, Any] = {"blobName": blob_name, "folder": folder, "take": take}
        response = self._request("GET", "/audit", params=params)
        return [AuditEntry.model_validate(item) for item in response.json()]

    def get_status(self, blob_name: str, folder: Optional[str] = None) -> StatusRecord:
        response = self._request("GET", f"/status/{_path(blob_name)}", params={"folder": folder})
        return StatusRecord.model_validate(response.json())

    def update_status(
        self,
        blob_name: str,
        status: FileProcessingStatus,
        folder: Optional[str] = None,
    ) -> StatusRecord:
        response = self._request(
            "PUT",
            f"/status/{_path(blob_name)}",
            json={"status": status.value, "folder": folder},
        )
        return StatusRecord.model_validate(response.json())
