"""
Naming helpers for the folder convention over flat object names.

Every function here is pure: no I/O, no settings lookups.
"""

from typing import Optional

from file_workflow.schemas import NO_EXTENSION_KEY, FileProcessingStatus
from file_workflow.settings import WorkflowOptions

_KEY_SEPARATORS = {"/", "\\", "#", "?"}


def combine(folder: Optional[str], file_name: str) -> str:
    """Join a folder and a file name into an object path."""
    if folder is None or not folder.strip():
        return file_name
    return folder.rstrip("/") + "/" + file_name


def basename(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def folder_from_name(name: str) -> str:
    """Top-level folder of an object name, or an empty string."""
    idx = name.find("/")
    return name[:idx] if idx > 0 else ""


def folder_prefix(folder: Optional[str]) -> str:
    """Listing prefix for a folder; empty means the whole bucket."""
    if folder is None or not folder.strip():
        return ""
    return folder.rstrip("/") + "/"


def to_row_key(path: str) -> str:
    """
    Sanitize an object path for use as a table row key.

    `/ \\ # ?` become `:` and control characters (0x00-0x1F, 0x7F) become `_`.
    """
    chars = []
    for ch in path:
        if ch in _KEY_SEPARATORS:
            chars.append(":")
        elif ord(ch) <= 0x1F or ord(ch) == 0x7F:
            chars.append("_")
        else:
            chars.append(ch)
    return "".join(chars)


def file_extension(name: str) -> str:
    """
    Extension of the last path segment including the dot, or an empty string.

    Everything after the last dot counts, so `.bashrc` has the extension
    `.bashrc`; a trailing dot means no extension.
    """
    file_name = basename(name)
    idx = file_name.rfind(".")
    if idx == -1 or idx == len(file_name) - 1:
        return ""
    return file_name[idx:]


def extension_key(name: str) -> str:
    """Lower-cased extension without the dot, or `(none)`."""
    ext = file_extension(name)
    if not ext:
        return NO_EXTENSION_KEY
    return ext[1:].lower()


def folder_for_status(status: FileProcessingStatus, options: WorkflowOptions) -> str:
    """The folder a file in the given status belongs to."""
    if status == FileProcessingStatus.PROCESSED:
        return options.out_folder
    if status == FileProcessingStatus.ARCHIVED:
        return options.archive_folder
    return options.in_folder
