"""File operations service.

Org files are read whole, edited in memory and written back with a
temp-file-rename so a crash never leaves a half-written file behind.
"""

import os
from pathlib import Path
from typing import Iterator, Optional

import structlog

from org_outline.errors import OrgFileNotFoundError
from orgmend.services.exceptions import FileModifiedError
from orgmend.services.file_monitor import FileMonitor

logger = structlog.get_logger()

SKIPPED_DIRECTORIES = {".git"}


def read_org_file(path: Path, file_monitor: Optional[FileMonitor] = None) -> str:
    """
    Read an org file as UTF-8 text.

    Args:
        path: File to read
        file_monitor: Optional FileMonitor that records the file's mtime

    Raises:
        OrgFileNotFoundError: If the file does not exist or is not a file
    """
    if not path.is_file():
        raise OrgFileNotFoundError(f"File not found: {path}", detail=str(path))
    content = path.read_text(encoding="utf-8")
    if file_monitor:
        file_monitor.record(path)
    logger.debug("org_file_read", path=str(path), size=len(content))
    return content


def atomic_write(
    path: Path,
    content: str,
    file_monitor: Optional[FileMonitor] = None
) -> None:
    """
    Replace an org file's content in one rename.

    The new text goes to a hidden sibling temp file, is fsynced, then
    renamed over path. When a monitor is given, the file's mtime is checked
    against the recorded one both before the temp file is written and
    again just before the rename; the monitor is refreshed afterwards.

    Args:
        path: Org file to replace (created if missing)
        content: Full new file content
        file_monitor: Monitor holding the mtime recorded at read time

    Raises:
        FileModifiedError: If file was modified during write operation
        OSError: On file I/O errors
    """
    if file_monitor and file_monitor.is_modified(path):
        raise FileModifiedError(
            str(path),
            "File was modified before write (early check)"
        )

    # Same directory keeps the rename on one filesystem
    temp_path = path.parent / f".{path.name}.tmp.{os.getpid()}"

    try:
        temp_path.write_text(content, encoding='utf-8')

        with open(temp_path, 'r+', encoding='utf-8') as f:
            f.flush()
            os.fsync(f.fileno())

        if file_monitor and file_monitor.is_modified(path):
            raise FileModifiedError(
                str(path),
                "File was modified during write (late check)"
            )

        temp_path.replace(path)

        if file_monitor:
            file_monitor.refresh(path)

        logger.debug(
            "atomic_write_success",
            path=str(path),
            size=len(content)
        )

    except FileModifiedError:
        if temp_path.exists():
            temp_path.unlink()
        raise

    except Exception as e:
        if temp_path.exists():
            temp_path.unlink()
        logger.error(
            "atomic_write_failed",
            path=str(path),
            error=str(e)
        )
        raise


def _walk(directory: Path) -> Iterator[Path]:
    for entry in sorted(directory.iterdir()):
        if entry.name.startswith(".") or entry.name in SKIPPED_DIRECTORIES:
            continue
        if entry.is_dir():
            yield from _walk(entry)
        elif entry.suffix == ".org":
            yield entry


def list_org_files(directory: Path) -> list[Path]:
    """
    Find .org files below directory, sorted by path.

    Dot files and dot directories (including .git) are skipped.

    Raises:
        OrgFileNotFoundError: If directory does not exist
    """
    if not directory.is_dir():
        raise OrgFileNotFoundError(f"Directory not found: {directory}", detail=str(directory))
    return list(_walk(directory))
