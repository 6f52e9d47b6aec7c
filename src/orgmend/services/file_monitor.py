"""File modification monitoring for concurrent edit detection."""

from pathlib import Path
from typing import Dict


class FileMonitor:
    """
    Track file modification times to detect external changes.

    A command records each org file when it reads it and checks again just
    before writing, so an editor saving the same file in between is noticed.

    Example:
        >>> monitor = FileMonitor()
        >>> path = Path("notes/todo.org")
        >>> monitor.record(path)
        >>> # Later, before write:
        >>> if monitor.is_modified(path):
        ...     raise FileModifiedError(str(path))
    """

    def __init__(self) -> None:
        self._mtimes: Dict[Path, float] = {}

    def record(self, path: Path) -> None:
        """
        Record current modification time for a file.

        Raises:
            FileNotFoundError: If file doesn't exist
        """
        self._mtimes[path] = path.stat().st_mtime

    def is_modified(self, path: Path) -> bool:
        """
        Check if file has been modified since last record.

        Files that are not tracked, or that do not exist yet (a new archive
        file), count as unmodified.
        """
        if path not in self._mtimes or not path.exists():
            return False
        return path.stat().st_mtime != self._mtimes[path]

    def refresh(self, path: Path) -> None:
        """Update recorded modification time after a successful write."""
        self._mtimes[path] = path.stat().st_mtime
