"""Unit tests for atomic_write function."""

import os
import pytest
from pathlib import Path

from orgmend.services.file_operations import atomic_write
from orgmend.services.file_monitor import FileMonitor
from orgmend.services.exceptions import FileModifiedError


def modify_externally(path: Path, content: str) -> None:
    """Write content and push the mtime forward so the change is visible on coarse filesystems."""
    before = path.stat().st_mtime
    path.write_text(content)
    os.utime(path, (before + 10, before + 10))


class TestAtomicWrite:
    """Test atomic_write function with concurrent modification detection."""

    def test_atomic_write_creates_new_file(self, tmp_path):
        """Test that atomic_write creates a new file successfully."""
        target = tmp_path / "new_file.org"
        content = "* TODO Task\n** Child\n"

        atomic_write(target, content)

        assert target.exists()
        assert target.read_text() == content

    def test_atomic_write_overwrites_existing_file(self, tmp_path):
        """Test that atomic_write overwrites existing file."""
        target = tmp_path / "existing.org"
        target.write_text("* Old\n")

        atomic_write(target, "* New\n")

        assert target.read_text() == "* New\n"

    def test_atomic_write_with_file_monitor(self, tmp_path):
        """Test atomic_write updates file monitor after successful write."""
        target = tmp_path / "monitored.org"
        target.write_text("* Initial\n")

        monitor = FileMonitor()
        monitor.record(target)

        atomic_write(target, "* Updated\n", monitor)

        assert target.read_text() == "* Updated\n"
        # Monitor refreshed, so our own write is not an external change
        assert not monitor.is_modified(target)

    def test_atomic_write_detects_early_modification(self, tmp_path):
        """Test that atomic_write detects file modification before write (early check)."""
        target = tmp_path / "file.org"
        target.write_text("* Initial\n")

        monitor = FileMonitor()
        monitor.record(target)

        modify_externally(target, "* Edited in another editor\n")

        with pytest.raises(FileModifiedError, match="early check"):
            atomic_write(target, "* New\n", monitor)

    def test_atomic_write_detects_late_modification(self, tmp_path, monkeypatch):
        """Test that atomic_write detects file modification during write (late check)."""
        target = tmp_path / "file.org"
        target.write_text("* Initial\n")

        monitor = FileMonitor()
        monitor.record(target)

        write_attempted = []
        original_write_text = Path.write_text

        def mock_write_text(self, *args, **kwargs):
            write_attempted.append(True)
            result = original_write_text(self, *args, **kwargs)
            if self.name.startswith('.'):  # The temp file
                modify_externally(target, "* Modified during write\n")
            return result

        monkeypatch.setattr(Path, 'write_text', mock_write_text)

        with pytest.raises(FileModifiedError, match="late check"):
            atomic_write(target, "* New\n", monitor)

        assert write_attempted

    def test_atomic_write_cleans_up_temp_file_on_error(self, tmp_path, monkeypatch):
        """Test that atomic_write cleans up temporary file on error."""
        target = tmp_path / "file.org"

        def mock_write_text(self, *args, **kwargs):
            raise OSError("Simulated write error")

        monkeypatch.setattr(Path, 'write_text', mock_write_text)

        with pytest.raises(OSError, match="Simulated write error"):
            atomic_write(target, "* Content\n")

        assert list(tmp_path.glob('.*.tmp.*')) == []

    def test_atomic_write_preserves_content_on_modification(self, tmp_path):
        """Test that the externally edited file is kept when modification is detected."""
        target = tmp_path / "file.org"
        target.write_text("* Original\n")

        monitor = FileMonitor()
        monitor.record(target)

        modify_externally(target, "* Modified by external process\n")

        with pytest.raises(FileModifiedError) as exc_info:
            atomic_write(target, "* Attempted\n", monitor)

        assert target.read_text() == "* Modified by external process\n"
        assert list(tmp_path.glob('.*.tmp.*')) == []
        assert exc_info.value.path == str(target)
        assert exc_info.value.detail == str(target)

    def test_atomic_write_with_unicode_content(self, tmp_path):
        """Test that atomic_write handles Unicode content correctly."""
        target = tmp_path / "unicode.org"
        content = "* Réunion :équipe:\n- 日本語\n- Emoji: 🤖✅\n"

        atomic_write(target, content)

        assert target.read_text(encoding='utf-8') == content
