"""Unit tests for file operations service.

Tests for reading org files and discovering them below a directory.
"""

import pytest

from org_outline.errors import ErrorType, OrgFileNotFoundError
from orgmend.services.file_monitor import FileMonitor
from orgmend.services.file_operations import list_org_files, read_org_file


class TestReadOrgFile:
    """Tests for read_org_file."""

    def test_reads_utf8(self, tmp_path):
        """Test reading a file with non-ASCII text."""
        path = tmp_path / "notes.org"
        path.write_text("* Café :équipe:\n", encoding="utf-8")

        assert read_org_file(path) == "* Café :équipe:\n"

    def test_records_in_monitor(self, tmp_path):
        """Test that the monitor tracks the file once read."""
        path = tmp_path / "notes.org"
        path.write_text("* A\n")
        monitor = FileMonitor()

        read_org_file(path, monitor)

        assert path in monitor._mtimes

    def test_missing_file(self, tmp_path):
        """Test that a missing file raises a typed error."""
        path = tmp_path / "missing.org"

        with pytest.raises(OrgFileNotFoundError, match="File not found") as exc_info:
            read_org_file(path)

        assert exc_info.value.error_type == ErrorType.FILE_NOT_FOUND
        assert exc_info.value.detail == str(path)

    def test_directory_is_not_a_file(self, tmp_path):
        with pytest.raises(OrgFileNotFoundError):
            read_org_file(tmp_path)


class TestListOrgFiles:
    """Tests for list_org_files."""

    def test_recursive_and_sorted(self, tmp_path):
        """Test that .org files are found recursively in path order."""
        (tmp_path / "b.org").write_text("")
        (tmp_path / "a.org").write_text("")
        (tmp_path / "projects").mkdir()
        (tmp_path / "projects" / "work.org").write_text("")
        (tmp_path / "readme.md").write_text("")

        files = list_org_files(tmp_path)

        assert [p.relative_to(tmp_path).as_posix() for p in files] == [
            "a.org", "b.org", "projects/work.org",
        ]

    def test_skips_hidden_entries(self, tmp_path):
        """Test that dot files, .git and temp files are skipped."""
        (tmp_path / ".git").mkdir()
        (tmp_path / ".git" / "x.org").write_text("")
        (tmp_path / ".notes.org.tmp.123").write_text("")
        (tmp_path / ".hidden.org").write_text("")
        (tmp_path / "todo.org").write_text("")

        assert [p.name for p in list_org_files(tmp_path)] == ["todo.org"]

    def test_archive_files_not_listed(self, tmp_path):
        (tmp_path / "todo.org").write_text("")
        (tmp_path / "todo.org_archive").write_text("")

        assert [p.name for p in list_org_files(tmp_path)] == ["todo.org"]

    def test_missing_directory(self, tmp_path):
        with pytest.raises(OrgFileNotFoundError, match="Directory not found"):
            list_org_files(tmp_path / "nope")
