"""Custom exceptions for orgmend services."""

from org_outline.errors import ErrorType, OrgError


class FileModifiedError(OrgError):
    """Raised when an org file changes on disk between reading and writing it.

    Writing anyway would silently discard the external edit, so the command
    aborts instead.

    Attributes:
        path: Path to the file that was modified
        message: Human-readable error message
    """

    error_type = ErrorType.INTERNAL_ERROR

    def __init__(self, path: str, message: str = "File was modified during write operation"):
        self.path = path
        super().__init__(f"{message}: {path}", detail=path)
