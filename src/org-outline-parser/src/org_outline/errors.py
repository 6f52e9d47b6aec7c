"""Typed errors raised by the org_outline library.

Parsing org text never raises. These are reserved for identifier resolution,
stale positions handed to mutation functions and malformed structured input
(config files, batch JSON, command arguments).
"""

from enum import Enum
from typing import Optional


class ErrorType(Enum):
    HEADLINE_NOT_FOUND = "headline_not_found"
    FILE_NOT_FOUND = "file_not_found"
    PARSE_ERROR = "parse_error"
    INVALID_ARGS = "invalid_args"
    INTERNAL_ERROR = "internal_error"


class OrgError(Exception):
    """Base class for all library errors.

    Attributes:
        error_type: Category used by callers to pick an exit code or envelope
        message: Human-readable message
        detail: Optional extra context (offending value, parser message)
    """

    error_type = ErrorType.INTERNAL_ERROR

    def __init__(self, message: str, detail: Optional[str] = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class HeadlineNotFoundError(OrgError):
    """Raised when an identifier or position does not resolve to a headline."""

    error_type = ErrorType.HEADLINE_NOT_FOUND


class OrgFileNotFoundError(OrgError):
    error_type = ErrorType.FILE_NOT_FOUND


class OrgParseError(OrgError):
    error_type = ErrorType.PARSE_ERROR


class InvalidArgsError(OrgError):
    error_type = ErrorType.INVALID_ARGS


class OrgInternalError(OrgError):
    error_type = ErrorType.INTERNAL_ERROR
