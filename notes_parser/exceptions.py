"""Custom exceptions for notes parser."""

from typing import Optional


class NotesParserError(Exception):
    """Base exception for notes parser errors."""

    pass


class InputError(NotesParserError):
    """Raised when the request carries no usable input."""

    pass


class FileTooLargeError(InputError):
    """Raised when an uploaded part exceeds the configured size limit."""

    def __init__(self, file_name: str, limit_bytes: int):
        super().__init__(
            f"File too large: {file_name} exceeds {limit_bytes} bytes"
        )
        self.file_name = file_name
        self.limit_bytes = limit_bytes


class ExtractionError(NotesParserError):
    """Raised when text extraction fails."""

    pass


class MalformedDocumentError(ExtractionError):
    """Raised when a PDF or archive container cannot be parsed."""

    pass


class ConfigurationError(NotesParserError):
    """Raised when a required setting (e.g. API key) is missing."""

    pass


class ServiceUnavailableError(NotesParserError):
    """Raised when a remote text or vision service call fails.

    The upstream error message is kept as the exception message so it can be
    reported back for diagnostics.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UpstreamResponseError(ServiceUnavailableError):
    """Raised when a remote service answers with content we cannot interpret."""

    pass
