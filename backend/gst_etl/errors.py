"""
Pipeline errors.

Only format-level and extraction-level failures are raised. Row-level
anomalies (missing columns, bad numbers, unknown states) are absorbed by the
adapters and reported through defaulted-field flags instead.
"""


class PipelineError(Exception):
    """Base exception for a failed ingestion job."""

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.message = message
        self.code = code


class UnsupportedFormat(PipelineError, ValueError):
    """Raised when the upload's file extension has no reader."""

    def __init__(self, extension: str, code: str = "UNSUPPORTED_FORMAT"):
        super().__init__(f"Unsupported file type: {extension or '(none)'}", code)
        self.extension = extension


class ExtractionError(PipelineError):
    """Raised when the text-extraction collaborator cannot read a document."""

    def __init__(self, message: str = "Failed to extract text from document", code: str = "EXTRACTION_FAILED"):
        super().__init__(message, code)
