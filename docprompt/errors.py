"""
Error taxonomy for the upload processing endpoint.

Every error carries the HTTP status the API blueprint answers with, so the
services raise and the blueprint maps without knowing which service failed.
"""
from typing import Optional


class ProcessingError(Exception):
    """Base class for errors surfaced to the caller as a JSON envelope."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ProcessingError):
    """Missing file or prompt, disallowed MIME type, oversize upload."""

    status_code = 400


class ConfigurationError(ProcessingError):
    """A required API key or setting is missing."""


class UpstreamError(ProcessingError):
    """A hosted service answered with a non-2xx status or could not be reached."""

    def __init__(self, service: str, message: str, upstream_status: Optional[int] = None, body: str = ""):
        if upstream_status is not None:
            text = f"{service} error ({upstream_status}): {body or message}"
        else:
            text = f"{service} error: {message}"
        super().__init__(text)
        self.service = service
        self.upstream_status = upstream_status
        self.body = body


class UpstreamEmptyResponse(ProcessingError):
    """A hosted service answered 2xx but returned nothing usable."""


class ParsingTimeout(ProcessingError, TimeoutError):
    """The hosted parsing job did not finish within the polling cap."""


class FileSystemError(Exception):
    """Cleanup of a temporary file failed. Logged, never returned to the caller."""
