"""
Custom exceptions for the HLS snapshot pipeline.
"""

from typing import Optional


class PipelineError(Exception):
    """Base exception for all pipeline errors."""
    pass


class ConfigurationError(PipelineError):
    """Raised when configuration is invalid or missing."""
    pass


class CaptureError(PipelineError):
    """Raised when a capture attempt fails before a frame is written."""
    pass


class TransportError(CaptureError):
    """Raised when an HTTP request fails at the network level."""
    pass


class HTTPStatusError(CaptureError):
    """Raised when a stream endpoint answers with a non-200 status."""

    def __init__(self, status: int, url: str, message: Optional[str] = None):
        super().__init__(message or f"Invalid status code {status} for {url}")
        self.status = status
        self.url = url


class PlaylistFormatError(CaptureError):
    """Raised when a playlist is not a usable media playlist."""
    pass


class ExtractionError(CaptureError):
    """Raised when FFmpeg cannot produce a frame."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class FilesystemError(PipelineError):
    """Raised when frame directories or files cannot be written."""
    pass
