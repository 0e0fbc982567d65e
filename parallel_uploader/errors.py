"""
Error taxonomy for parallel uploads.

Every failure raised or reported by the package derives from UploadError so
callers can catch one type at the top level.
"""
from typing import Dict, Optional


class UploadError(Exception):
    """Base class for upload failures."""


class InvalidArgumentError(UploadError, ValueError):
    """Raised for invalid partition requests or configuration values."""


class LocalIOError(UploadError):
    """Raised when the local file cannot be opened, positioned or read."""


class TransportError(UploadError):
    """Network failure, timeout or non-success HTTP status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProtocolError(UploadError):
    """Response is missing fields the protocol requires."""


class UploadCancelledError(UploadError):
    """Stream abandoned because the upload was cancelled."""


class ParallelWriteError(UploadError):
    """
    Aggregated failure of a parallel upload.

    Names every failed stream with its cause and, when the session could not be
    closed, the close failure as well.
    """

    def __init__(
        self,
        failures: Dict[int, UploadError],
        close_error: Optional[UploadError] = None,
    ):
        self.failures = dict(failures)
        self.close_error = close_error
        super().__init__(self._describe())

    def _describe(self) -> str:
        parts = [
            f"stream {index}: {error}"
            for index, error in sorted(self.failures.items())
        ]
        if self.close_error is not None:
            parts.append(f"session close: {self.close_error}")
        if not parts:
            return "parallel write failed"
        return "parallel write failed (" + "; ".join(parts) + ")"
