"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class QobuzServerError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(QobuzServerError):
    """Raised for issues related to configuration loading or validation."""


class NoValidCredentialError(QobuzServerError):
    """Raised when no token in the configured pool passes validation."""


class EntitlementExhaustedError(QobuzServerError):
    """
    Raised when a freshly selected token still only yields a preview stream.
    """


class TransientAuthError(QobuzServerError):
    """Raised when the API rejects a token with 401 Unauthorized or 403 Forbidden."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class InvalidAppSecretError(QobuzServerError):
    """Raised when the app secret used to sign requests is rejected."""


class InvalidQualityError(QobuzServerError):
    """Raised when an invalid quality ID is requested."""


class NotStreamableError(QobuzServerError):
    """
    Raised when attempting to download an item that is not available for streaming.
    """


class CatalogError(QobuzServerError):
    """Raised when the catalog returns a payload that cannot be used."""


class TranscodeError(QobuzServerError):
    """Raised when ffmpeg cannot be started or exits with a non-zero code."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class AcquisitionError(QobuzServerError):
    """Raised when fetching or persisting a track fails on the network or disk."""


class FileIntegrityError(QobuzServerError):
    """Raised when a written file fails a post-transcode integrity check."""
