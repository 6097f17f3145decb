"""Error taxonomy shared by every installer stage.

Retryable kinds (``NetworkError``, ``IntegrityError``) are caught by the executor
and only escape a task wrapped in ``RetryExhausted``. Everything else is terminal.
"""
import pathlib
from typing import Optional


class InstallError(Exception):
    """Root of all errors raised by the installer."""


class NetworkError(InstallError):
    """Transport failure, timeout or non-success HTTP status."""

    def __init__(self, url: str, message: str, status: Optional[int] = None):
        super().__init__(f"{message} ({url})")
        self.url = url
        self.status = status


class IntegrityError(InstallError):
    """Whole-file digest does not match the declared one."""

    def __init__(self, path: pathlib.Path, expected: str, actual: Optional[str]):
        super().__init__(f"SHA1 mismatch for {path.name}. Expected {expected}, got {actual}")
        self.path = path
        self.expected = expected
        self.actual = actual


class RetryExhausted(InstallError):
    """A task hit the attempt cap without verifying."""

    def __init__(self, artifact: str, attempts: int, cause: Optional[Exception] = None):
        message = f"{artifact} failed after {attempts} attempts"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
        self.artifact = artifact
        self.attempts = attempts
        self.cause = cause


class ManifestError(InstallError):
    """Malformed or incomplete metadata document."""


class UnsupportedModloader(InstallError):
    """The selected modloader has no implementation."""


class IoError(InstallError):
    """Local filesystem failure while reading or writing."""
