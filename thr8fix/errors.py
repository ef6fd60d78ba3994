"""Error taxonomy for the remediation pipeline."""

from typing import Optional


class Thr8Error(Exception):
    """Base class for all thr8fix errors."""


class DecodeError(Thr8Error, ValueError):
    """LLM output could not be turned into JSON, even after repair."""


class ExternalServiceError(Thr8Error):
    """A call to the LLM provider or the source host failed or timed out."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class RefExistsError(ExternalServiceError):
    """The branch ref already exists on the host (HTTP 422 on create)."""
