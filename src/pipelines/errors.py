"""
Error types shared by the generation pipelines.

Every failure a pipeline can raise derives from PipelineError and carries the
HTTP status code the server adapter should use when it is surfaced.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for pipeline failures."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ClientInputError(PipelineError):
    """Missing or invalid request input. Raised before any provider call."""

    status_code = 400


class ConfigurationError(PipelineError):
    """A required setting (usually a provider API key) is missing."""

    status_code = 500


class ProviderError(PipelineError):
    """Non-success status, transport failure or malformed body from a provider."""

    status_code = 502

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None
    ):
        super().__init__(message)
        # HTTP status returned by the provider, not the one we answer with
        self.provider_status = status_code
        self.body = body


class JobFailedError(ProviderError):
    """The provider reported the asynchronous job as FAILED."""


class GenerationTimeoutError(PipelineError):
    """Polling attempts were exhausted without a usable result."""

    status_code = 504

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts
