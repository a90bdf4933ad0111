"""
Domain exceptions.
"""


class GatewayError(Exception):
    """Base class for all gateway errors."""


class RemoteOperationError(GatewayError):
    """
    Raised by a dispatch collaborator when a call to LIDER or ETA fails.

    Attributes:
        target: Target domain or URL of the failed call.
        status_code: HTTP status returned by the remote side, if any.
    """

    def __init__(
        self,
        message: str,
        target: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.target = target
        self.status_code = status_code


class SerializationError(GatewayError):
    """Raised when a job payload cannot be serialized to compute its id."""


class RetriesExhausted(GatewayError):
    """Terminal condition for a job whose retry budget ran out."""

    def __init__(self, job_id: str, last_error: str | None = None):
        super().__init__(f"Retries exhausted for job {job_id}: {last_error}")
        self.job_id = job_id
        self.last_error = last_error


class AuthenticationError(GatewayError):
    """Raised when credentials are missing, malformed or rejected."""
