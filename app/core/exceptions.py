"""
Service exceptions.

Only terminal failures live here. SQL validation rejections, execution
failures and missing tables are tool outcomes fed back to the model and
never raised past the tool layer.
"""

from typing import Any


class SQLAgentError(Exception):
    """
    Base exception for all request-terminating errors.

    Translated to a `{"error", "message"}` JSON body by the API layer.
    """

    status_code: int = 500

    def __init__(self, message: str, code: str | None = None, details: dict[str, Any] | None = None):
        """
        Initialize the error.

        Args:
            message: Human-readable error message
            code: Machine-readable error kind (defaults to the class name)
            details: Additional context about the error
        """
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        body: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class AdmissionDeniedError(SQLAgentError):
    """Raised when the per-client rate limit is exceeded."""

    status_code = 429

    def __init__(self, retry_after_seconds: int):
        super().__init__(
            f"Too many requests. Please wait {retry_after_seconds} seconds before trying again.",
            code="RateLimitExceeded",
        )
        self.retry_after_seconds = retry_after_seconds

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["retry_after_seconds"] = self.retry_after_seconds
        return body


class TransportError(SQLAgentError):
    """A collaborator (language model or database) could not be reached."""


class DatabaseUnavailableError(TransportError):
    """The database could not be reached or the session failed to open."""


class UnknownToolError(SQLAgentError):
    """The model requested a tool outside the fixed registry."""

    def __init__(self, name: str):
        super().__init__(f"Unknown tool requested by the model: {name}", details={"tool": name})
        self.name = name
