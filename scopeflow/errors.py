"""
Domain errors raised by ScopeFlow services.

Each error carries the HTTP status it maps to and a client-safe message.
Handlers in ``scopeflow.web.errors`` turn them into JSON responses.
"""

from typing import Any, Optional


class ScopeFlowError(Exception):
    """Base class for errors with a client-facing representation."""

    status_code: int = 500
    public_message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message
        self.details = details


class ValidationError(ScopeFlowError):
    """Malformed or oversized input."""

    status_code = 400
    public_message = "Invalid request data"


class AuthenticationError(ScopeFlowError):
    """No usable identity on the request."""

    status_code = 401
    public_message = "Unauthorized"


class NotFoundError(ScopeFlowError):
    """Missing session, timeline, project, proposal or change order."""

    status_code = 404
    public_message = "Not found"


class AccessDeniedError(NotFoundError):
    """The resource exists but the caller may not access it."""

    status_code = 403
    public_message = "Forbidden"


class ConflictError(ScopeFlowError):
    """The operation would violate a uniqueness or state rule."""

    status_code = 400
    public_message = "Conflict"


class FormClosedError(ScopeFlowError):
    """The intake form was already submitted."""

    status_code = 410
    public_message = "This form has already been submitted"


# ==================== COMPLETION SERVICE ====================

class CompletionError(ScopeFlowError):
    """Base class for completion-service failures."""

    status_code = 500
    public_message = "Failed to process chat message"


class CompletionServiceError(CompletionError):
    """Connection failure or unexpected upstream error."""


class CompletionRateLimitedError(CompletionError):
    """The provider rejected the request with a rate limit."""

    status_code = 429
    public_message = "The AI service is receiving too many requests. Please try again later."

    def __init__(self, message: Optional[str] = None, retry_after: Optional[int] = None):
        super().__init__(message)
        self.retry_after = retry_after


class CompletionOverloadedError(CompletionError):
    """The provider is overloaded or temporarily unavailable."""

    status_code = 503
    public_message = "The AI service is currently overloaded. Please try again in a few moments."


class CompletionTimeoutError(CompletionOverloadedError):
    """The provider did not answer within the request timeout."""

    public_message = "The AI service took too long to respond. Please try again in a few moments."


class CompletionUnavailableError(CompletionOverloadedError):
    """No completion service is configured."""

    public_message = "AI service is not configured. Please contact support."
