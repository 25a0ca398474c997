"""Custom exception types for the swipe inbox core.

Exceptions are raised only at I/O seams (config loading, provider adapters,
rate limiting). The engines convert them into result values so callers can
always present an outcome to the user.

Error messages follow one standard:
- What failed (specific operation or component)
- Why it failed (the specific condition)
- How to fix it (actionable guidance)
"""


class SwipeError(Exception):
    """Base exception for all swipe errors."""

    pass


class ConfigValidationError(SwipeError):
    """Raised when config.yaml fails Pydantic validation.

    Includes specific field errors with actionable messages.
    """

    pass


class ConfigLoadError(SwipeError):
    """Raised when config.yaml cannot be loaded (file not found, YAML parse error)."""

    pass


class ProviderError(SwipeError):
    """Raised by a provider adapter when a mail API call fails.

    Attributes:
        operation: Provider operation that failed (e.g. 'trash', 'create_filter')
        status_code: HTTP status code from the provider API (if available)
        error_code: Provider-specific error code (if available)
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        status_code: int | None = None,
        error_code: str | None = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.status_code = status_code
        self.error_code = error_code


class RateLimitExceeded(SwipeError):
    """Raised when the provider rate limiter would need an excessive wait.

    The limiter refuses rather than blocking indefinitely when the wait
    exceeds its configured ceiling.
    """

    pass
