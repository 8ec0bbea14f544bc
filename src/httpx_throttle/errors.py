"""Exceptions raised by the throttling layer."""

from typing import Any


class ThrottleError(Exception):
    """Base class for all throttling errors."""

    pass


class ConfigurationError(ThrottleError, ValueError):
    """Raised at attach time when throttle options are invalid."""

    pass


class InvalidLimiterType(ThrottleError, TypeError):
    """Raised when the configured rate limiter cannot be invoked."""

    def __init__(self, limiter: Any) -> None:
        self.limiter = limiter
        super().__init__(
            "rate_limiter must be an object with a hit() method, a registered "
            f"limiter name, or a function of one argument, got: {limiter!r}"
        )


class InvalidDecision(ThrottleError, TypeError):
    """Raised when a rate limiter returns something that is not a decision."""

    def __init__(self, value: Any, reason: str | None = None) -> None:
        self.value = value
        detail = reason or "expected Allow, Deny, ('allow', count) or ('deny', retry_after_ms)"
        super().__init__(f"Invalid rate limiter decision {value!r}: {detail}")


class RateLimitExceeded(ThrottleError):
    """
    Raised (or returned) when a request is denied by the rate limiter.

    Attributes:
        key: Throttling key the denial applies to
        retry_after_ms: Suggested delay before retrying, in milliseconds
    """

    def __init__(self, key: str | None = None, retry_after_ms: int | None = None) -> None:
        if key is None:
            raise ConfigurationError("RateLimitExceeded requires a key")
        if retry_after_ms is None:
            raise ConfigurationError("RateLimitExceeded requires retry_after_ms")

        self.key = key
        self.retry_after_ms = retry_after_ms
        super().__init__(
            f"Rate limit exceeded for key '{key}'. Retry after {retry_after_ms}ms"
        )

    @property
    def retry_after(self) -> float:
        """Suggested delay in seconds."""
        return self.retry_after_ms / 1000

    def __reduce__(self) -> tuple[Any, ...]:
        return (self.__class__, (self.key, self.retry_after_ms))
