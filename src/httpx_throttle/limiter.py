"""
Rate limiter contract and invocation gateway.

A rate limiter is anything that answers ``hit(key)`` with a decision:

- An object (or class) exposing a ``hit`` method, typically a subclass of
  :class:`RateLimiter`
- The name of a limiter registered in a :class:`LimiterRegistry`
- A plain function of one argument

Limiters own all counting, storage and concurrency safety. The gateway only
invokes them and normalizes what they return.
"""

from __future__ import annotations

import inspect
import logging
import math
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Union

from httpx_throttle.callables import accepts_positional
from httpx_throttle.errors import InvalidDecision, InvalidLimiterType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Allow:
    """The limiter admitted the request."""

    count: int = 0
    """Limiter bookkeeping value (informational only)."""


@dataclass(frozen=True)
class Deny:
    """The limiter rejected the request."""

    retry_after_ms: int
    """Suggested delay before retrying, in milliseconds."""

    def __post_init__(self) -> None:
        if isinstance(self.retry_after_ms, bool) or not isinstance(
            self.retry_after_ms, (int, float)
        ):
            raise InvalidDecision(self, "retry_after_ms must be a number")
        if not math.isfinite(self.retry_after_ms):
            raise InvalidDecision(self, "retry_after_ms must be finite")
        if self.retry_after_ms < 0:
            raise InvalidDecision(self, "retry_after_ms must be non-negative")


Decision = Union[Allow, Deny]


def coerce_decision(value: Any) -> Decision:
    """
    Normalize a limiter result into an :class:`Allow` or :class:`Deny`.

    Besides the dataclasses themselves, the tuple forms ``("allow", count)``
    and ``("deny", retry_after_ms)`` are accepted.

    Raises:
        InvalidDecision: If the value is not a recognizable decision
    """
    if isinstance(value, (Allow, Deny)):
        return value

    if isinstance(value, tuple) and len(value) == 2 and isinstance(value[0], str):
        tag, payload = value
        tag = tag.lower()
        if tag == "allow":
            return Allow(count=payload)
        if tag == "deny":
            return Deny(retry_after_ms=payload)

    raise InvalidDecision(value)


class RateLimiter(ABC):
    """
    Abstract base class for rate limiter handles.

    Subclassing is optional: any object with a ``hit(key)`` method
    is accepted as a handle.
    """

    @abstractmethod
    def hit(self, key: str) -> Decision:
        """
        Record a request against ``key`` and decide whether it may proceed.

        Args:
            key: Throttling key identifying the rate limit bucket

        Returns:
            Allow or Deny
        """
        ...


class LimiterRegistry:
    """
    Named rate limiter handles shared across a process.

    The registry only stores references; limiters are created, started and
    stopped by their owners.
    """

    def __init__(self) -> None:
        self._limiters: dict[str, Any] = {}
        self._lock = threading.Lock()

    def register(self, name: str, limiter: Any) -> None:
        """Register (or replace) a limiter under ``name``."""
        with self._lock:
            self._limiters[name] = limiter
        logger.debug(f"Registered rate limiter '{name}'")

    def unregister(self, name: str) -> bool:
        """Remove a limiter. Returns True if it was registered."""
        with self._lock:
            return self._limiters.pop(name, None) is not None

    def get(self, name: str) -> Any | None:
        """Look up a limiter by name."""
        with self._lock:
            return self._limiters.get(name)

    def clear(self) -> None:
        with self._lock:
            self._limiters.clear()

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._limiters

    def __len__(self) -> int:
        with self._lock:
            return len(self._limiters)


# Default registry instance
default_registry = LimiterRegistry()


def _has_hit(limiter: Any) -> bool:
    return accepts_positional(getattr(limiter, "hit", None), 1)


class LimiterGateway:
    """
    Uniform invocation of a rate limiter.

    The shape of the limiter is inspected once, when the gateway is built,
    and turned into a single invocation function. An unusable limiter is not
    rejected here: the invocation function raises :class:`InvalidLimiterType`
    the first time it is evaluated.
    """

    def __init__(self, limiter: Any, registry: LimiterRegistry | None = None) -> None:
        """
        Initialize the gateway.

        Args:
            limiter: Handle, registered name, or one-argument function
            registry: Registry used to resolve names (defaults to the
                process-wide registry)
        """
        self._limiter = limiter
        self._registry = registry if registry is not None else default_registry
        self._invoke = self._build_invoker(limiter)

    @property
    def limiter(self) -> Any:
        return self._limiter

    def _build_invoker(self, limiter: Any) -> Callable[[str], Any]:
        if _has_hit(limiter):
            return limiter.hit

        if isinstance(limiter, str):
            return self._invoke_named

        # A hit() that cannot take a key, such as an instance method looked
        # up on the limiter class, rules out calling the object directly
        has_unusable_hit = callable(getattr(limiter, "hit", None))
        if callable(limiter) and not has_unusable_hit and accepts_positional(limiter, 1):
            return limiter

        def invalid(key: str) -> Any:
            raise InvalidLimiterType(limiter)

        return invalid

    def _invoke_named(self, key: str) -> Any:
        target = self._registry.get(self._limiter)
        if target is None or not _has_hit(target):
            raise InvalidLimiterType(self._limiter)
        return target.hit(key)

    def evaluate(self, key: str) -> Decision:
        """
        Ask the limiter for a decision on ``key``.

        Exactly one limiter call is made. Errors raised by the limiter
        propagate unchanged.

        Raises:
            InvalidLimiterType: If the limiter cannot be invoked
            InvalidDecision: If the limiter returned something unusable
        """
        result = self._invoke(key)
        if inspect.isawaitable(result):
            # Sync callers cannot await; close the coroutine to avoid a warning
            close = getattr(result, "close", None)
            if close is not None:
                close()
            raise InvalidDecision(
                result, "asynchronous limiters require an async client"
            )
        return coerce_decision(result)

    async def aevaluate(self, key: str) -> Decision:
        """Async variant of :meth:`evaluate`, awaiting async limiters."""
        result = self._invoke(key)
        if inspect.isawaitable(result):
            result = await result
        return coerce_decision(result)

    def __repr__(self) -> str:
        return f"LimiterGateway({self._limiter!r})"
