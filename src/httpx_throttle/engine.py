"""
Admission engine: decides whether an outgoing request may proceed.

For each request the engine resolves a throttling key, asks the rate
limiter for a decision and applies the configured mode on denial:

- ``block`` (default) - Sleep for the limiter's suggested delay and ask
  again, up to ``max_retries`` times
- ``error`` - Return a RateLimitExceeded immediately
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

from httpx_throttle.config import load_settings
from httpx_throttle.errors import ConfigurationError, RateLimitExceeded
from httpx_throttle.keys import KeyGenerator, KeyStrategy, resolve_key, resolve_key_generator
from httpx_throttle.limiter import Allow, Deny, LimiterGateway, LimiterRegistry

logger = logging.getLogger(__name__)

_MISSING: Any = object()


class ThrottleMode(str, Enum):
    """What to do when the rate limiter denies a request."""

    BLOCK = "block"
    ERROR = "error"


@dataclass(frozen=True)
class ThrottleConfig:
    """Validated throttle options for one attachment."""

    key_generator: KeyGenerator
    gateway: LimiterGateway
    mode: ThrottleMode = ThrottleMode.BLOCK
    max_retries: int = 3


def _parse_mode(mode: Any) -> ThrottleMode:
    try:
        return ThrottleMode(mode)
    except ValueError:
        allowed = [m.value for m in ThrottleMode]
        raise ConfigurationError(f"mode must be one of {allowed}, got: {mode!r}") from None


def build_config(
    rate_limiter: Any = _MISSING,
    key_generator: Any = KeyStrategy.HOST,
    mode: Any = None,
    max_retries: Any = None,
    registry: LimiterRegistry | None = None,
) -> ThrottleConfig:
    """
    Validate throttle options and build a ThrottleConfig.

    Args:
        rate_limiter: Limiter handle, registered name, or one-argument function
        key_generator: Key strategy name, function, or (target, args) delegate
        mode: "block" or "error" (defaults to settings)
        max_retries: Retries after the first denial in block mode
            (defaults to settings)
        registry: Registry used to resolve limiter names

    Returns:
        ThrottleConfig

    Raises:
        ConfigurationError: If any option is missing or invalid
    """
    if rate_limiter is _MISSING or rate_limiter is None:
        raise ConfigurationError("rate_limiter is required")

    settings = load_settings()
    resolved_mode = _parse_mode(settings.default_mode if mode is None else mode)

    if max_retries is None:
        max_retries = settings.default_max_retries
    if isinstance(max_retries, bool) or not isinstance(max_retries, int) or max_retries < 0:
        raise ConfigurationError(
            f"max_retries must be a non-negative integer, got: {max_retries!r}"
        )

    return ThrottleConfig(
        key_generator=resolve_key_generator(key_generator),
        gateway=LimiterGateway(rate_limiter, registry=registry),
        mode=resolved_mode,
        max_retries=max_retries,
    )


@dataclass(frozen=True)
class ThrottleOutcome:
    """Result of an admission attempt."""

    key: str
    """Throttling key the request was evaluated against."""

    attempts: int
    """Number of limiter evaluations made."""

    waited_ms: int = 0
    """Total time spent sleeping between evaluations."""

    error: RateLimitExceeded | None = None
    """Set when the request was denied."""

    @property
    def allowed(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        """Raise the RateLimitExceeded if the request was denied."""
        if self.error is not None:
            raise self.error


class AdmissionEngine:
    """
    Runs the allow / deny / wait-and-retry loop for requests.

    The engine holds no mutable state; all counting lives in the limiter,
    so one engine can serve concurrent requests.
    """

    def __init__(self, config: ThrottleConfig) -> None:
        self._config = config

    @property
    def config(self) -> ThrottleConfig:
        return self._config

    def _denied(self, key: str, retry_after_ms: int, attempts: int, waited_ms: int) -> ThrottleOutcome:
        logger.info(
            f"Rate limit exceeded for '{key}' after {attempts} attempt(s). "
            f"Retry after {retry_after_ms}ms"
        )
        return ThrottleOutcome(
            key=key,
            attempts=attempts,
            waited_ms=waited_ms,
            error=RateLimitExceeded(key=key, retry_after_ms=retry_after_ms),
        )

    def _should_wait(self, key: str, decision: Deny, retries_left: int) -> bool:
        if self._config.mode is ThrottleMode.ERROR or retries_left <= 0:
            return False
        logger.warning(
            f"Rate limited on '{key}'. Waiting {decision.retry_after_ms}ms "
            f"({retries_left} retries left)"
        )
        return True

    def attempt(self, request: Any) -> ThrottleOutcome:
        """
        Admit a request, blocking the calling thread while waiting.

        Args:
            request: Outgoing request (only read)

        Returns:
            ThrottleOutcome; ``error`` is set if the request was denied
        """
        key = resolve_key(request, self._config.key_generator)
        retries_left = self._config.max_retries
        attempts = 0
        waited_ms = 0

        while True:
            decision = self._config.gateway.evaluate(key)
            attempts += 1

            if isinstance(decision, Allow):
                logger.debug(f"Request allowed for '{key}' (count={decision.count})")
                return ThrottleOutcome(key=key, attempts=attempts, waited_ms=waited_ms)

            if not self._should_wait(key, decision, retries_left):
                return self._denied(key, decision.retry_after_ms, attempts, waited_ms)

            time.sleep(decision.retry_after_ms / 1000)
            waited_ms += decision.retry_after_ms
            retries_left -= 1

    async def attempt_async(self, request: Any) -> ThrottleOutcome:
        """
        Admit a request, suspending only the current task while waiting.

        Cancelling the task interrupts the wait; the limiter is not asked
        again.
        """
        key = resolve_key(request, self._config.key_generator)
        retries_left = self._config.max_retries
        attempts = 0
        waited_ms = 0

        while True:
            decision = await self._config.gateway.aevaluate(key)
            attempts += 1

            if isinstance(decision, Allow):
                logger.debug(f"Request allowed for '{key}' (count={decision.count})")
                return ThrottleOutcome(key=key, attempts=attempts, waited_ms=waited_ms)

            if not self._should_wait(key, decision, retries_left):
                return self._denied(key, decision.retry_after_ms, attempts, waited_ms)

            await asyncio.sleep(decision.retry_after_ms / 1000)
            waited_ms += decision.retry_after_ms
            retries_left -= 1
