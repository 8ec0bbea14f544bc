"""Pytest configuration and fixtures."""

from collections.abc import Generator, Iterable

import httpx
import pytest

from httpx_throttle.config import get_settings
from httpx_throttle.limiter import Allow, Decision, Deny, LimiterRegistry, RateLimiter


class ScriptedLimiter(RateLimiter):
    """
    Rate limiter that replays a scripted sequence of decisions.

    Once the script is exhausted every hit returns ``default``.
    Keys passed to hit() are recorded for assertions.
    """

    def __init__(
        self,
        decisions: Iterable[Decision] = (),
        default: Decision = Allow(count=1),
    ) -> None:
        self._script = list(decisions)
        self.default = default
        self.keys: list[str] = []

    @property
    def calls(self) -> int:
        return len(self.keys)

    def hit(self, key: str) -> Decision:
        self.keys.append(key)
        if self._script:
            return self._script.pop(0)
        return self.default

    @classmethod
    def allowing(cls) -> "ScriptedLimiter":
        return cls()

    @classmethod
    def denying(cls, retry_after_ms: int = 50) -> "ScriptedLimiter":
        return cls(default=Deny(retry_after_ms=retry_after_ms))

    @classmethod
    def deny_then_allow(cls, times: int, retry_after_ms: int = 50) -> "ScriptedLimiter":
        return cls([Deny(retry_after_ms=retry_after_ms)] * times)


@pytest.fixture
def allow_limiter() -> ScriptedLimiter:
    """Limiter that always allows."""
    return ScriptedLimiter.allowing()


@pytest.fixture
def deny_limiter() -> ScriptedLimiter:
    """Limiter that always denies with a 50ms delay."""
    return ScriptedLimiter.denying(50)


@pytest.fixture
def registry() -> LimiterRegistry:
    """Fresh, empty limiter registry."""
    return LimiterRegistry()


@pytest.fixture
def api_request() -> httpx.Request:
    """A typical outgoing request."""
    return httpx.Request("GET", "https://example.com/api/users?page=1")


@pytest.fixture
def sent_requests() -> list[httpx.Request]:
    """Requests that reached the mock transport."""
    return []


@pytest.fixture
def mock_transport(sent_requests: list[httpx.Request]) -> httpx.MockTransport:
    """Transport answering 200 OK without touching the network."""

    def handler(request: httpx.Request) -> httpx.Response:
        sent_requests.append(request)
        return httpx.Response(200, json={"status": "ok"})

    return httpx.MockTransport(handler)


@pytest.fixture(autouse=True)
def reset_settings() -> Generator[None, None, None]:
    """Make sure environment changes made by a test do not leak."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
