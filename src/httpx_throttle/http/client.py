"""httpx integration: request hooks and throttled client wrappers."""

import logging
from typing import Any

import httpx

from httpx_throttle.config import load_settings
from httpx_throttle.engine import AdmissionEngine, ThrottleConfig, build_config
from httpx_throttle.keys import KeyStrategy
from httpx_throttle.limiter import LimiterRegistry

logger = logging.getLogger(__name__)


class ThrottleHook:
    """
    Request event hook for ``httpx.Client``.

    httpx calls the hook before each request is sent. A denied request
    raises RateLimitExceeded, which aborts the send and reaches the caller.
    """

    def __init__(self, config: ThrottleConfig) -> None:
        self._engine = AdmissionEngine(config)

    @property
    def engine(self) -> AdmissionEngine:
        return self._engine

    def __call__(self, request: httpx.Request) -> None:
        self._engine.attempt(request).raise_for_error()


class AsyncThrottleHook(ThrottleHook):
    """Request event hook for ``httpx.AsyncClient``."""

    async def __call__(self, request: httpx.Request) -> None:  # type: ignore[override]
        outcome = await self._engine.attempt_async(request)
        outcome.raise_for_error()


def attach(
    client: httpx.Client | httpx.AsyncClient,
    *,
    rate_limiter: Any = None,
    key_generator: Any = KeyStrategy.HOST,
    mode: Any = None,
    max_retries: int | None = None,
    registry: LimiterRegistry | None = None,
) -> httpx.Client | httpx.AsyncClient:
    """
    Attach rate limiting to an httpx client.

    Options are validated immediately, so misconfiguration fails here
    rather than on the first request.

    Args:
        client: httpx.Client or httpx.AsyncClient
        rate_limiter: Limiter handle, registered name, or one-argument function
        key_generator: "host", "path", "host_and_path", "url", a function,
            or a (target, args) delegate tuple
        mode: "block" (default) or "error"
        max_retries: Retries after the first denial in block mode (default 3)
        registry: Registry used to resolve limiter names

    Returns:
        The same client, for chaining

    Raises:
        ConfigurationError: If an option is missing or invalid
    """
    config = build_config(
        rate_limiter=rate_limiter,
        key_generator=key_generator,
        mode=mode,
        max_retries=max_retries,
        registry=registry,
    )

    hook: ThrottleHook
    if isinstance(client, httpx.AsyncClient):
        hook = AsyncThrottleHook(config)
    else:
        hook = ThrottleHook(config)

    hooks = client.event_hooks
    hooks["request"] = [*hooks.get("request", []), hook]
    # Reassign so httpx re-validates the hook mapping
    client.event_hooks = hooks

    logger.debug(
        f"Attached throttle to {type(client).__name__} "
        f"(mode={config.mode.value}, max_retries={config.max_retries})"
    )
    return client


def _default_timeout() -> httpx.Timeout:
    settings = load_settings()
    return httpx.Timeout(
        connect=settings.http_timeout_connect,
        read=settings.http_timeout_read,
        write=10.0,
        pool=10.0,
    )


class ThrottledHttpClient:
    """
    Async HTTP client with rate limiting applied before every request.

    Wraps an ``httpx.AsyncClient`` created on first use with the
    throttle hook already attached.
    """

    def __init__(
        self,
        rate_limiter: Any,
        base_url: str | None = None,
        timeout: httpx.Timeout | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        **throttle_options: Any,
    ) -> None:
        """
        Initialize the HTTP client.

        Args:
            rate_limiter: Limiter handle, registered name, or function
            base_url: Optional base URL for all requests
            timeout: Request timeout configuration
            headers: Default headers for all requests
            transport: Optional custom transport (e.g. for testing)
            **throttle_options: key_generator, mode, max_retries, registry
        """
        self._base_url = base_url
        self._timeout = timeout or _default_timeout()
        self._default_headers = headers or {}
        self._transport = transport
        # Validate eagerly so bad options fail at construction
        self._config = build_config(rate_limiter=rate_limiter, **throttle_options)
        self._client: httpx.AsyncClient | None = None

    @property
    def config(self) -> ThrottleConfig:
        return self._config

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url or "",
                timeout=self._timeout,
                headers=self._default_headers,
                follow_redirects=True,
                transport=self._transport,
                event_hooks={"request": [AsyncThrottleHook(self._config)]},
            )
        return self._client

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """
        Make a rate limited HTTP request.

        Raises:
            RateLimitExceeded: When the limiter denies the request
        """
        client = await self._get_client()
        return await client.request(method, url, **kwargs)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def json(self, method: str, url: str, payload: Any = None, **kwargs: Any) -> Any:
        """
        Make a rate limited request and decode the JSON body.

        Args:
            method: HTTP method
            url: Request URL
            payload: Optional JSON body

        Raises:
            RateLimitExceeded: When the limiter denies the request
            httpx.HTTPStatusError: For error responses
        """
        if payload is not None:
            kwargs["json"] = payload
        response = await self.request(method, url, **kwargs)
        response.raise_for_status()
        return response.json()

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            logger.debug("Throttled async client closed")
        self._client = None

    async def __aenter__(self) -> "ThrottledHttpClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


class SyncThrottledHttpClient:
    """
    Synchronous counterpart of ThrottledHttpClient.

    Waiting in block mode blocks the calling thread only.
    """

    def __init__(
        self,
        rate_limiter: Any,
        base_url: str | None = None,
        timeout: httpx.Timeout | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
        **throttle_options: Any,
    ) -> None:
        """Initialize the sync HTTP client."""
        self._base_url = base_url
        self._timeout = timeout or _default_timeout()
        self._default_headers = headers or {}
        self._transport = transport
        self._config = build_config(rate_limiter=rate_limiter, **throttle_options)
        self._client: httpx.Client | None = None

    @property
    def config(self) -> ThrottleConfig:
        return self._config

    def _get_client(self) -> httpx.Client:
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                base_url=self._base_url or "",
                timeout=self._timeout,
                headers=self._default_headers,
                follow_redirects=True,
                transport=self._transport,
                event_hooks={"request": [ThrottleHook(self._config)]},
            )
        return self._client

    def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Make a rate limited HTTP request."""
        return self._get_client().request(method, url, **kwargs)

    def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return self.request("GET", url, **kwargs)

    def json(self, method: str, url: str, payload: Any = None, **kwargs: Any) -> Any:
        """Make a rate limited request and decode the JSON body."""
        if payload is not None:
            kwargs["json"] = payload
        response = self.request(method, url, **kwargs)
        response.raise_for_status()
        return response.json()

    def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            logger.debug("Throttled client closed")
        self._client = None

    def __enter__(self) -> "SyncThrottledHttpClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
