"""httpx client integration."""

from httpx_throttle.http.client import (
    AsyncThrottleHook,
    SyncThrottledHttpClient,
    ThrottledHttpClient,
    ThrottleHook,
    attach,
)

__all__ = [
    "AsyncThrottleHook",
    "SyncThrottledHttpClient",
    "ThrottleHook",
    "ThrottledHttpClient",
    "attach",
]
