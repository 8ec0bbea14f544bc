"""
Rate limiting for outgoing httpx requests.

Attach a throttle to a client with a pluggable rate limiter that answers
``hit(key)`` with Allow or Deny. Denied requests either wait and retry
(block mode) or fail immediately with RateLimitExceeded (error mode).
"""

from httpx_throttle.engine import (
    AdmissionEngine,
    ThrottleConfig,
    ThrottleMode,
    ThrottleOutcome,
    build_config,
)
from httpx_throttle.errors import (
    ConfigurationError,
    InvalidDecision,
    InvalidLimiterType,
    RateLimitExceeded,
    ThrottleError,
)
from httpx_throttle.http import (
    AsyncThrottleHook,
    SyncThrottledHttpClient,
    ThrottledHttpClient,
    ThrottleHook,
    attach,
)
from httpx_throttle.keys import (
    KeyStrategy,
    key_by_host,
    key_by_host_and_path,
    key_by_path,
    key_by_url,
    resolve_key_generator,
)
from httpx_throttle.limiter import (
    Allow,
    Decision,
    Deny,
    LimiterGateway,
    LimiterRegistry,
    RateLimiter,
    default_registry,
)

__version__ = "0.1.0"
__all__ = [
    "AdmissionEngine",
    "Allow",
    "AsyncThrottleHook",
    "ConfigurationError",
    "Decision",
    "Deny",
    "InvalidDecision",
    "InvalidLimiterType",
    "KeyStrategy",
    "LimiterGateway",
    "LimiterRegistry",
    "RateLimitExceeded",
    "RateLimiter",
    "SyncThrottledHttpClient",
    "ThrottleConfig",
    "ThrottleError",
    "ThrottleHook",
    "ThrottleMode",
    "ThrottleOutcome",
    "ThrottledHttpClient",
    "attach",
    "build_config",
    "default_registry",
    "key_by_host",
    "key_by_host_and_path",
    "key_by_path",
    "key_by_url",
    "resolve_key_generator",
]
