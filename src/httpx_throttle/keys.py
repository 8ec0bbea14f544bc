"""
Throttling key generators.

A key generator maps an outgoing request to the name of the rate limit
bucket it counts against. Built-in generators can be selected by name;
any one-argument function, or a ``(target, args)`` delegate, can be used
instead.
"""

from __future__ import annotations

import importlib
import logging
from enum import Enum
from typing import Any, Callable

import httpx

from httpx_throttle.callables import accepts_positional, describe
from httpx_throttle.errors import ConfigurationError

logger = logging.getLogger(__name__)

KeyGenerator = Callable[[Any], str]

UNKNOWN_HOST = "unknown"
ROOT_PATH = "/"


def _request_url(request: Any) -> httpx.URL | None:
    """Extract the request URL, or None if it is missing or unparsable."""
    url = getattr(request, "url", None)
    if url is None:
        return None
    if isinstance(url, httpx.URL):
        return url
    try:
        return httpx.URL(str(url))
    except (httpx.InvalidURL, TypeError, ValueError):
        return None


def key_by_host(request: Any) -> str:
    """Key generator that uses the request host."""
    url = _request_url(request)
    if url is None or not url.host:
        return UNKNOWN_HOST
    return url.host


def key_by_path(request: Any) -> str:
    """Key generator that uses the request path."""
    url = _request_url(request)
    if url is None or not url.path:
        return ROOT_PATH
    return url.path


def key_by_host_and_path(request: Any) -> str:
    """Key generator that uses host and path."""
    return f"{key_by_host(request)}{key_by_path(request)}"


def key_by_url(request: Any) -> str:
    """Key generator that uses the full normalized URL."""
    url = _request_url(request)
    if url is None:
        return UNKNOWN_HOST
    return str(url)


class KeyStrategy(str, Enum):
    """Built-in key generation strategies."""

    HOST = "host"
    PATH = "path"
    HOST_AND_PATH = "host_and_path"
    URL = "url"


BUILTIN_KEY_GENERATORS: dict[KeyStrategy, KeyGenerator] = {
    KeyStrategy.HOST: key_by_host,
    KeyStrategy.PATH: key_by_path,
    KeyStrategy.HOST_AND_PATH: key_by_host_and_path,
    KeyStrategy.URL: key_by_url,
}


def _import_target(path: str) -> Callable[..., Any]:
    """
    Import a function from a dotted path.

    Both ``"package.module:function"`` and ``"package.module.function"``
    are accepted.
    """
    if ":" in path:
        module_name, _, attr_path = path.partition(":")
    else:
        module_name, _, attr_path = path.rpartition(".")

    if not module_name or not attr_path:
        raise ConfigurationError(f"key_generator target must be a dotted path, got: {path!r}")

    try:
        target: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import key_generator module {module_name!r}: {e}") from e

    for attr in attr_path.split("."):
        try:
            target = getattr(target, attr)
        except AttributeError as e:
            raise ConfigurationError(
                f"Module {module_name!r} has no attribute {attr_path!r}"
            ) from e

    if not callable(target):
        raise ConfigurationError(f"key_generator target {path!r} is not callable")
    return target


def _delegate(option: tuple[Any, ...]) -> KeyGenerator:
    """Build a generator from a ``(target, args)`` or ``(target, *args)`` tuple."""
    target, *rest = option
    if len(rest) == 1 and isinstance(rest[0], (list, tuple)):
        extra_args = tuple(rest[0])
    else:
        extra_args = tuple(rest)

    if isinstance(target, str):
        target = _import_target(target)
    elif not callable(target):
        raise ConfigurationError(
            f"key_generator delegate target must be callable or a dotted path, got: {target!r}"
        )

    if not accepts_positional(target, 1 + len(extra_args)):
        raise ConfigurationError(
            f"key_generator delegate {describe(target)} cannot be called with "
            f"a request and {len(extra_args)} extra argument(s)"
        )

    def generator(request: Any) -> str:
        return target(request, *extra_args)

    generator.__qualname__ = f"delegate({describe(target)})"
    return generator


def resolve_key_generator(option: Any = KeyStrategy.HOST) -> KeyGenerator:
    """
    Turn a key generator option into a one-argument function.

    Args:
        option: A :class:`KeyStrategy` (or its name), a function of one
            argument, or a ``(target, args)`` delegate tuple

    Returns:
        Function mapping a request to a throttling key

    Raises:
        ConfigurationError: If the option is not a valid key generator
    """
    if isinstance(option, str):
        try:
            return BUILTIN_KEY_GENERATORS[KeyStrategy(option)]
        except ValueError:
            allowed = [s.value for s in KeyStrategy]
            raise ConfigurationError(
                f"key_generator name must be one of {allowed}, got: {option!r}"
            ) from None

    if isinstance(option, tuple) and option:
        return _delegate(option)

    if callable(option):
        if not accepts_positional(option, 1):
            raise ConfigurationError(
                f"key_generator function {describe(option)} must accept a single request argument"
            )
        return option

    raise ConfigurationError(
        f"key_generator must be a strategy name, a function, or a (target, args) tuple, got: {option!r}"
    )


def resolve_key(request: Any, generator: KeyGenerator) -> str:
    """Generate the throttling key for ``request``."""
    key = generator(request)
    return key if isinstance(key, str) else str(key)
