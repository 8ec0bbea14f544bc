"""Helpers for checking how a callable can be invoked."""

import inspect
from typing import Any, Callable


def accepts_positional(func: Callable[..., Any], count: int) -> bool:
    """
    Check whether ``func`` can be called with ``count`` positional arguments.

    Callables whose signature cannot be introspected (some builtins and
    C extensions) are given the benefit of the doubt.
    """
    if not callable(func):
        return False
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return True
    try:
        signature.bind(*([None] * count))
    except TypeError:
        return False
    return True


def describe(func: Any) -> str:
    """Readable name for a callable, used in error messages."""
    module = getattr(func, "__module__", None)
    name = getattr(func, "__qualname__", None) or getattr(func, "__name__", None)
    if module and name:
        return f"{module}.{name}"
    return repr(func)
