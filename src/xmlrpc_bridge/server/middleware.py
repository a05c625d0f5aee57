"""Handler middleware.

A middleware takes a handler function and returns a wrapped function with
the same calling convention:

    def audit(handler):
        @functools.wraps(handler)
        def wrapped(*args):
            record(args)
            return handler(*args)
        return wrapped

`compose_middleware` wraps every handler in a map. The leftmost middleware is
outermost, so for ``[a, b]`` a call runs a-pre, b-pre, handler, b-post,
a-post. Wrapping never changes a handler's doc or signature.
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from .registry import HandlerEntry, normalize_handlers

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]
Middleware = Callable[[Handler], Handler]


def compose_middleware(
    handlers: Mapping[str, Handler | HandlerEntry],
    middlewares: Sequence[Middleware],
) -> dict[str, HandlerEntry]:
    """Wrap every handler in ``handlers`` with ``middlewares``.

    Args:
        handlers: Method name -> handler function or HandlerEntry
        middlewares: Applied so that the first one is outermost

    Returns:
        A new handler map; the input map is not modified
    """
    wrapped: dict[str, HandlerEntry] = {}
    for name, entry in normalize_handlers(handlers).items():
        if entry.raw:
            wrapped[name] = entry
            continue
        func = entry.func
        for middleware in reversed(middlewares):
            func = middleware(func)
        wrapped[name] = entry.with_func(func)
    return wrapped


def _name(handler: Handler) -> str:
    return getattr(handler, "__qualname__", None) or getattr(handler, "__name__", repr(handler))


# =============================================================================
# Observers
# =============================================================================
# These never alter arguments or results.


def log_calls(handler: Handler) -> Handler:
    """Log each call's arguments and result at INFO."""
    name = _name(handler)

    @functools.wraps(handler)
    def wrapped(*args: Any) -> Any:
        logger.info(f"-> {name}{args!r}")
        result = handler(*args)
        logger.info(f"<- {name}: {result!r}")
        return result

    return wrapped


def time_calls(handler: Handler) -> Handler:
    """Log each call's wall-clock duration at INFO."""
    name = _name(handler)

    @functools.wraps(handler)
    def wrapped(*args: Any) -> Any:
        started = time.perf_counter()
        try:
            return handler(*args)
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(f"{name} took {elapsed_ms:.2f}ms")

    return wrapped


def log_exceptions(handler: Handler) -> Handler:
    """Log exceptions escaping the handler at ERROR, then re-raise them."""
    name = _name(handler)

    @functools.wraps(handler)
    def wrapped(*args: Any) -> Any:
        try:
            return handler(*args)
        except Exception as e:
            logger.error(f"{name} raised {type(e).__name__}: {e}")
            raise

    return wrapped
