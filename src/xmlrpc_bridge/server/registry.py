"""Handler registry with atomic runtime replacement.

The registry holds the live ``method name -> HandlerEntry`` mapping as an
immutable snapshot. Writers serialise on a lock, build a complete new
mapping and publish it with a single reference assignment; readers take one
reference and never see a partially updated mapping.

While a request is being dispatched its snapshot is pinned to the current
context, so everything the request touches (the handler itself,
introspection, every item of a multicall) resolves against the same mapping
even if the registry is swapped mid-request.
"""

from __future__ import annotations

import importlib
import inspect
import logging
import threading
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType, ModuleType
from typing import Any

from ..errors import ConfigError

logger = logging.getLogger(__name__)

HandlerSnapshot = Mapping[str, "HandlerEntry"]

_pinned: ContextVar[tuple[HandlerRegistry, HandlerSnapshot] | None] = ContextVar(
    "xmlrpc_bridge_pinned_handlers", default=None
)


@dataclass(frozen=True)
class HandlerEntry:
    """A callable bound to a method name, with introspection metadata.

    ``signature`` is a list of signatures, each a list of XML-RPC type names
    with the return type first, e.g. ``[["int", "int", "int"]]``. A ``raw``
    handler bypasses coercion: it receives WireValues and returns a WireValue.
    """

    func: Callable[..., Any]
    doc: str | None = None
    signature: list[list[str]] | None = None
    raw: bool = False

    def __call__(self, *args: Any) -> Any:
        return self.func(*args)

    def with_func(self, func: Callable[..., Any]) -> HandlerEntry:
        """Same metadata, different callable."""
        return replace(self, func=func)

    @classmethod
    def of(cls, handler: Callable[..., Any] | HandlerEntry) -> HandlerEntry:
        """Wrap a plain callable, reading metadata left by ``rpc_method``."""
        if isinstance(handler, HandlerEntry):
            return handler
        if not callable(handler):
            raise ConfigError(f"Handler must be callable, got {type(handler).__name__}")
        doc = getattr(handler, "__rpc_doc__", None) or inspect.getdoc(handler)
        signature = getattr(handler, "__rpc_signature__", None)
        return cls(func=handler, doc=doc, signature=signature)


def rpc_method(
    func: Callable[..., Any] | None = None,
    *,
    doc: str | None = None,
    signature: list[list[str]] | None = None,
) -> Any:
    """Attach introspection metadata to a handler function.

    Usage:
        @rpc_method(signature=[["int", "int", "int"]])
        def add(a, b):
            "Add two integers."
            return a + b

    ``doc`` overrides the docstring for ``system.methodHelp``.
    """

    def decorate(f: Callable[..., Any]) -> Callable[..., Any]:
        if doc is not None:
            f.__rpc_doc__ = doc  # type: ignore[attr-defined]
        if signature is not None:
            f.__rpc_signature__ = signature  # type: ignore[attr-defined]
        return f

    if func is not None:
        return decorate(func)
    return decorate


def normalize_handlers(
    handlers: Mapping[str, Callable[..., Any] | HandlerEntry],
) -> dict[str, HandlerEntry]:
    """Validate a handler map and wrap every value as a HandlerEntry."""
    if not isinstance(handlers, Mapping):
        raise ConfigError(f"Handlers must be a mapping, got {type(handlers).__name__}")
    result: dict[str, HandlerEntry] = {}
    for name, handler in handlers.items():
        if not isinstance(name, str) or not name:
            raise ConfigError(f"Method names must be non-empty strings, got {name!r}")
        result[name] = HandlerEntry.of(handler)
    return result


class UpdateMode(str, Enum):
    """How update_handlers combines new handlers with the live ones."""

    REPLACE = "replace"
    MERGE = "merge"


class HandlerRegistry:
    """The live method-name -> HandlerEntry mapping.

    Reserved handlers (the ``system.*`` methods) are re-added on every
    write, so a blanket replace can never drop or shadow them.
    """

    def __init__(
        self,
        handlers: Mapping[str, Callable[..., Any] | HandlerEntry] | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._reserved: dict[str, HandlerEntry] = {}
        self._snapshot: HandlerSnapshot = MappingProxyType(normalize_handlers(handlers or {}))

    # =========================================================================
    # Reads
    # =========================================================================

    def snapshot(self) -> HandlerSnapshot:
        """The mapping in effect for the caller.

        Inside a dispatch this is the snapshot pinned at request start.
        """
        pinned = _pinned.get()
        if pinned is not None and pinned[0] is self:
            return pinned[1]
        return self._snapshot

    def get(self, name: str) -> HandlerEntry | None:
        return self.snapshot().get(name)

    def names(self) -> list[str]:
        """Sorted method names."""
        return sorted(self.snapshot())

    def __contains__(self, name: object) -> bool:
        return name in self.snapshot()

    def __len__(self) -> int:
        return len(self.snapshot())

    @contextmanager
    def pinned(self) -> Iterator[HandlerSnapshot]:
        """Pin the current snapshot for the duration of one request."""
        snapshot = self.snapshot()
        token = _pinned.set((self, snapshot))
        try:
            yield snapshot
        finally:
            _pinned.reset(token)

    # =========================================================================
    # Writes
    # =========================================================================

    def install_reserved(self, handlers: Mapping[str, HandlerEntry]) -> HandlerSnapshot:
        """Add handlers that every later write re-adds over user handlers."""
        with self._lock:
            self._reserved.update(normalize_handlers(handlers))
            return self._publish(dict(self._snapshot))

    def replace(
        self,
        handlers: Mapping[str, Callable[..., Any] | HandlerEntry],
    ) -> HandlerSnapshot:
        """Atomically swap the entire mapping."""
        new = normalize_handlers(handlers)
        with self._lock:
            snapshot = self._publish(new)
        logger.info(f"Replaced handlers ({len(snapshot)} methods)")
        return snapshot

    def merge(
        self,
        handlers: Mapping[str, Callable[..., Any] | HandlerEntry],
    ) -> HandlerSnapshot:
        """Atomically union ``handlers`` over the mapping; new entries win."""
        new = normalize_handlers(handlers)
        with self._lock:
            snapshot = self._publish({**self._snapshot, **new})
        logger.info(f"Merged {len(new)} handlers ({len(snapshot)} methods)")
        return snapshot

    def update(
        self,
        handlers: Mapping[str, Callable[..., Any] | HandlerEntry],
        mode: UpdateMode | str = UpdateMode.REPLACE,
    ) -> HandlerSnapshot:
        """Replace or merge, by ``mode``."""
        try:
            mode = UpdateMode(mode)
        except ValueError as e:
            raise ConfigError(f"Unknown update mode: {mode!r}") from e
        if mode == UpdateMode.MERGE:
            return self.merge(handlers)
        return self.replace(handlers)

    def remove(self, name: str) -> HandlerSnapshot:
        """Atomically remove a single entry; a missing name is a no-op."""
        with self._lock:
            if name not in self._snapshot:
                return self._snapshot
            remaining = {k: v for k, v in self._snapshot.items() if k != name}
            self._snapshot = MappingProxyType(remaining)
            snapshot = self._snapshot
        logger.info(f"Removed handler {name}")
        return snapshot

    def _publish(self, handlers: dict[str, HandlerEntry]) -> HandlerSnapshot:
        # Caller holds self._lock
        handlers.update(self._reserved)
        self._snapshot = MappingProxyType(handlers)
        return self._snapshot


# =============================================================================
# Bulk registration
# =============================================================================


def namespace_handlers(source: ModuleType | str | object, prefix: str = "") -> dict[str, HandlerEntry]:
    """Build a handler map from the public functions of a module or object.

    Each public function becomes a handler named ``"prefix.name"`` (just
    ``"name"`` without a prefix). For a module only functions defined in it
    are taken, or exactly those in ``__all__`` when it is set. For any other
    object its public bound methods are taken. Docstrings and ``rpc_method``
    metadata are kept.

        namespace_handlers("myapp.math", "math")
        # {"math.add": HandlerEntry(...), "math.sub": HandlerEntry(...)}
    """
    if isinstance(source, str):
        source = importlib.import_module(source)

    if isinstance(source, ModuleType):
        exported = getattr(source, "__all__", None)
        members = [
            (name, member)
            for name, member in inspect.getmembers(source, callable)
            if (
                name in exported
                if exported is not None
                else (
                    inspect.isfunction(member)
                    and not name.startswith("_")
                    and member.__module__ == source.__name__
                )
            )
        ]
    else:
        members = [
            (name, member)
            for name, member in inspect.getmembers(source, inspect.ismethod)
            if not name.startswith("_")
        ]

    return {
        f"{prefix}.{name}" if prefix else name: HandlerEntry.of(member)
        for name, member in members
    }
