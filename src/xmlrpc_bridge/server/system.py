"""Built-in ``system.*`` introspection and multicall handlers.

    system.listMethods()              -> sorted method names
    system.methodHelp(name)           -> doc string, "" when undocumented
    system.methodSignature(name)      -> signature list, or "undefined"
    system.multicall([{methodName, params}, ...])
                                      -> [[result] | {faultCode, faultString}, ...]

The handlers resolve names through the registry, so they always reflect its
live state. Within a request they see the snapshot pinned by the dispatcher,
which makes every item of a multicall batch run against the same mapping.

They are raw handlers: they take and return WireValues, so they work the
same whether or not the server coerces arguments and results.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from ..coercion import to_host, to_wire
from ..errors import FaultCode, RemoteFault, UnknownMethod
from ..protocol.faults import Fault
from ..protocol.values import WireType, WireValue
from .registry import HandlerEntry

if TYPE_CHECKING:
    from .dispatcher import Dispatcher

logger = logging.getLogger(__name__)

SIGNATURE_UNDEFINED = "undefined"


def _method_name(params: tuple[WireValue, ...], caller: str) -> str:
    name = to_host(params[0]) if len(params) == 1 else None
    if not isinstance(name, str):
        raise RemoteFault(FaultCode.INVALID_REQUEST, f"{caller} expects a single method name")
    return name


def system_handlers(dispatcher: Dispatcher) -> dict[str, HandlerEntry]:
    """Build the ``system.*`` handler entries bound to ``dispatcher``'s registry."""
    registry = dispatcher.registry

    def lookup(name: str) -> HandlerEntry:
        entry = registry.get(name)
        if entry is None:
            raise UnknownMethod(name, f"Unknown method: {name}")
        return entry

    def list_methods(*params: WireValue) -> WireValue:
        return WireValue.array(WireValue.string(name) for name in registry.names())

    def method_help(*params: WireValue) -> WireValue:
        entry = lookup(_method_name(params, "system.methodHelp"))
        return WireValue.string(entry.doc or "")

    def method_signature(*params: WireValue) -> WireValue:
        entry = lookup(_method_name(params, "system.methodSignature"))
        if entry.signature is None:
            return WireValue.string(SIGNATURE_UNDEFINED)
        return to_wire(entry.signature, strict=True)

    def multicall(*params: WireValue) -> WireValue:
        if len(params) != 1 or params[0].type != WireType.ARRAY:
            raise RemoteFault(FaultCode.INVALID_REQUEST, "system.multicall expects an array of calls")
        batch = params[0].value
        logger.debug(f"Multicall of {len(batch)} calls")
        return WireValue.array(_run_item(dispatcher, item) for item in batch)

    entries: dict[str, Callable[..., Any]] = {
        "system.listMethods": list_methods,
        "system.methodHelp": method_help,
        "system.methodSignature": method_signature,
        "system.multicall": multicall,
    }
    docs = {
        "system.listMethods": "Return the names of all methods this server supports.",
        "system.methodHelp": "Return the documentation string for a method.",
        "system.methodSignature": "Return the signature list for a method, or \"undefined\".",
        "system.multicall": "Run a batch of calls; each result is [value] or a fault struct.",
    }
    signatures = {
        "system.listMethods": [["array"]],
        "system.methodHelp": [["string", "string"]],
        "system.methodSignature": [["array", "string"], ["string", "string"]],
        "system.multicall": [["array", "array"]],
    }
    return {
        name: HandlerEntry(func=func, doc=docs[name], signature=signatures[name], raw=True)
        for name, func in entries.items()
    }


def _run_item(dispatcher: Dispatcher, item: WireValue) -> WireValue:
    """Run one batch item; failures become a fault struct, never an exception."""
    try:
        method, params = _unpack_item(item)
        return WireValue.array([dispatcher.dispatch(method, params)])
    except RemoteFault as e:
        return Fault.from_exception(e).to_wire()
    except Exception as e:
        logger.exception("Multicall item failed outside its handler")
        return Fault.from_exception(e).to_wire()


def _unpack_item(item: WireValue) -> tuple[str, list[WireValue]]:
    if item.type != WireType.STRUCT:
        raise RemoteFault(FaultCode.INVALID_REQUEST, "Multicall item must be a struct")
    method = item.value.get("methodName")
    if method is None or method.type != WireType.STRING:
        raise RemoteFault(FaultCode.INVALID_REQUEST, "Multicall item is missing methodName")
    params = item.value.get("params")
    if params is None:
        return method.value, []
    if params.type != WireType.ARRAY:
        raise RemoteFault(FaultCode.INVALID_REQUEST, f"Params of {method.value} must be an array")
    return method.value, list(params.value)
