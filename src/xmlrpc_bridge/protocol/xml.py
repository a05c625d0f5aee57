"""XML-RPC document codec for wire values.

Writing is done here so that extension types can be emitted the way the peer
expects: namespaced (``<ex:i8>``, ``<ex:nil/>``, the Apache XML-RPC
convention) or bare (``<i8>``, ``<nil/>``, the convention of Python, PHP and
most other implementations) when ``python_compat`` is set.

Reading goes through the standard library parser, which accepts both forms.
Parsed values are re-tagged by range, so integers come back as ``i4`` or
``i8`` and dateTimes come back UTC-aware.
"""

from __future__ import annotations

import base64
import logging
import xmlrpc.client
from collections.abc import Iterable
from datetime import UTC
from xml.parsers.expat import ExpatError

from ..coercion import to_wire
from ..errors import CoercionError, FaultCode, RemoteFault, TransportError
from .faults import fault_struct
from .values import WireType, WireValue

logger = logging.getLogger(__name__)

EXTENSIONS_NAMESPACE = "http://ws.apache.org/xmlrpc/namespaces/extensions"
DEFAULT_ENCODING = "UTF-8"


# =============================================================================
# Writing
# =============================================================================


def _escape(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


class _Writer:
    """Serialises wire values into XML-RPC ``<value>`` elements."""

    def __init__(self, python_compat: bool) -> None:
        self._ext = "" if python_compat else "ex:"
        self._parts: list[str] = []

    def write(self, value: WireValue) -> None:
        out = self._parts.append
        out("<value>")
        match value.type:
            case WireType.NIL:
                out(f"<{self._ext}nil/>")
            case WireType.BOOLEAN:
                out(f"<boolean>{int(value.value)}</boolean>")
            case WireType.I4:
                out(f"<i4>{value.value}</i4>")
            case WireType.I8:
                out(f"<{self._ext}i8>{value.value}</{self._ext}i8>")
            case WireType.DOUBLE:
                out(f"<double>{value.value!r}</double>")
            case WireType.STRING:
                out(f"<string>{_escape(value.value)}</string>")
            case WireType.BASE64:
                out(f"<base64>{base64.b64encode(value.value).decode('ascii')}</base64>")
            case WireType.DATETIME:
                stamp = value.value.astimezone(UTC).strftime("%Y%m%dT%H:%M:%S")
                out(f"<dateTime.iso8601>{stamp}</dateTime.iso8601>")
            case WireType.STRUCT:
                out("<struct>")
                for name, member in value.value.items():
                    out(f"<member><name>{_escape(name)}</name>")
                    self.write(member)
                    out("</member>")
                out("</struct>")
            case WireType.ARRAY:
                out("<array><data>")
                for item in value.value:
                    self.write(item)
                out("</data></array>")
            case _:
                raise CoercionError(
                    f"{type(value.value).__name__} has no XML-RPC representation"
                )
        out("</value>")

    def text(self) -> str:
        return "".join(self._parts)


def _document(
    root: str,
    body: str,
    values: Iterable[WireValue],
    encoding: str,
    python_compat: bool,
) -> bytes:
    needs_namespace = not python_compat and any(v.uses_extensions() for v in values)
    attrs = f' xmlns:ex="{EXTENSIONS_NAMESPACE}"' if needs_namespace else ""
    text = f"<?xml version='1.0' encoding='{encoding}'?>\n<{root}{attrs}>{body}</{root}>\n"
    return text.encode(encoding, errors="xmlcharrefreplace")


def _params(values: list[WireValue], python_compat: bool) -> str:
    parts = ["<params>"]
    for value in values:
        writer = _Writer(python_compat)
        writer.write(value)
        parts.append(f"<param>{writer.text()}</param>")
    parts.append("</params>")
    return "".join(parts)


def dumps_request(
    method: str,
    params: list[WireValue],
    *,
    encoding: str = DEFAULT_ENCODING,
    python_compat: bool = False,
) -> bytes:
    """Encode a ``<methodCall>`` document."""
    body = f"<methodName>{_escape(method)}</methodName>{_params(params, python_compat)}"
    return _document("methodCall", body, params, encoding, python_compat)


def dumps_response(
    value: WireValue,
    *,
    encoding: str = DEFAULT_ENCODING,
    python_compat: bool = False,
) -> bytes:
    """Encode a successful ``<methodResponse>`` document."""
    return _document(
        "methodResponse", _params([value], python_compat), [value], encoding, python_compat
    )


def dumps_fault(code: int, message: str, *, encoding: str = DEFAULT_ENCODING) -> bytes:
    """Encode a ``<methodResponse>`` document carrying a fault."""
    writer = _Writer(python_compat=True)
    writer.write(fault_struct(code, message))
    return _document("methodResponse", f"<fault>{writer.text()}</fault>", [], encoding, True)


# =============================================================================
# Reading
# =============================================================================


def _retag(value: object) -> WireValue:
    return to_wire(value, extensions=True, strict=True)


def loads_request(data: bytes) -> tuple[str, list[WireValue]]:
    """Decode a ``<methodCall>`` document into a method name and arguments.

    Raises:
        RemoteFault: With a parse or invalid-request code for bad documents
    """
    try:
        params, method = xmlrpc.client.loads(data, use_builtin_types=True)
    except (ExpatError, xmlrpc.client.ResponseError, ValueError, TypeError) as e:
        logger.debug(f"Rejecting malformed request: {e}")
        raise RemoteFault(FaultCode.PARSE_ERROR, f"Malformed XML-RPC request: {e}") from e
    if not method:
        raise RemoteFault(FaultCode.INVALID_REQUEST, "Request has no methodName")
    try:
        return method, [_retag(p) for p in params]
    except CoercionError as e:
        raise RemoteFault(FaultCode.INVALID_REQUEST, str(e)) from e


def loads_response(data: bytes) -> WireValue:
    """Decode a ``<methodResponse>`` document.

    Raises:
        RemoteFault: If the document carries a fault
        TransportError: If the document is not a well-formed response
    """
    try:
        params, _ = xmlrpc.client.loads(data, use_builtin_types=True)
    except xmlrpc.client.Fault as fault:
        raise RemoteFault.from_wire(int(fault.faultCode), str(fault.faultString)) from None
    except (ExpatError, xmlrpc.client.ResponseError, ValueError, TypeError) as e:
        raise TransportError(f"Malformed XML-RPC response: {e}") from e
    if len(params) != 1:
        raise TransportError(f"Expected one response value, got {len(params)}")
    try:
        return _retag(params[0])
    except CoercionError as e:
        raise TransportError(f"Unrepresentable response value: {e}") from e
