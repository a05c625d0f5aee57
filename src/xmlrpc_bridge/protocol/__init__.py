"""Transport-agnostic protocol layer.

Defines the value model every transport speaks:

- WireValue / WireType: the tagged XML-RPC value model
- Fault: a fault record inside a multicall response
- MulticallRequest: one call inside a multicall batch

The XML document codec lives in `xmlrpc_bridge.protocol.xml` and is only
needed by transports that put bytes on a socket.
"""

from .faults import Fault, MulticallRequest
from .values import INT32_MAX, INT32_MIN, INT64_MAX, INT64_MIN, WireType, WireValue

__all__ = [
    "WireValue",
    "WireType",
    "Fault",
    "MulticallRequest",
    "INT32_MIN",
    "INT32_MAX",
    "INT64_MIN",
    "INT64_MAX",
]
