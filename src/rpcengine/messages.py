"""JSON-RPC 2.0 Message Type Definitions

This module defines the wire shapes handled by the engine. Requests are
described with TypedDicts so they can be validated with pydantic's
``TypeAdapter`` while staying plain ``dict`` objects at runtime.

The engine only ever receives two kinds of message:
1. Request - a call that expects a response (carries an ``id``)
2. Notification - a one-way call (no ``id`` key at all)

and produces two kinds:
3. Success Response - carries ``result``
4. Error Response - carries ``error``

References:
    JSON-RPC 2.0 Specification: https://www.jsonrpc.org/specification
"""

from typing import Annotated, Any, Literal

from pydantic import Field, TypeAdapter
from typing_extensions import NotRequired, TypedDict

JsonRpcId = str | int | float | None
"""Request identifiers the engine echoes back. ``None`` is only produced when
the id of a malformed request could not be read."""

JsonRpcParams = list[Any] | dict[str, Any]


class JsonRpcRequest(TypedDict):
    """A JSON-RPC request or notification.

    The presence of the ``id`` key is what separates a request from a
    notification; a request sent with ``"id": null`` is still answered.

    Fields:
        jsonrpc: Must be exactly "2.0"
        method: The name of the procedure to invoke, never empty
        params: Optional positional or named parameters
        id: Optional identifier echoed back in the response
    """

    jsonrpc: Literal["2.0"]
    method: Annotated[str, Field(min_length=1)]
    params: NotRequired[JsonRpcParams]
    id: NotRequired[JsonRpcId]


class JsonRpcResult(TypedDict):
    """A JSON-RPC success response message."""

    jsonrpc: Literal["2.0"]
    result: Any
    id: JsonRpcId


class JsonRpcError(TypedDict):
    """A JSON-RPC error object.

    Fields:
        code: The error code (see error code constants below)
        message: A short description of the error
        data: Optional additional error information
    """

    code: int
    message: str
    data: NotRequired[Any]


class JsonRpcErrorResponse(TypedDict):
    """A JSON-RPC error response message.

    ``id`` is null when the error happened before the request id could be
    determined (malformed request, empty batch, rejected caller).
    """

    jsonrpc: Literal["2.0"]
    error: JsonRpcError
    id: JsonRpcId


JsonRpcResponse = JsonRpcResult | JsonRpcErrorResponse
"""Union type of the responses the engine emits."""

REQUEST_ADAPTER = TypeAdapter(JsonRpcRequest)
"""Strict validator for incoming request objects."""


# Standard JSON-RPC 2.0 error codes
JSONRPC_PARSE_ERROR = -32700
"""Invalid JSON was received by the server."""

JSONRPC_INVALID_REQUEST = -32600
"""The JSON sent is not a valid Request object."""

JSONRPC_METHOD_NOT_FOUND = -32601
"""The method does not exist / is not available."""

JSONRPC_INVALID_PARAMS = -32602
"""Invalid method parameter(s)."""

JSONRPC_INTERNAL_ERROR = -32603
"""Internal JSON-RPC error."""

# Implementation-defined server errors, -32000 to -32099
JSONRPC_SERVER_ERROR = -32000
"""Generic server error, also the default code of a middleware abort."""

JSONRPC_ACCESS_DENIED = -32001
"""The caller's address is not on the host allow-list."""

JSONRPC_AUTHENTICATION_FAILURE = -32002
"""The caller's username/password pair was rejected."""
