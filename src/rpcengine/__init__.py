from .config import ServerConfig
from .errors import (
    AccessDenied,
    AuthenticationFailure,
    InternalError,
    InvalidParams,
    InvalidRequest,
    JsonRpcException,
    MethodNotFound,
    MiddlewareError,
    ParseError,
    RelayPolicy,
    ServerError,
)
from .messages import (
    JSONRPC_ACCESS_DENIED,
    JSONRPC_AUTHENTICATION_FAILURE,
    JSONRPC_INTERNAL_ERROR,
    JSONRPC_INVALID_PARAMS,
    JSONRPC_INVALID_REQUEST,
    JSONRPC_METHOD_NOT_FOUND,
    JSONRPC_PARSE_ERROR,
    JSONRPC_SERVER_ERROR,
)
from .middleware import Middleware, MiddlewareChain
from .procedures import ProcedureRegistry, procedure
from .responses import ResponseBuilder
from .server import Server
from .transport import JsonRpcStreamTransport, JsonRpcTransport, serve_connection

__all__ = (
    "Server",
    "ServerConfig",
    "ProcedureRegistry",
    "procedure",
    "Middleware",
    "MiddlewareChain",
    "ResponseBuilder",
    "RelayPolicy",
    "JsonRpcException",
    "ParseError",
    "InvalidRequest",
    "MethodNotFound",
    "InvalidParams",
    "InternalError",
    "ServerError",
    "MiddlewareError",
    "AccessDenied",
    "AuthenticationFailure",
    "JSONRPC_PARSE_ERROR",
    "JSONRPC_INVALID_REQUEST",
    "JSONRPC_METHOD_NOT_FOUND",
    "JSONRPC_INVALID_PARAMS",
    "JSONRPC_INTERNAL_ERROR",
    "JSONRPC_SERVER_ERROR",
    "JSONRPC_ACCESS_DENIED",
    "JSONRPC_AUTHENTICATION_FAILURE",
    "JsonRpcStreamTransport",
    "JsonRpcTransport",
    "serve_connection",
)
