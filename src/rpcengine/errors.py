"""Exceptions understood by the engine.

Every failure inside the engine is an exception. Subclasses of
:class:`JsonRpcException` are protocol-level errors that are always rendered
with their own code and message; anything else raised by host code is an
application error whose visibility is decided by a :class:`RelayPolicy`.
"""

from typing import Any

from .messages import (
    JSONRPC_ACCESS_DENIED,
    JSONRPC_AUTHENTICATION_FAILURE,
    JSONRPC_INTERNAL_ERROR,
    JSONRPC_INVALID_PARAMS,
    JSONRPC_INVALID_REQUEST,
    JSONRPC_METHOD_NOT_FOUND,
    JSONRPC_PARSE_ERROR,
    JSONRPC_SERVER_ERROR,
    JsonRpcError,
)


class JsonRpcException(Exception):
    """Exception raised for JSON-RPC specific errors.

    This exception class represents JSON-RPC protocol errors and can be
    converted to and from JSON-RPC error objects.

    Args:
        message (str): A human-readable error description
        code (int): The JSON-RPC error code (see messages.py for standard codes)
        data (Any): Optional additional error data

    Example:
        ```python
        def delete_user(user_id: int):
            if user_id == 0:
                raise JsonRpcException("Cannot delete root", code=-32010)
        ```
    """

    def __init__(self, message: str, code: int, data: Any = None):
        super(JsonRpcException, self).__init__(message)
        self.code = code
        self.data = data

    def to_err(self) -> JsonRpcError:
        """Convert the exception to a JSON-RPC error object.

        Returns:
            JsonRpcError: The error object for the JSON-RPC response
        """
        if self.data is not None:
            return JsonRpcError(code=self.code, message=str(self), data=self.data)
        else:
            return JsonRpcError(code=self.code, message=str(self))

    @staticmethod
    def from_error(err: JsonRpcError) -> "JsonRpcException":
        """Create an exception from a JSON-RPC error object.

        Args:
            err (JsonRpcError): The error object from a JSON-RPC response

        Returns:
            JsonRpcException: The corresponding exception
        """
        if "data" in err:
            return JsonRpcException(err["message"], err["code"], err["data"])
        else:
            return JsonRpcException(err["message"], err["code"])


class ParseError(JsonRpcException):
    def __init__(self, message: str = "Parse error", data: Any = None):
        super().__init__(message, JSONRPC_PARSE_ERROR, data)


class InvalidRequest(JsonRpcException):
    def __init__(self, message: str = "Invalid Request", data: Any = None):
        super().__init__(message, JSONRPC_INVALID_REQUEST, data)


class MethodNotFound(JsonRpcException):
    def __init__(self, message: str = "Method not found", data: Any = None):
        super().__init__(message, JSONRPC_METHOD_NOT_FOUND, data)


class InvalidParams(JsonRpcException):
    def __init__(self, message: str = "Invalid params", data: Any = None):
        super().__init__(message, JSONRPC_INVALID_PARAMS, data)


class InternalError(JsonRpcException):
    def __init__(self, message: str = "Internal error", data: Any = None):
        super().__init__(message, JSONRPC_INTERNAL_ERROR, data)


class ServerError(JsonRpcException):
    """Host-defined failure in the reserved -32000..-32099 range.

    Middleware hooks raise this (or a subclass) to abort a single request
    with a code of their choosing.
    """

    def __init__(
        self,
        message: str = "Server error",
        code: int = JSONRPC_SERVER_ERROR,
        data: Any = None,
    ):
        super().__init__(message, code, data)


MiddlewareError = ServerError


class AccessDenied(ServerError):
    def __init__(self, message: str = "Access denied", data: Any = None):
        super().__init__(message, JSONRPC_ACCESS_DENIED, data)


class AuthenticationFailure(ServerError):
    def __init__(self, message: str = "Authentication failed", data: Any = None):
        super().__init__(message, JSONRPC_AUTHENTICATION_FAILURE, data)


class RelayPolicy:
    """Allow-list of exception types whose message reaches the client.

    ``RelayPolicy.all()`` relays every exception (the default), while
    ``RelayPolicy.only(KeyError, MyError)`` keeps everything else behind a
    generic internal error. Subclasses of a listed type are relayed too.
    """

    def __init__(self, kinds: tuple[type[BaseException], ...]):
        for kind in kinds:
            if not (isinstance(kind, type) and issubclass(kind, BaseException)):
                raise TypeError(f"{kind!r} is not an exception type")
        self._kinds = tuple(kinds)

    @classmethod
    def all(cls) -> "RelayPolicy":
        return cls((Exception,))

    @classmethod
    def only(cls, *kinds: type[BaseException]) -> "RelayPolicy":
        return cls(kinds)

    @property
    def kinds(self) -> tuple[type[BaseException], ...]:
        return self._kinds

    def allows(self, exc: BaseException) -> bool:
        return isinstance(exc, self._kinds)

    def __repr__(self) -> str:
        names = ", ".join(kind.__name__ for kind in self._kinds)
        return f"RelayPolicy({names})"
