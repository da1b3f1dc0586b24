"""Response assembly and serialization."""

import json
import logging
from typing import Any

from pydantic_core import PydanticSerializationError, to_jsonable_python

from .errors import InternalError, JsonRpcException, RelayPolicy
from .messages import (
    JSONRPC_INTERNAL_ERROR,
    JsonRpcError,
    JsonRpcErrorResponse,
    JsonRpcId,
    JsonRpcResponse,
    JsonRpcResult,
)

logger = logging.getLogger(__name__)


class ResponseBuilder:
    """Renders results and exceptions into JSON-RPC 2.0 responses.

    Args:
        relay (RelayPolicy | None): Which application exceptions may show their
            own message to the client. Defaults to relaying everything.
    """

    def __init__(self, relay: RelayPolicy | None = None):
        self.relay = relay or RelayPolicy.all()

    def build_success(self, id: JsonRpcId, result: Any) -> JsonRpcResult:
        return JsonRpcResult(jsonrpc="2.0", result=result, id=id)

    def build_error(
        self, id: JsonRpcId, code: int, message: str, data: Any = None
    ) -> JsonRpcErrorResponse:
        if data is not None:
            err = JsonRpcError(code=code, message=message, data=data)
        else:
            err = JsonRpcError(code=code, message=message)
        return JsonRpcErrorResponse(jsonrpc="2.0", error=err, id=id)

    def build_from_exception(
        self, id: JsonRpcId, exc: BaseException
    ) -> JsonRpcErrorResponse:
        """Map any exception raised while handling a request to an error response.

        Protocol exceptions keep their code, message and data. Other exceptions
        are relayed only when the relay policy allows their type, using their
        integer ``code`` attribute if they have one. Everything else becomes a
        generic internal error.
        """
        if isinstance(exc, JsonRpcException):
            return JsonRpcErrorResponse(jsonrpc="2.0", error=exc.to_err(), id=id)

        if not self.relay.allows(exc):
            logger.debug(
                "Hiding %s behind internal error", type(exc).__name__, extra={"id": id}
            )
            return JsonRpcErrorResponse(jsonrpc="2.0", error=InternalError().to_err(), id=id)

        code = getattr(exc, "code", None)
        if not isinstance(code, int) or isinstance(code, bool):
            code = JSONRPC_INTERNAL_ERROR
        return self.build_error(id, code, str(exc) or type(exc).__name__)

    def encode(self, response: JsonRpcResponse) -> str:
        """Encode one response, downgrading unserializable results.

        A result that cannot be turned into JSON is replaced with an internal
        error response carrying the same id.
        """
        try:
            return _dumps(response)
        except (TypeError, ValueError, PydanticSerializationError) as e:
            logger.warning(
                "Unable to encode response", extra={"id": response.get("id")}, exc_info=True
            )
            err = InternalError(data=f"Unable to encode response: {e}")
            return _dumps(self.build_from_exception(response.get("id"), err))

    def serialize(self, responses: JsonRpcResponse | list[JsonRpcResponse | None] | None) -> str:
        """Produce the wire string for a response or a batch of responses.

        ``None`` entries (notifications) are dropped from a batch; when nothing
        is left the result is an empty string.
        """
        if responses is None:
            return ""
        if isinstance(responses, list):
            parts = [self.encode(r) for r in responses if r is not None]
            if not parts:
                return ""
            return "[" + ",".join(parts) + "]"
        return self.encode(responses)


def _dumps(obj: Any) -> str:
    return json.dumps(
        obj, default=to_jsonable_python, separators=(",", ":"), allow_nan=False
    )
