"""Single-request and batch processing.

A request moves through validation, registry lookup, the middleware chain and
the procedure call. The first failure ends the request with an error
response, except for notifications which never get a response at all.
"""

import asyncio
import logging
from typing import Any

from pydantic import ValidationError

from .errors import InvalidRequest, JsonRpcException
from .messages import REQUEST_ADAPTER, JsonRpcId, JsonRpcRequest, JsonRpcResponse
from .middleware import MiddlewareChain
from .procedures import ProcedureRegistry
from .responses import ResponseBuilder

logger = logging.getLogger(__name__)


def _guess_id(payload: Any) -> JsonRpcId:
    if isinstance(payload, dict):
        id = payload.get("id")
        if isinstance(id, (str, int, float)) and not isinstance(id, bool):
            return id
    return None


class RequestProcessor:
    """Validates and executes a single request object.

    Args:
        registry (ProcedureRegistry): Resolves and invokes procedures.
        middleware (MiddlewareChain): Hooks run before the invocation.
        responses (ResponseBuilder): Renders results and errors.
    """

    def __init__(
        self,
        registry: ProcedureRegistry,
        middleware: MiddlewareChain,
        responses: ResponseBuilder,
    ):
        self._registry = registry
        self._middleware = middleware
        self._responses = responses

    def validate(self, payload: Any) -> JsonRpcRequest:
        """Check the shape of a request object.

        Raises:
            InvalidRequest: If ``payload`` is not a valid request object.
        """
        try:
            return REQUEST_ADAPTER.validate_python(payload, strict=True)
        except ValidationError as e:
            raise InvalidRequest(
                data=e.errors(include_url=False, include_context=False)
            ) from e

    async def process(self, payload: Any) -> JsonRpcResponse | None:
        """Handle one request object.

        Errors never propagate; they are turned into the returned error
        response, or logged and dropped for notifications.

        Args:
            payload (Any): One decoded request, not yet validated.

        Returns:
            JsonRpcResponse | None: The response, or None when ``payload`` is
                a notification.
        """
        try:
            req = self.validate(payload)
        except InvalidRequest as e:
            logger.debug("Rejected request", extra={"jsonRpcMsg": payload})
            return self._responses.build_from_exception(_guess_id(payload), e)

        logger.debug("Handling request", extra={"jsonRpcMsg": req})

        method = req["method"]
        params = req.get("params")
        id = req.get("id")

        try:
            self._registry.lookup(method)
            await self._middleware.run(method, params)
            res = await self._registry.invoke(method, params)
        except JsonRpcException as e:
            return self._error(req, e)
        except Exception as e:
            logger.warning(
                "Procedure %s raised %s",
                method,
                type(e).__name__,
                extra={"jsonRpcMsg": req},
                exc_info=True,
            )
            return self._error(req, e)

        if "id" not in req:
            return None
        return self._responses.build_success(id, res)

    def _error(self, req: JsonRpcRequest, exc: Exception) -> JsonRpcResponse | None:
        if "id" not in req:
            logger.warning(
                "Dropping error for notification %s: %s",
                req["method"],
                exc,
                extra={"params": req.get("params")},
            )
            return None
        return self._responses.build_from_exception(req["id"], exc)


class BatchProcessor:
    """Runs every element of a batch through a :class:`RequestProcessor`.

    Args:
        requests (RequestProcessor): Handles each element.
        responses (ResponseBuilder): Renders the empty-batch error.
        concurrent (bool): Evaluate elements concurrently. Responses keep the
            input order either way.
    """

    def __init__(
        self,
        requests: RequestProcessor,
        responses: ResponseBuilder,
        concurrent: bool = True,
    ):
        self._requests = requests
        self._responses = responses
        self._concurrent = concurrent

    @staticmethod
    def is_batch(payload: Any) -> bool:
        return isinstance(payload, list)

    async def process(self, payload: list[Any]) -> list[JsonRpcResponse] | JsonRpcResponse:
        """Handle a batch.

        Returns:
            The list of responses (possibly empty), or a single error response
            when the batch itself is empty.
        """
        if not payload:
            return self._responses.build_from_exception(
                None, InvalidRequest(data="Empty batch")
            )

        logger.debug("Handling batch", extra={"size": len(payload)})

        if self._concurrent:
            results = await asyncio.gather(
                *(self._requests.process(item) for item in payload)
            )
        else:
            results = [await self._requests.process(item) for item in payload]

        return [res for res in results if res is not None]
