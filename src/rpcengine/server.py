"""JSON-RPC server entry point.

A :class:`Server` bundles one procedure registry, one middleware chain and
one relay policy. Hosts configure it once at startup and then feed it
payloads:

Example:
    ```python
    server = Server()

    @server.register("echo")
    def echo(value):
        return value

    body = await server.handle(b'{"jsonrpc":"2.0","method":"echo","params":["hi"],"id":1}')
    # '{"jsonrpc":"2.0","result":"hi","id":1}'
    ```

Several servers can live side by side in one process; nothing is global.
"""

import json
import logging
from typing import Any, Callable, Mapping

from .access import check_host, check_user, credentials_from_headers
from .config import ServerConfig
from .errors import ParseError, RelayPolicy, ServerError
from .middleware import MiddlewareChain, MiddlewareHook
from .processor import BatchProcessor, RequestProcessor
from .procedures import ProcedureRegistry
from .responses import ResponseBuilder

logger = logging.getLogger(__name__)


class Server:
    """Processes decoded JSON-RPC payloads into response strings.

    Args:
        config (ServerConfig | None): Host-level settings.
        registry (ProcedureRegistry | None): Procedures to expose. A fresh
            registry is created when omitted.
        middleware (MiddlewareChain | None): Hooks run before each call.
        relay (RelayPolicy | None): Exceptions whose message reaches the
            client. Defaults to all of them.
    """

    def __init__(
        self,
        config: ServerConfig | None = None,
        registry: ProcedureRegistry | None = None,
        middleware: MiddlewareChain | None = None,
        relay: RelayPolicy | None = None,
    ):
        self.config = config or ServerConfig()
        self.registry = registry or ProcedureRegistry()
        self.middleware = middleware or MiddlewareChain()
        self.responses = ResponseBuilder(relay)
        self._requests = RequestProcessor(self.registry, self.middleware, self.responses)
        self._batches = BatchProcessor(
            self._requests, self.responses, concurrent=self.config.concurrent_batches
        )

    def register(self, name: str, func: Callable | None = None):
        """Register a function under ``name``. Usable as a decorator."""
        return self.registry.rpc_method(name, func)

    def bind(self, name: str, instance_or_class: Any, method_name: str | None = None) -> "Server":
        self.registry.register_method(name, instance_or_class, method_name)
        return self

    def attach(self, instance: Any) -> "Server":
        self.registry.register_object(instance)
        return self

    def add_middleware(self, hook: MiddlewareHook) -> "Server":
        self.middleware.add_middleware(hook)
        return self

    def relay_exceptions(self, *kinds: type[BaseException]) -> "Server":
        """Relay only these exception types; everything else is hidden."""
        self.responses.relay = RelayPolicy.only(*kinds)
        return self

    async def process(self, payload: Any, username: str = "", password: str = "") -> str:
        """Handle a decoded payload.

        Args:
            payload (Any): A request object or a batch list, as decoded from JSON.
            username (str): Caller username handed to middleware hooks.
            password (str): Caller password handed to middleware hooks.

        Returns:
            str: The response body. Empty when nothing must be sent back
                (notifications, all-notification batches).
        """
        with self.middleware.caller_credentials(username, password):
            if BatchProcessor.is_batch(payload):
                res = await self._batches.process(payload)
            else:
                res = await self._requests.process(payload)
        return self.responses.serialize(res)

    async def handle(self, body: str | bytes, username: str = "", password: str = "") -> str:
        """Decode a raw JSON body and process it.

        Malformed JSON is answered with a parse error.
        """
        try:
            payload = self.decode(body)
        except ParseError as e:
            return self.responses.serialize(self.responses.build_from_exception(None, e))
        return await self.process(payload, username, password)

    def decode(self, body: str | bytes) -> Any:
        """Parse a raw body into a payload.

        Raises:
            ParseError: If ``body`` is not valid JSON text.
        """
        try:
            return json.loads(body)
        except json.JSONDecodeError as e:
            raise ParseError(
                data={"pos": e.pos, "lineno": e.lineno, "colno": e.colno}
            ) from e
        except UnicodeDecodeError as e:
            raise ParseError(data={"pos": e.start, "reason": e.reason}) from e

    async def execute(
        self,
        body: str | bytes,
        remote_addr: str | None = None,
        headers: Mapping[str, str] | None = None,
        username: str = "",
        password: str = "",
    ) -> str:
        """Decode the body, run the caller pre-checks, then process it.

        A malformed body is answered with a parse error before the caller is
        checked. Credentials are read from ``headers`` when not given
        explicitly. Rejected callers get an error response with a null id.

        Args:
            body (str | bytes): The raw request body.
            remote_addr (str | None): Client address checked against
                ``config.allowed_hosts``.
            headers (Mapping[str, str] | None): Request headers carrying
                Basic credentials.
            username (str): Explicit caller username, wins over ``headers``.
            password (str): Explicit caller password.

        Returns:
            str: The response body, possibly empty.
        """
        if not username and headers is not None:
            username, password = credentials_from_headers(
                headers, self.config.authentication_header
            )
        try:
            payload = self.decode(body)
            check_host(self.config.allowed_hosts, remote_addr)
            check_user(self.config.users, username, password)
        except (ParseError, ServerError) as e:
            return self.responses.serialize(self.responses.build_from_exception(None, e))
        return await self.process(payload, username, password)
