"""Middleware chain run before every procedure call.

Hooks see the procedure name, its params and the caller's credentials. They
let the call through by returning and abort it by raising, typically a
:class:`~rpcengine.errors.ServerError` carrying the code the client should
see.

Example:
    ```python
    def admin_only(procedure, params, username, password):
        if procedure.startswith("admin.") and username != "root":
            raise ServerError("Forbidden", code=-32010)

    chain = MiddlewareChain()
    chain.add_middleware(admin_only)
    ```
"""

import contextvars
import inspect
import logging
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Iterator, Protocol

from .messages import JsonRpcParams

logger = logging.getLogger(__name__)


class Middleware(Protocol):
    """Object form of a middleware hook."""

    def execute(
        self,
        procedure: str,
        params: JsonRpcParams | None,
        username: str,
        password: str,
    ) -> None | Awaitable[None]:
        """Inspect a call before it happens.

        Raises:
            Exception: To abort this request. The exception is rendered as the
                request's error response.
        """
        ...


MiddlewareHook = Callable[[str, JsonRpcParams | None, str, str], Any] | Middleware

_credentials: contextvars.ContextVar[tuple[str, str]] = contextvars.ContextVar(
    "rpcengine_caller_credentials", default=("", "")
)


class MiddlewareChain:
    """Ordered hooks run before every procedure call.

    The chain is configured once by the host. Caller credentials are not
    stored on the chain itself but in a context variable scoped to one
    processing call, see :meth:`caller_credentials`.
    """

    def __init__(self):
        self._hooks: list[MiddlewareHook] = []

    def add_middleware(self, hook: MiddlewareHook) -> None:
        """Append a hook; hooks run in registration order.

        Args:
            hook (MiddlewareHook): A callable taking ``(procedure, params,
                username, password)`` or an object with such an ``execute``
                method. Either form may be async.

        Raises:
            TypeError: If ``hook`` is neither.
        """
        if not callable(hook) and not callable(getattr(hook, "execute", None)):
            raise TypeError("Middleware must be callable or define execute()")
        self._hooks.append(hook)

    def __len__(self) -> int:
        return len(self._hooks)

    @contextmanager
    def caller_credentials(self, username: str, password: str) -> Iterator[None]:
        """Expose the caller identity to hooks until the block exits.

        The previous value is restored on exit, even when the block raises.
        """
        token = _credentials.set((username or "", password or ""))
        try:
            yield
        finally:
            _credentials.reset(token)

    @property
    def username(self) -> str:
        return _credentials.get()[0]

    @property
    def password(self) -> str:
        return _credentials.get()[1]

    async def run(self, procedure: str, params: JsonRpcParams | None) -> None:
        """Run every hook in registration order, stopping at the first error."""
        username, password = _credentials.get()
        for hook in self._hooks:
            execute = getattr(hook, "execute", None)
            if not callable(execute):
                execute = hook
            res = execute(procedure, params, username, password)
            if inspect.isawaitable(res):
                await res
        logger.debug(
            "Middleware chain passed for %s", procedure, extra={"hooks": len(self._hooks)}
        )
