"""Procedure registry.

Maps procedure names to invocable targets and performs the call with the
parameters found in a request. A target is one of three kinds:

- ``callable``: a function (or any callable) invoked directly
- ``instance_method``: a method looked up on a live object on every call
- ``class_method_reference``: a class instantiated with no arguments on every
  call, then the named method is looked up on the fresh instance

Example:
    ```python
    registry = ProcedureRegistry()

    @registry.rpc_method("math.add")
    def add(a: int, b: int) -> int:
        return a + b

    class Users:
        @procedure("users.get")
        async def get(self, user_id: int) -> dict: ...

    registry.register_object(Users())
    await registry.invoke("math.add", [1, 2])
    ```
"""

import functools
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Literal, TypeVar, overload

from pydantic import PydanticSchemaGenerationError, TypeAdapter, ValidationError

from .errors import InvalidParams, MethodNotFound
from .messages import JsonRpcParams

logger = logging.getLogger(__name__)

TargetKind = Literal["callable", "instance_method", "class_method_reference"]

T = TypeVar("T", bound=Callable[..., Any])


@dataclass(frozen=True)
class ProcedureTarget:
    kind: TargetKind
    target: Any
    method_name: str | None = None


@overload
def procedure(name: str) -> Callable[[T], T]: ...


@overload
def procedure(func: T) -> T: ...


def procedure(name_or_func):
    """Decorator to give a method an explicit procedure name.

    Only consulted by :meth:`ProcedureRegistry.register_object`; members
    without the decorator are registered under their attribute name.

    Example:
        ```python
        class Calculator:
            @procedure("math.multiply")
            def mul(self, a: float, b: float) -> float: ...
        ```
    """
    if isinstance(name_or_func, str):
        name = name_or_func
    else:
        name = name_or_func.__name__

    def decorator(func: T) -> T:
        if not callable(func):
            raise ValueError("Only callables can be procedures")
        setattr(func, "__jsonrpc_method__", name)
        return func

    if isinstance(name_or_func, str):
        return decorator
    else:
        return decorator(name_or_func)


_POSITIONAL = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)
_NAMED = (
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
    inspect.Parameter.KEYWORD_ONLY,
)


def _accepts(params: list[inspect.Parameter], kind) -> bool:
    return any(param.kind is kind for param in params)


@functools.lru_cache(maxsize=512)
def _cached_adapter(annotation: Any) -> TypeAdapter | None:
    try:
        return TypeAdapter(annotation)
    except PydanticSchemaGenerationError:
        logger.debug("No validation schema for %r", annotation)
        return None


def _adapter(annotation: Any) -> TypeAdapter | None:
    """Validator for a parameter annotation, or None when pydantic has none."""
    try:
        hash(annotation)
    except TypeError:
        return _cached_adapter.__wrapped__(annotation)
    return _cached_adapter(annotation)


def _signature(func: Callable) -> inspect.Signature:
    try:
        return inspect.signature(func, eval_str=True)
    except NameError:
        # annotations only importable under TYPE_CHECKING stay strings
        return inspect.signature(func)


def bind_params(
    func: Callable, params: JsonRpcParams | None
) -> tuple[tuple[Any, ...], dict[str, Any]]:
    """Turn request params into call arguments for ``func``.

    Lists bind positionally, mappings bind by name. Surplus positional values
    and unknown names are dropped instead of rejected. Annotated parameters
    are validated (and coerced) with pydantic; annotations pydantic cannot
    build a schema for, or that cannot be resolved, are passed through.

    Args:
        func (Callable): The resolved procedure.
        params (JsonRpcParams | None): The request's ``params`` member.

    Returns:
        tuple: Positional and keyword arguments for ``func``.

    Raises:
        InvalidParams: If a required parameter is missing or a value does not
            match its annotation.
    """
    sig = _signature(func)
    parameters = list(sig.parameters.values())

    args: list[Any] = []
    kwargs: dict[str, Any] = {}
    if isinstance(params, list):
        args = list(params)
        if not _accepts(parameters, inspect.Parameter.VAR_POSITIONAL):
            args = args[: len([p for p in parameters if p.kind in _POSITIONAL])]
    elif isinstance(params, dict):
        if _accepts(parameters, inspect.Parameter.VAR_KEYWORD):
            kwargs = dict(params)
        else:
            named = {p.name for p in parameters if p.kind in _NAMED}
            kwargs = {k: v for k, v in params.items() if k in named}

    try:
        bound = sig.bind(*args, **kwargs)
    except TypeError as e:
        raise InvalidParams(data=str(e)) from e

    errors = []
    for name, value in bound.arguments.items():
        param = sig.parameters[name]
        if param.annotation in (inspect.Parameter.empty, Any) or isinstance(
            param.annotation, str
        ):
            continue
        match param.kind:
            case inspect.Parameter.VAR_POSITIONAL:
                annotation = tuple[param.annotation, ...]
            case inspect.Parameter.VAR_KEYWORD:
                annotation = dict[str, param.annotation]
            case _:
                annotation = param.annotation
        adapter = _adapter(annotation)
        if adapter is None:
            continue
        try:
            bound.arguments[name] = adapter.validate_python(value)
        except ValidationError as e:
            for err in e.errors(include_url=False, include_context=False):
                err["loc"] = (name, *err["loc"])
                errors.append(err)
    if errors:
        raise InvalidParams(data=errors)

    return bound.args, bound.kwargs


class ProcedureRegistry:
    """Name to procedure table shared by every request a server handles.

    Registering a name that already exists replaces the previous target.
    """

    def __init__(self):
        self._procedures: dict[str, ProcedureTarget] = {}
        self._before: str | None = None

    def register_callable(self, name: str, func: Callable) -> None:
        """Bind ``name`` to a function invoked directly.

        Args:
            name (str): The procedure name. An existing entry is replaced.
            func (Callable): A plain or coroutine function.

        Raises:
            TypeError: If ``func`` is not callable.
        """
        if not callable(func):
            raise TypeError(f"Procedure {name} must be callable")
        self._procedures[name] = ProcedureTarget("callable", func)

    def register_method(
        self, name: str, instance_or_class: Any, method_name: str | None = None
    ) -> None:
        """Bind ``name`` to a method of an object or of a class.

        A class is instantiated with no arguments on every call; an instance
        is reused. ``method_name`` defaults to ``name``.
        """
        method_name = method_name or name
        if inspect.isclass(instance_or_class):
            kind: TargetKind = "class_method_reference"
        else:
            kind = "instance_method"
        self._procedures[name] = ProcedureTarget(kind, instance_or_class, method_name)

    def register_object(self, instance: Any) -> None:
        """Register every public callable member of ``instance``."""
        reserved = self.reserved_names()
        for attr_name in dir(instance):
            if attr_name.startswith("_") or attr_name in reserved:
                continue
            attr = getattr(instance, attr_name)
            if inspect.isclass(attr) or not callable(attr):
                continue
            name = getattr(attr, "__jsonrpc_method__", attr_name)
            self.register_method(name, instance, attr_name)

    def rpc_method(self, name: str, func: Callable | None = None):
        """Registers a function as a procedure, usable as a decorator.

        Args:
            name (str): The procedure name.
            func (Callable | None, optional): The function. If None, returns a
                decorator. Defaults to None.
        """

        def decorator(func):
            self.register_callable(name, func)
            return func

        if func is None:
            return decorator
        else:
            decorator(func)

    def before(self, method_name: str) -> None:
        """Name a hook called on object targets before each procedure.

        The hook receives the procedure name. Objects without it are called
        as usual.
        """
        self._before = method_name

    def reserved_names(self) -> frozenset[str]:
        names = {name for name in dir(ProcedureRegistry) if not name.startswith("_")}
        if self._before is not None:
            names.add(self._before)
        return frozenset(names)

    def names(self) -> list[str]:
        return sorted(self._procedures)

    def __contains__(self, name: object) -> bool:
        return name in self._procedures

    def __len__(self) -> int:
        return len(self._procedures)

    def lookup(self, name: str) -> ProcedureTarget:
        try:
            return self._procedures[name]
        except KeyError:
            raise MethodNotFound(data={"method": name}) from None

    async def _resolve(self, name: str, target: ProcedureTarget) -> Callable:
        if target.kind == "callable":
            return target.target

        if target.kind == "class_method_reference":
            obj = target.target()
        else:
            obj = target.target

        assert target.method_name is not None
        func = getattr(obj, target.method_name, None)
        if func is None or not callable(func):
            logger.warning(
                "Procedure %s points to missing method %s",
                name,
                target.method_name,
                extra={"target": repr(target.target)},
            )
            raise MethodNotFound(data={"method": name})

        if self._before is not None:
            hook = getattr(obj, self._before, None)
            if callable(hook):
                res = hook(name)
                if inspect.isawaitable(res):
                    await res
        return func

    async def invoke(self, name: str, params: JsonRpcParams | None = None) -> Any:
        """Call the procedure registered under ``name``.

        Coroutine functions are awaited.

        Raises:
            MethodNotFound: If nothing is registered under ``name``.
            InvalidParams: If ``params`` cannot be bound to the target.
        """
        target = self.lookup(name)
        func = await self._resolve(name, target)
        args, kwargs = bind_params(func, params)
        logger.debug(
            "Invoking procedure %s", name, extra={"kind": target.kind, "params": params}
        )
        res = func(*args, **kwargs)
        if inspect.isawaitable(res):
            res = await res
        return res
