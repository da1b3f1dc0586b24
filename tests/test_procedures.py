import pytest
from pydantic import BaseModel

from rpcengine import InvalidParams, MethodNotFound, ProcedureRegistry, procedure
from rpcengine.procedures import ProcedureTarget, bind_params


class Counter:
    created = 0

    def __init__(self):
        Counter.created += 1
        self.count = 0

    def increment(self, step: int = 1) -> int:
        self.count += step
        return self.count


class Calculator:
    def add(self, a: float, b: float) -> float:
        return a + b

    @procedure("calc.multiply")
    def mul(self, a: float, b: float) -> float:
        return a * b

    async def negate(self, value: int) -> int:
        return -value

    def invoke(self):
        return "shadowed"

    def _secret(self):
        return "hidden"

    constant = 3


class Point(BaseModel):
    x: int
    y: int


@pytest.mark.asyncio
async def test_register_callable_and_invoke():
    registry = ProcedureRegistry()
    registry.register_callable("upper", lambda text: text.upper())

    assert await registry.invoke("upper", ["abc"]) == "ABC"
    assert await registry.invoke("upper", {"text": "def"}) == "DEF"


@pytest.mark.asyncio
async def test_rpc_method_decorator():
    registry = ProcedureRegistry()

    @registry.rpc_method("math.square")
    async def square(value: int) -> int:
        return value * value

    assert "math.square" in registry
    assert await registry.invoke("math.square", [4]) == 16


@pytest.mark.asyncio
async def test_unknown_procedure():
    registry = ProcedureRegistry()

    with pytest.raises(MethodNotFound) as exc_info:
        await registry.invoke("missing", [])

    assert exc_info.value.data == {"method": "missing"}


@pytest.mark.asyncio
async def test_bound_instance_is_reused():
    registry = ProcedureRegistry()
    counter = Counter()
    registry.register_method("counter.increment", counter, "increment")

    await registry.invoke("counter.increment", [])
    assert await registry.invoke("counter.increment", [2]) == 3
    assert counter.count == 3


@pytest.mark.asyncio
async def test_class_reference_is_instantiated_per_call():
    registry = ProcedureRegistry()
    registry.register_method("increment", Counter)
    before = Counter.created

    assert await registry.invoke("increment", []) == 1
    assert await registry.invoke("increment", []) == 1
    assert Counter.created == before + 2
    assert registry.lookup("increment") == ProcedureTarget(
        "class_method_reference", Counter, "increment"
    )


@pytest.mark.asyncio
async def test_missing_method_on_target():
    registry = ProcedureRegistry()
    registry.register_method("counter.reset", Counter(), "reset")

    with pytest.raises(MethodNotFound):
        await registry.invoke("counter.reset", [])


@pytest.mark.asyncio
async def test_register_object():
    registry = ProcedureRegistry()
    registry.register_object(Calculator())

    assert registry.names() == ["add", "calc.multiply", "negate"]
    assert await registry.invoke("calc.multiply", [2, 3]) == 6
    assert await registry.invoke("negate", {"value": 4}) == -4


@pytest.mark.asyncio
async def test_reregistration_replaces_target():
    registry = ProcedureRegistry()
    calls = []
    registry.register_callable("ping", lambda: calls.append("first"))
    registry.register_callable("ping", lambda: calls.append("second"))

    await registry.invoke("ping")

    assert calls == ["second"]
    assert len(registry) == 1


@pytest.mark.asyncio
async def test_before_hook_runs_on_object_targets():
    seen = []

    class Guarded:
        def authorize(self, procedure_name):
            seen.append(procedure_name)

        def read(self):
            return "data"

    registry = ProcedureRegistry()
    registry.before("authorize")
    registry.register_object(Guarded())
    registry.register_callable("plain", lambda: "plain")

    assert "authorize" not in registry
    assert await registry.invoke("read") == "data"
    assert await registry.invoke("plain") == "plain"
    assert seen == ["read"]


@pytest.mark.asyncio
async def test_before_hook_can_abort():
    class Locked:
        async def authorize(self, procedure_name):
            raise PermissionError(procedure_name)

        def read(self):
            return "data"

    registry = ProcedureRegistry()
    registry.before("authorize")
    registry.register_method("read", Locked)

    with pytest.raises(PermissionError):
        await registry.invoke("read")


def test_bind_positional_drops_surplus():
    def f(a, b=2):
        return a, b

    assert bind_params(f, [1, 5, 9]) == ((1, 5), {})


def test_bind_named_drops_unknown():
    def f(a, *, flag=False):
        return a, flag

    assert bind_params(f, {"a": 1, "flag": True, "other": 0}) == ((1,), {"flag": True})


def test_bind_varargs_and_kwargs():
    def total(*values: int):
        return sum(values)

    def options(**kwargs):
        return kwargs

    assert bind_params(total, [1, "2", 3]) == ((1, 2, 3), {})
    assert bind_params(options, {"x": 1, "y": 2}) == ((), {"x": 1, "y": 2})


def test_bind_missing_required():
    def f(a, b):
        return a + b

    with pytest.raises(InvalidParams):
        bind_params(f, [1])
    with pytest.raises(InvalidParams):
        bind_params(f, {"b": 1})
    with pytest.raises(InvalidParams):
        bind_params(f, None)


def test_bind_validates_models():
    def norm(p: Point) -> int:
        return p.x**2 + p.y**2

    args, kwargs = bind_params(norm, {"p": {"x": 3, "y": 4}})

    assert norm(*args, **kwargs) == 25

    with pytest.raises(InvalidParams) as exc_info:
        bind_params(norm, {"p": {"x": 3}})
    assert exc_info.value.data[0]["loc"] == ("p", "y")


class Opaque:
    pass


def test_bind_passes_through_unsupported_annotations():
    token = Opaque()

    def f(x: Opaque):
        return x

    args, kwargs = bind_params(f, [token])

    assert f(*args, **kwargs) is token


def test_bind_tolerates_unresolvable_annotations():
    def f(x: "MissingType", y: int):  # noqa: F821
        return x, y

    args, kwargs = bind_params(f, {"x": "raw", "y": "5"})

    assert f(*args, **kwargs) == ("raw", 5)
