"""Pytest fixtures."""

import json

import pytest

from rpcengine import Server


@pytest.fixture
def server():
    """A server exposing a couple of simple procedures."""
    server = Server()

    @server.register("echo")
    def echo(value):
        return value

    @server.register("add")
    def add(a: int, b: int) -> int:
        return a + b

    return server


@pytest.fixture
def call(server):
    """Process a payload and decode the response body (None when empty)."""

    async def _call(payload, **kwargs):
        body = await server.process(payload, **kwargs)
        return json.loads(body) if body else None

    return _call
