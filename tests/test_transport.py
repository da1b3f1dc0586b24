import asyncio
import json
import sys
import types

import pytest

from rpcengine import JsonRpcStreamTransport, Server, serve_connection
from rpcengine.cli import load_app


class FakeTransport:
    def __init__(self, messages):
        self._messages = list(messages)
        self.sent = []

    async def receive_message(self):
        if not self._messages:
            return None
        return self._messages.pop(0)

    async def send_message(self, body):
        self.sent.append(body)


class FakeWriter:
    def __init__(self):
        self.data = b""

    def write(self, data):
        self.data += data

    async def drain(self):
        pass


def _frame(body: bytes) -> bytes:
    return b"Content-Length: " + str(len(body)).encode() + b"\r\n\r\n" + body


@pytest.mark.asyncio
async def test_serve_connection_skips_empty_responses(server):
    transport = FakeTransport(
        [
            b'{"jsonrpc":"2.0","method":"echo","params":[1],"id":1}',
            b'{"jsonrpc":"2.0","method":"echo","params":[2]}',
            b"not json",
        ]
    )

    await serve_connection(server, transport)

    assert len(transport.sent) == 2
    assert json.loads(transport.sent[0])["result"] == 1
    assert json.loads(transport.sent[1])["error"]["code"] == -32700


@pytest.mark.asyncio
async def test_stream_transport_framing():
    body = b'{"jsonrpc":"2.0","method":"echo","params":["x"],"id":1}'
    reader = asyncio.StreamReader()
    reader.feed_data(b"X-Ignored: yes\r\n" + _frame(body))
    reader.feed_eof()
    writer = FakeWriter()
    transport = JsonRpcStreamTransport(reader, writer)

    assert await transport.receive_message() == body
    assert await transport.receive_message() is None

    await transport.send_message('{"a":1}')
    assert writer.data == (
        b"Content-Type: application/json;charset=utf-8\r\n"
        b"Content-Length: 7\r\n\r\n"
        b'{"a":1}'
    )


def test_load_app(monkeypatch):
    module = types.ModuleType("fake_rpc_app")
    module.server = Server()
    module.factory = lambda: module.server
    module.other = 3
    monkeypatch.setitem(sys.modules, "fake_rpc_app", module)

    assert load_app("fake_rpc_app:server") is module.server
    assert load_app("fake_rpc_app:factory") is module.server
    with pytest.raises(TypeError):
        load_app("fake_rpc_app:other")
    with pytest.raises(ValueError):
        load_app("fake_rpc_app")
