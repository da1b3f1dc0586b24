"""Stream serving for a :class:`~rpcengine.server.Server`.

Messages are framed the way language servers frame them: a block of headers
with a ``Content-Length``, a blank line, then the JSON body.

    Content-Length: <length>
    Content-Type: application/json;charset=utf-8

    <message>

Custom transports only need to implement the :class:`JsonRpcTransport`
protocol to be used with :func:`serve_connection`.
"""

import asyncio
import logging
from typing import Protocol

from .server import Server

logger = logging.getLogger(__name__)


class JsonRpcTransport(Protocol):
    async def receive_message(self) -> bytes | None:
        """Wait for the next complete message body, or None once the peer is gone."""
        ...

    async def send_message(self, body: str):
        ...


class JsonRpcStreamTransport:
    """Content-Length framed messages over asyncio streams.

    Args:
        reader (asyncio.StreamReader): The stream reader
        writer (asyncio.StreamWriter): The stream writer
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self._reader = reader
        self._writer = writer

    async def _read_headers(self) -> dict[str, str]:
        res: dict[str, str] = {}
        row = await self._reader.readuntil(b"\r\n")
        while row != b"\r\n":
            name, sep, value = row.partition(b":")
            if sep:
                res[name.strip().lower().decode()] = value.strip().decode()
            else:
                logger.warning("Ignoring malformed header line", extra={"row": row})
            row = await self._reader.readuntil(b"\r\n")
        return res

    async def receive_message(self) -> bytes | None:
        try:
            while True:
                headers = await self._read_headers()
                if "content-length" not in headers:
                    logger.warning("Received message with no Content-Length header")
                    continue
                length = int(headers["content-length"])
                return await self._reader.readexactly(length)
        except asyncio.IncompleteReadError:
            return None

    async def send_message(self, body: str):
        contents = body.encode()
        for key, value in {
            "Content-Type": "application/json;charset=utf-8",
            "Content-Length": str(len(contents)),
        }.items():
            self._writer.write(f"{key}: {value}\r\n".encode())
        self._writer.write(b"\r\n")
        self._writer.write(contents)
        await self._writer.drain()

    async def close(self):
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except ConnectionError:
            pass


async def serve_connection(server: Server, transport: JsonRpcTransport):
    """Answer messages from ``transport`` until the peer disconnects.

    Each message is processed in turn; empty response bodies (notifications)
    are not written.
    """
    while True:
        body = await transport.receive_message()
        if body is None:
            logger.debug("Peer closed the connection")
            return
        logger.debug("Received message", extra={"jsonRpcMsg": body})
        res = await server.handle(body)
        if res:
            await transport.send_message(res)
