import asyncio
import importlib
import logging
import urllib.parse

from .config import ServerConfig
from .server import Server
from .transport import JsonRpcStreamTransport, serve_connection

logger = logging.getLogger(__name__)


def load_app(target: str) -> Server:
    """Import ``module:attribute`` and return the server it names.

    The attribute may be a :class:`Server` or a zero-argument factory
    returning one.
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Expected module:attribute, got {target!r}")
    obj = getattr(importlib.import_module(module_name), attr)
    if not isinstance(obj, Server) and callable(obj):
        obj = obj()
    if not isinstance(obj, Server):
        raise TypeError(f"{target} is not a Server")
    return obj


async def _run(path: urllib.parse.ParseResult, server: Server):
    async def on_connect(reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        peer = writer.get_extra_info("peername")
        logger.info("Client connected", extra={"peer": peer})
        transport = JsonRpcStreamTransport(reader, writer)
        try:
            await serve_connection(server, transport)
        finally:
            await transport.close()
            logger.info("Client disconnected", extra={"peer": peer})

    match path.scheme:
        case "unix":
            listener = await asyncio.start_unix_server(on_connect, path.path)
        case "tcp":
            listener = await asyncio.start_server(on_connect, path.hostname, path.port)
        case _:
            raise ValueError(f"Unsupported scheme {path.scheme}")

    async with listener:
        await listener.serve_forever()


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(prog="rpcengine")
    parser.add_argument(
        "socket_path",
        help="URI to listen on. Examples: tcp://localhost:1234 unix:///tmp/rpc.sock",
        type=urllib.parse.urlparse,
    )
    parser.add_argument(
        "--app",
        required=True,
        help="Server to expose, as module:attribute. The attribute may also be a factory returning a Server.",
    )
    parser.add_argument(
        "--config",
        help="JSON file with server settings (allowed_hosts, users, ...)",
    )
    parser.add_argument(
        "--enable-logfire",
        action="store_true",
        help="Sends logs to Logfire",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args()

    level = logging.DEBUG if args.verbose else logging.INFO
    if args.enable_logfire:
        import logfire

        logfire.configure(scrubbing=False)
        logging.basicConfig(level=level, handlers=[logfire.LogfireLoggingHandler()])
    else:
        logging.basicConfig(level=level)

    server = load_app(args.app)
    if args.config is not None:
        config = ServerConfig.from_file(args.config)
        server = Server(
            config=config,
            registry=server.registry,
            middleware=server.middleware,
            relay=server.responses.relay,
        )

    logging.info("Starting loop", extra={"cliArgs": vars(args)})
    asyncio.run(_run(args.socket_path, server))


if __name__ == "__main__":
    main()
