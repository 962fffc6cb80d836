"""Shared fixtures: a scripted fake Unity host and client factory."""

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Union

import pytest
import pytest_asyncio
from websockets.asyncio.server import ServerConnection, serve

from src.unity_bridge.client import UnityBridgeClient
from src.unity_bridge.config import BridgeSettings
from src.unity_bridge.resolver import EndpointResolver

Reply = Union[None, str, Dict[str, Any], List[Union[str, Dict[str, Any]]]]


def result_reply(frame: Dict[str, Any], result: Any) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": frame["id"], "result": result}


def error_reply(frame: Dict[str, Any], message: str, type_: str = "TOOL_EXECUTION", **extra: Any) -> Dict[str, Any]:
    error = {"message": message, "type": type_}
    error.update(extra)
    return {"jsonrpc": "2.0", "id": frame["id"], "error": error}


class FakeUnityHost:
    """WebSocket server answering request frames from per-method responders.

    A responder returns a frame, a raw string, a list of those, or None to
    leave the request unanswered. Unknown methods echo their params.
    """

    def __init__(self) -> None:
        self.received: List[Dict[str, Any]] = []
        self.request_headers: List[Any] = []
        self.responders: Dict[str, Callable[[Dict[str, Any]], Reply]] = {
            "ping": lambda frame: result_reply(frame, "pong"),
            "hang": lambda frame: None,
        }
        self.connections: List[ServerConnection] = []
        self.server = None
        self.port: Optional[int] = None

    @property
    def connection_count(self) -> int:
        return len(self.connections)

    async def start(self) -> None:
        self.server = await serve(self._handler, "127.0.0.1", 0)
        self.port = self.server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        if self.server is not None:
            self.server.close()
            await self.server.wait_closed()

    async def close_connections(self) -> None:
        for ws in list(self.connections):
            await ws.close()

    async def wait_for_requests(self, count: int, timeout: float = 2.0) -> None:
        await wait_until(lambda: len(self.received) >= count, timeout)

    async def _handler(self, ws: ServerConnection) -> None:
        self.connections.append(ws)
        self.request_headers.append(ws.request.headers)
        async for raw in ws:
            frame = json.loads(raw)
            self.received.append(frame)
            responder = self.responders.get(
                frame["method"], lambda f: result_reply(f, f["params"])
            )
            reply = responder(frame)
            if reply is None:
                continue
            for item in reply if isinstance(reply, list) else [reply]:
                await ws.send(item if isinstance(item, str) else json.dumps(item))


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` on the event loop until it holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


def make_settings(**overrides: Any) -> BridgeSettings:
    values: Dict[str, Any] = {
        "host": "127.0.0.1",
        "request_timeout": 2.0,
        "connect_timeout": 2.0,
        "close_timeout": 1.0,
    }
    values.update(overrides)
    return BridgeSettings(**values)


@pytest_asyncio.fixture
async def unity_host():
    """Start a fake Unity host on an ephemeral port."""
    host = FakeUnityHost()
    await host.start()
    yield host
    await host.stop()


@pytest_asyncio.fixture
async def client_factory():
    """Create clients pointed at a port; all of them are stopped afterwards."""
    clients: List[UnityBridgeClient] = []

    def factory(port: int, **overrides: Any) -> UnityBridgeClient:
        resolver = EndpointResolver(environ={"UNITY_PORT": str(port)}, platform="linux")
        client = UnityBridgeClient(settings=make_settings(**overrides), resolver=resolver)
        clients.append(client)
        return client

    yield factory

    for client in clients:
        await client.stop()


@pytest.fixture
def unused_port() -> int:
    """A local port with nothing listening on it."""
    import socket

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
