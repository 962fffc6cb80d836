"""WebSocket RPC client for the Unity editor bridge.

The client owns a single WebSocket connection to the Unity editor and a
table of in-flight requests. Requests are correlated with responses by id,
so responses may arrive in any order. All state lives on one event loop;
the connection, the pending table and the state tag are only mutated from
loop callbacks and tasks, never from other threads.
"""

import asyncio
from typing import Any, Dict, Optional, Set
from uuid import uuid4

from pydantic import ValidationError
from structlog import get_logger
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, WebSocketException
from websockets.protocol import State

from .config import BridgeSettings, get_settings
from .errors import (
    BridgeConnectionError,
    BridgeTimeoutError,
    BridgeValidationError,
    ToolExecutionError,
)
from .models import ConnectionState, PendingRequest, RequestFrame, ResponseFrame
from .pending import PendingRequestTable
from .resolver import EndpointResolver

logger = get_logger(__name__)

CLIENT_NAME_HEADER = "X-Client-Name"


class UnityBridgeClient:
    """Sends requests to Unity over a lazily (re)established WebSocket."""

    def __init__(
        self,
        settings: Optional[BridgeSettings] = None,
        resolver: Optional[EndpointResolver] = None,
    ):
        self.settings = settings or get_settings()
        self.resolver = resolver or EndpointResolver(
            env_var=self.settings.port_env_var,
            default_port=self.settings.default_port,
        )
        self.port = self.resolver.resolve()
        self.client_name: Optional[str] = self.settings.client_name

        self._ws: Optional[ClientConnection] = None
        self._state = ConnectionState.DISCONNECTED
        self._attempt: Optional[asyncio.Task] = None
        self._reader: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._closing: Set[asyncio.Task] = set()
        self._pending = PendingRequestTable()

        logger.info("Using port for Unity WebSocket connection", port=self.port)

    async def __aenter__(self) -> "UnityBridgeClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    @property
    def url(self) -> str:
        return self.settings.build_url(self.port)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        """True only while the handshake is complete and the socket is open."""
        return (
            self._ws is not None
            and self._state is ConnectionState.OPEN
            and self._ws.state is State.OPEN
        )

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def start(self, client_name: Optional[str] = None) -> None:
        """Try to connect once. Failures are logged and retried on the next request."""
        if client_name:
            self.client_name = client_name
        try:
            logger.info("Attempting to connect to Unity WebSocket", url=self.url)
            await self._connect()
            logger.info("Successfully connected to Unity WebSocket")
            if self.client_name:
                logger.info("Client identified to Unity", client_name=self.client_name)
        except BridgeConnectionError as e:
            logger.warning("Could not connect to Unity WebSocket", error=e.message)
            logger.warning("Will retry connection on next request")
            self._disconnect()

    async def stop(self) -> None:
        """Close the connection and fail every pending request."""
        if self._reconnect_task is not None and not self._reconnect_task.done():
            self._reconnect_task.cancel()
        self._reconnect_task = None
        self._disconnect()
        if self._closing:
            await asyncio.gather(*self._closing, return_exceptions=True)
        logger.info("Unity WebSocket client stopped")

    async def send_request(
        self,
        method: str,
        params: Any = None,
        request_id: Optional[str] = None,
    ) -> Any:
        """Send a request to Unity and wait for its result.

        Raises:
            BridgeValidationError: ``method`` is empty, the frame cannot be
                serialized, or ``request_id`` is already in flight.
            BridgeConnectionError: Unity is unreachable or the connection dropped.
            BridgeTimeoutError: No response within ``request_timeout``.
            ToolExecutionError: Unity reported a failure.
        """
        if not method:
            raise BridgeValidationError("Request method must be a non-empty string")
        if params is None:
            params = {}

        request_id = request_id or str(uuid4())
        try:
            payload = RequestFrame(id=request_id, method=method, params=params).model_dump_json()
        except ValueError as e:
            # ValidationError and PydanticSerializationError are both ValueErrors.
            raise BridgeValidationError(
                f"Invalid request: {e}",
                context={"request_id": str(request_id), "method": method},
            ) from e

        if not self.is_connected:
            logger.info("Not connected to Unity, connecting first")
            await self._connect()

        ws = self._ws
        if ws is None or not self.is_connected:
            raise BridgeConnectionError("Not connected to Unity")

        loop = asyncio.get_running_loop()
        entry = PendingRequest(
            request_id=request_id,
            method=method,
            future=loop.create_future(),
        )
        # Register before sending so a fast response always finds its entry.
        self._pending.add(entry)
        entry.timer = loop.call_later(
            self.settings.request_timeout, self._on_request_timeout, request_id
        )

        try:
            try:
                await ws.send(payload)
            except (ConnectionClosed, OSError) as e:
                raise BridgeConnectionError(
                    f"Send failed: {e}",
                    context={"request_id": request_id, "method": method},
                ) from e
            logger.debug("Request sent", request_id=request_id, method=method)
            return await entry.future
        except BaseException:
            self._forget(entry)
            raise

    def _forget(self, entry: PendingRequest) -> None:
        """Drop an entry whose caller is no longer waiting for it."""
        if self._pending.get(entry.request_id) is entry:
            self._pending.discard(entry.request_id)
        elif entry.future.done() and not entry.future.cancelled():
            # Rejected by a teardown while the send was still in progress.
            entry.future.exception()

    async def _connect(self) -> None:
        """Open the connection, joining an attempt that is already running."""
        if self.is_connected:
            logger.debug("Already connected to Unity WebSocket")
            return

        attempt = self._attempt
        if attempt is None or attempt.done():
            attempt = self._begin_connect()

        try:
            await asyncio.shield(attempt)
        except asyncio.CancelledError:
            if attempt.cancelled():
                raise BridgeConnectionError("Connection attempt aborted") from None
            raise

    def _begin_connect(self) -> asyncio.Task:
        """Tear down any previous connection and start a new attempt."""
        self._disconnect()
        self._state = ConnectionState.CONNECTING
        self._attempt = asyncio.get_running_loop().create_task(self._establish())
        return self._attempt

    async def _establish(self) -> None:
        url = self.url
        headers: Dict[str, str] = {}
        origin = None
        if self.client_name:
            headers[CLIENT_NAME_HEADER] = self.client_name
            origin = self.client_name

        logger.debug("Connecting", url=url)
        try:
            ws = await asyncio.wait_for(
                connect(
                    url,
                    additional_headers=headers or None,
                    origin=origin,
                    open_timeout=None,
                    close_timeout=self.settings.close_timeout,
                ),
                timeout=self.settings.connect_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Connection timeout, terminating WebSocket", url=url)
            self._abandon_attempt()
            raise BridgeConnectionError(
                "Connection timeout", context={"url": url}
            ) from None
        except (OSError, WebSocketException) as e:
            logger.error("WebSocket error", url=url, error=str(e) or type(e).__name__)
            self._abandon_attempt()
            raise BridgeConnectionError(
                f"Connection failed: {e}", context={"url": url}
            ) from e
        except asyncio.CancelledError:
            self._abandon_attempt()
            raise

        if self._attempt is not asyncio.current_task():
            # Superseded while the handshake finished.
            self._close_later(ws)
            raise BridgeConnectionError("Connection attempt superseded")

        self._attempt = None
        self._ws = ws
        self._state = ConnectionState.OPEN
        self._reader = asyncio.get_running_loop().create_task(self._read_frames(ws))
        logger.debug("WebSocket connected", url=url)

    def _abandon_attempt(self) -> None:
        if self._attempt is asyncio.current_task():
            self._attempt = None
            self._state = ConnectionState.DISCONNECTED

    async def _read_frames(self, ws: ClientConnection) -> None:
        """Dispatch inbound frames until the connection closes."""
        try:
            async for message in ws:
                if isinstance(message, bytes):
                    message = message.decode("utf-8", errors="replace")
                self._handle_message(message)
        except ConnectionClosedError as e:
            logger.warning("WebSocket connection lost", error=str(e))

        if self._ws is ws:
            logger.debug("WebSocket closed")
            self._disconnect()

    def _handle_message(self, data: str) -> None:
        """Complete the pending request matching a response frame."""
        try:
            response = ResponseFrame.model_validate_json(data)
        except ValidationError as e:
            logger.error("Error parsing WebSocket message", error=str(e))
            return

        entry = self._pending.pop(response.id)
        if entry is None:
            return

        if response.error is not None:
            entry.reject(
                ToolExecutionError(
                    response.error.message or "Unknown error",
                    remote_type=response.error.type or None,
                    details=response.error.details,
                    context={"request_id": entry.request_id, "method": entry.method},
                )
            )
        else:
            entry.resolve(response.result)
        logger.debug(
            "Response received",
            request_id=entry.request_id,
            elapsed_ms=round(entry.elapsed_ms(), 1),
            error=response.is_error,
        )

    def _on_request_timeout(self, request_id: str) -> None:
        entry = self._pending.pop(request_id)
        if entry is not None:
            logger.error(
                "Request timed out",
                request_id=request_id,
                method=entry.method,
                timeout_s=self.settings.request_timeout,
            )
            entry.reject(
                BridgeTimeoutError(
                    "Request timed out",
                    context={"request_id": request_id, "method": entry.method},
                )
            )
        self._reconnect()

    def _reconnect(self) -> None:
        """Replace a possibly wedged connection. Outcome is only logged."""
        attempt = self._begin_connect()
        attempt.add_done_callback(self._log_reconnect_result)
        self._reconnect_task = attempt

    @staticmethod
    def _log_reconnect_result(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning("Reconnect to Unity failed", error=str(error))
        else:
            logger.info("Reconnected to Unity WebSocket")

    def _disconnect(self) -> None:
        """Tear down the connection. Safe to call in any state."""
        state = self._state
        if state is not ConnectionState.DISCONNECTED:
            logger.debug("Disconnecting WebSocket", state=state.value)

        # Stop event dispatch first so our own close is not seen as a peer close.
        reader, self._reader = self._reader, None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()

        attempt, self._attempt = self._attempt, None
        if attempt is not None and not attempt.done() and attempt is not asyncio.current_task():
            attempt.cancel()

        ws, self._ws = self._ws, None
        if ws is not None:
            self._close_later(ws)

        self._state = ConnectionState.DISCONNECTED
        self._pending.drain(lambda: BridgeConnectionError("Connection closed"))

    def _close_later(self, ws: ClientConnection) -> None:
        """Close an established socket gracefully in the background."""
        task = asyncio.get_running_loop().create_task(self._close(ws))
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    @staticmethod
    async def _close(ws: ClientConnection) -> None:
        try:
            await ws.close()
        except Exception as e:
            logger.error("Error closing WebSocket", error=str(e))
