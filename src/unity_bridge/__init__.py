"""Unity editor bridge client.

This module provides a WebSocket RPC client that lets an MCP server process
call into a running Unity editor and receive correlated responses.
"""

from .client import UnityBridgeClient
from .config import BridgeSettings, get_settings
from .errors import (
    BridgeConnectionError,
    BridgeError,
    BridgeTimeoutError,
    BridgeValidationError,
    ErrorType,
    ToolExecutionError,
)
from .models import ConnectionState
from .resolver import DEFAULT_PORT, EndpointResolver, resolve_port

__all__ = [
    "UnityBridgeClient",
    "BridgeSettings",
    "get_settings",
    "BridgeError",
    "BridgeConnectionError",
    "BridgeTimeoutError",
    "BridgeValidationError",
    "ToolExecutionError",
    "ErrorType",
    "ConnectionState",
    "EndpointResolver",
    "resolve_port",
    "DEFAULT_PORT",
]

__version__ = "0.1.0"
