"""
Error hierarchy for the Unity bridge client.

Every failure surfaced to a caller of the bridge is a ``BridgeError`` tagged
with an ``ErrorType``. Connection problems, request deadlines and failures
reported by the Unity side each get their own subclass so callers can decide
whether to resubmit.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ErrorType(str, Enum):
    """Error categories reported by the bridge."""

    CONNECTION = "connection_error"
    TOOL_EXECUTION = "tool_execution_error"
    TIMEOUT = "timeout_error"
    VALIDATION = "validation_error"
    INTERNAL = "internal_error"


class BridgeError(Exception):
    """Base exception class with error type and optional details."""

    error_type: ErrorType = ErrorType.INTERNAL
    recoverable: bool = True

    def __init__(
        self,
        message: str,
        details: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Initialize bridge error.

        Args:
            message: Human-readable error message
            details: Structured details, usually forwarded from Unity
            context: Additional context information (request id, method, ...)
        """
        super().__init__(message)
        self.message = message
        self.details = details
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization."""
        data: Dict[str, Any] = {
            "type": self.error_type.value,
            "message": self.message,
            "recoverable": self.recoverable,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.details is not None:
            data["details"] = self.details
        if self.context:
            data["context"] = self.context
        return data


class BridgeConnectionError(BridgeError):
    """Transport could not be opened, was closed, or a send failed."""

    error_type = ErrorType.CONNECTION


class BridgeTimeoutError(BridgeError):
    """No response arrived before the request deadline."""

    error_type = ErrorType.TIMEOUT


class ToolExecutionError(BridgeError):
    """Unity explicitly reported a failure for a request."""

    error_type = ErrorType.TOOL_EXECUTION
    recoverable = False

    def __init__(
        self,
        message: str,
        remote_type: Optional[str] = None,
        details: Any = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, details=details, **kwargs)
        self.remote_type = remote_type

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.remote_type:
            data["remote_type"] = self.remote_type
        return data


class BridgeValidationError(BridgeError):
    """Caller supplied an invalid request."""

    error_type = ErrorType.VALIDATION
    recoverable = False
