"""Data models for the Unity bridge client."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ConnectionState(Enum):
    """Lifecycle states of the bridge connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"


class RequestFrame(BaseModel):
    """Request sent to Unity. ``id`` is always filled in before sending."""

    id: str
    method: str = Field(min_length=1)
    params: Any = None


class ResponseError(BaseModel):
    """Error member of a Unity response."""

    model_config = ConfigDict(extra="allow")

    message: str = "Unknown error"
    type: str = ""
    details: Optional[Any] = None


class ResponseFrame(BaseModel):
    """Response received from Unity."""

    model_config = ConfigDict(extra="ignore")

    jsonrpc: str = "2.0"
    id: Optional[str] = None
    result: Optional[Any] = None
    error: Optional[ResponseError] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Optional[str]:
        """Numeric ids are matched by their string form."""
        match v:
            case None | str():
                return v
            case bool():
                raise ValueError("id must be a string")
            case int():
                return str(v)
            case _:
                raise ValueError("id must be a string")

    @field_validator("error", mode="before")
    @classmethod
    def coerce_error(cls, v: Any) -> Any:
        """Accept a bare error string as the error message."""
        match v:
            case str() as s:
                return {"message": s or "Unknown error"}
            case _:
                return v

    @property
    def is_error(self) -> bool:
        return self.error is not None


@dataclass
class PendingRequest:
    """Tracks a request awaiting its response from Unity."""

    request_id: str
    method: str
    future: asyncio.Future
    timer: Optional[asyncio.TimerHandle] = None
    created_at: datetime = field(default_factory=datetime.now)

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None

    def resolve(self, result: Any) -> None:
        """Complete the request successfully."""
        self.cancel_timer()
        if not self.future.done():
            self.future.set_result(result)

    def reject(self, error: BaseException) -> None:
        """Fail the request."""
        self.cancel_timer()
        if not self.future.done():
            self.future.set_exception(error)

    def elapsed_ms(self) -> float:
        return (datetime.now() - self.created_at).total_seconds() * 1000
