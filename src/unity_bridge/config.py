"""Configuration module for the Unity bridge client."""

from typing import Annotated, Any, Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .resolver import DEFAULT_PORT, PORT_ENV_VAR


class BridgeSettings(BaseSettings):
    """Bridge client settings loaded from ``UNITY_BRIDGE_*`` variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="UNITY_BRIDGE_",
        extra="ignore",
    )

    # Endpoint
    host: Annotated[str, Field(default="localhost")]
    ws_path: Annotated[str, Field(default="McpUnity")]
    port_env_var: Annotated[str, Field(default=PORT_ENV_VAR, min_length=1)]
    default_port: Annotated[int, Field(default=DEFAULT_PORT, ge=1, le=65535)]

    # Timeouts (seconds)
    request_timeout: Annotated[float, Field(default=10.0, gt=0)]
    connect_timeout: Annotated[float, Field(default=10.0, gt=0)]
    close_timeout: Annotated[float, Field(default=5.0, gt=0)]

    # Identity shown by Unity for the attached tool
    client_name: Annotated[Optional[str], Field(default=None)]

    # Logging
    log_level: Annotated[
        str,
        Field(
            default="INFO",
            pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        ),
    ]
    log_file: Annotated[Optional[str], Field(default=None)]

    @field_validator("ws_path", mode="before")
    @classmethod
    def strip_slashes(cls, v: Any) -> Any:
        """Store the path without surrounding slashes."""
        match v:
            case str() as s:
                return s.strip("/")
            case _:
                return v

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v: Any) -> Any:
        match v:
            case str() as s:
                return s.upper()
            case _:
                return v

    def build_url(self, port: int) -> str:
        """Build the WebSocket URL for the given port."""
        return f"ws://{self.host}:{port}/{self.ws_path}"

    def get_runtime_info(self) -> Dict[str, Any]:
        """Get runtime configuration information."""
        return {
            "endpoint": f"{self.host}/{self.ws_path}",
            "port_env_var": self.port_env_var,
            "timeouts": {
                "request": self.request_timeout,
                "connect": self.connect_timeout,
                "close": self.close_timeout,
            },
            "client_name": self.client_name,
        }


# Global settings instance with lazy initialization
_settings: Optional[BridgeSettings] = None


def get_settings() -> BridgeSettings:
    """Get or create settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = BridgeSettings()
    return _settings


def reload_settings() -> BridgeSettings:
    """Reload settings from environment (useful for testing)."""
    global _settings
    _settings = BridgeSettings()
    return _settings
