"""
Configuration for the voicemesh server.

ServerConfig holds every tunable with its default and bounds. from_env()
overlays environment variables on top of the defaults.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

# Environment variable -> config field
ENV_VARS: Dict[str, str] = {
    "HOST": "host",
    "PORT": "port",
    "CLIENT_URL": "client_url",
    "LOG_LEVEL": "log_level",
    "VOICEMESH_WS_PATH": "ws_path",
    "VOICEMESH_MAX_ROOM_SIZE": "max_room_size",
    "VOICEMESH_MAX_NAME_LENGTH": "max_name_length",
    "VOICEMESH_ROOM_MAX_AGE": "room_max_age",
    "VOICEMESH_ROOM_SWEEP_INTERVAL": "room_sweep_interval",
    "VOICEMESH_RATE_LIMIT_WINDOW": "rate_limit_window",
    "VOICEMESH_RATE_LIMIT_MAX_ATTEMPTS": "rate_limit_max_attempts",
    "VOICEMESH_RATE_LIMIT_SWEEP_INTERVAL": "rate_limit_sweep_interval",
    "VOICEMESH_MAX_MESSAGE_SIZE": "max_message_size",
}

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class ServerConfig(BaseModel):
    """Signaling server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host address")  # noqa: S104
    port: int = Field(default=3001, ge=1, le=65535, description="Bind port")
    client_url: str = Field(
        default="http://localhost:5173",
        description="Allowed CORS origin for the web client",
    )
    ws_path: str = Field(default="/ws", description="WebSocket endpoint path")

    max_room_size: int = Field(default=5, ge=2, le=32, description="Members per room")
    max_name_length: int = Field(default=16, ge=1, le=64, description="Display name limit")

    room_max_age: float = Field(
        default=24 * 60 * 60, gt=0, description="Seconds before a room expires"
    )
    room_sweep_interval: float = Field(
        default=60 * 60, gt=0, description="Seconds between room expiry sweeps"
    )

    rate_limit_window: float = Field(default=60, gt=0, description="Rate limit window in seconds")
    rate_limit_max_attempts: int = Field(
        default=10, ge=1, description="Create/join attempts allowed per window"
    )
    rate_limit_sweep_interval: float = Field(
        default=5 * 60, gt=0, description="Seconds between rate limit evictions"
    )

    max_message_size: int = Field(
        default=64 * 1024, ge=1024, description="Largest accepted WebSocket frame in bytes"
    )
    log_level: str = Field(default="INFO", description="Root log level")

    @field_validator("ws_path")
    @classmethod
    def validate_ws_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("ws_path must start with '/'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> "ServerConfig":
        """
        Build a config from environment variables.

        Args:
            environ: Mapping to read instead of os.environ.
            **overrides: Field values that win over the environment.

        Raises:
            pydantic.ValidationError: If a value is out of range.
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {
            field_name: environ[var] for var, field_name in ENV_VARS.items() if environ.get(var)
        }
        values.update(overrides)
        return cls(**values)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with timestamped output."""
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")


__all__ = [
    "ENV_VARS",
    "LOG_FORMAT",
    "ServerConfig",
    "configure_logging",
]
