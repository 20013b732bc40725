"""Configuration management for remotefs."""

from .base import Config, ConfigError, RemoteNotFoundError, ValidationError
from .endpoints import (
    EndpointConfig,
    SUPPORTED_PROTOCOLS,
    INT32_MAX,
    coerce_port,
    extract_basic_auth,
)

__all__ = [
    "Config",
    "ConfigError",
    "RemoteNotFoundError",
    "ValidationError",
    "EndpointConfig",
    "SUPPORTED_PROTOCOLS",
    "INT32_MAX",
    "coerce_port",
    "extract_basic_auth",
]
