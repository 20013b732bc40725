"""Centralized exception definitions for remotefs."""

from typing import Optional


class RemoteFsError(Exception):
    """Base exception for all remotefs errors."""


# Configuration Exceptions


class ConfigError(RemoteFsError):
    """Base exception for configuration errors."""


class RemoteNotFoundError(ConfigError):
    """Exception raised when a named endpoint configuration is not found."""


class ValidationError(ConfigError):
    """Exception raised when configuration validation fails."""


# Transport Exceptions


class TransportError(RemoteFsError):
    """A remote operation failed.

    The string form is the transport's message verbatim. ``action`` holds
    the action tag that was attempted, when known.
    """

    def __init__(self, message: str, action: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.action = action

    def __str__(self) -> str:
        return self.message


class ClientConnectionError(TransportError):
    """Failed to connect to remote server."""


class AuthenticationError(TransportError):
    """Authentication failed."""


class PermissionDeniedError(TransportError):
    """Permission denied on remote operation."""


class NotFoundError(TransportError):
    """Remote file or directory not found."""


# Content Exceptions


class ContentReadError(RemoteFsError, OSError):
    """Reading the content supplied to put/append failed."""
