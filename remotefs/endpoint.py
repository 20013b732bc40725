"""The reusable, immutable handle for one remote server."""

import logging
import posixpath
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from remotefs.config.endpoints import EndpointConfig
from remotefs.urls import build_url

# Property bag keys understood by connectors
PROPERTY_URI = "uri"
PROPERTY_DESTINATION = "destination"
FTP_PASSIVE_MODE = "ftp-passive-mode"
USER_DIR_IS_ROOT = "user-dir-is-root"
AVOID_PERMISSION_CHECK = "avoid-permission-check"


def default_properties() -> Dict[str, str]:
    return {
        FTP_PASSIVE_MODE: "true",
        USER_DIR_IS_ROOT: "false",
        AVOID_PERMISSION_CHECK: "true",
    }


@dataclass(frozen=True)
class Endpoint:
    protocol: str
    host: str
    port: int = -1
    username: Optional[str] = None
    password: Optional[str] = None
    base_path: str = ""
    properties: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(default_properties())
    )

    @classmethod
    def from_config(cls, config: EndpointConfig) -> "Endpoint":
        return cls(
            protocol=config.protocol,
            host=config.host,
            port=config.port,
            username=config.username,
            password=config.password,
            base_path=config.path,
            properties=MappingProxyType(default_properties()),
        )

    def url_for(self, path: str) -> str:
        """Build the URL of ``path`` on this endpoint.

        Relative paths are resolved against the configured base path.

        Raises:
            ConfigError: If the URL cannot be constructed
        """
        if path and not path.startswith("/") and self.base_path:
            path = posixpath.join(self.base_path, path)
        return build_url(
            self.protocol, self.host, self.port, self.username, self.password, path
        )

    def copy_properties(self) -> Dict[str, str]:
        """Return a mutable per-operation copy of the property bag."""
        return dict(self.properties)

    def __repr__(self) -> str:
        # Keep the password out of logs and tracebacks
        return (
            f"Endpoint(protocol={self.protocol!r}, host={self.host!r}, "
            f"port={self.port!r}, username={self.username!r}, "
            f"base_path={self.base_path!r})"
        )


def init_endpoint(
    config: Mapping[str, Any], logger: Optional[logging.Logger] = None
) -> Endpoint:
    """Validate a raw configuration mapping and build an Endpoint from it.

    Raises:
        ConfigError: If the protocol is unsupported or a required field is missing
    """
    return Endpoint.from_config(EndpointConfig.from_dict(config, logger))
