import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from remotefs.exceptions import ConfigError, ValidationError

SUPPORTED_PROTOCOLS = ("ftp", "ftps", "sftp")

INT32_MAX = 2**31 - 1

_LOGGER = logging.getLogger("remotefs")


@dataclass
class EndpointConfig:
    """Normalized connection settings for one remote server."""

    protocol: str
    host: str
    port: int = -1
    path: str = ""
    username: Optional[str] = None
    password: Optional[str] = None

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        logger: Optional[logging.Logger] = None,
    ) -> "EndpointConfig":
        """Create an endpoint configuration from a dictionary.

        Args:
            data: Raw configuration, e.g. ``{"protocol": "sftp", "host": "h",
                  "secureSocket": {"basicAuth": {"username": "a", "password": "b"}}}``
            logger: Logger receiving the port clamp warning

        Returns:
            A validated EndpointConfig

        Raises:
            ConfigError: If the protocol is unsupported or a required field is missing
        """
        if "protocol" not in data or data["protocol"] is None:
            raise ConfigError("Endpoint configuration requires 'protocol' field")

        protocol = str(data["protocol"]).lower()
        if protocol not in SUPPORTED_PROTOCOLS:
            raise ConfigError("only FTP, SFTP and FTPS are supported")

        if not data.get("host"):
            raise ConfigError("Endpoint configuration requires 'host' field")

        username, password = extract_basic_auth(data)

        config = cls(
            protocol=protocol,
            host=data["host"],
            port=coerce_port(data.get("port", -1), "port", logger or _LOGGER),
            path=data.get("path") or "",
            username=username,
            password=password,
        )
        config.validate()
        return config

    def validate(self) -> None:
        if self.protocol not in SUPPORTED_PROTOCOLS:
            raise ConfigError("only FTP, SFTP and FTPS are supported")

        if not isinstance(self.host, str) or not self.host:
            raise ValidationError("Host must be a non-empty string")

        if not isinstance(self.path, str):
            raise ValidationError("Path must be a string")

        for field_name in ("username", "password"):
            value = getattr(self, field_name)
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"Basic auth {field_name} must be a string")


def extract_basic_auth(data: Mapping[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    """Pull username and password out of ``secureSocket.basicAuth``."""
    secure_socket = data.get("secureSocket", data.get("secure_socket"))
    if not isinstance(secure_socket, Mapping):
        return None, None

    basic_auth = secure_socket.get("basicAuth", secure_socket.get("basic_auth"))
    if not isinstance(basic_auth, Mapping):
        return None, None

    return basic_auth.get("username"), basic_auth.get("password")


def coerce_port(value: Any, name: str, logger: logging.Logger) -> int:
    """Narrow a configured port to a signed 32-bit value.

    Non-positive values select the protocol default (-1). Values above the
    32-bit maximum are clamped and a warning is logged.
    """
    if value is None:
        return -1
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer, got {value!r}")

    if value <= 0:
        return -1
    if value > INT32_MAX:
        logger.warning(
            "The value set for %s needs to be less than %d. The %s value is set to %d",
            name,
            INT32_MAX,
            name,
            INT32_MAX,
        )
        return INT32_MAX
    return value
