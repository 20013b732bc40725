import logging
import tomllib
from dataclasses import dataclass
from typing import Dict, IO, List, Optional

from remotefs.config.endpoints import EndpointConfig
from remotefs.exceptions import ConfigError, RemoteNotFoundError, ValidationError

__all__ = ["ConfigError", "RemoteNotFoundError", "ValidationError", "Config"]


@dataclass
class Config:
    endpoints: Dict[str, EndpointConfig]
    warnings: List[str]

    @classmethod
    def from_file(
        cls,
        config_file: Optional[IO[bytes]],
        logger: Optional[logging.Logger] = None,
    ) -> "Config":
        """Load named endpoint configurations from a TOML file.

        Each top-level table is one endpoint, named after the table:

            [backup]
            protocol = "sftp"
            host = "backup.example.com"
            port = 22

            [backup.secureSocket.basicAuth]
            username = "user"
            password = "pass"

        Args:
            config_file: Open binary file handle to the TOML configuration
            logger: Logger passed on to each endpoint's normalization

        Returns:
            Config instance with all valid endpoints loaded

        Raises:
            ConfigError: If configuration file cannot be loaded or parsed
            ValidationError: If no valid endpoint remains
        """
        if config_file is None:
            raise ConfigError("Configuration file not provided")

        try:
            config_data = tomllib.load(config_file)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Failed to parse TOML configuration: {e}")

        endpoints = {}
        warnings = []

        for endpoint_name, endpoint_data in config_data.items():
            if not isinstance(endpoint_data, dict):
                warnings.append(
                    f"Endpoint '{endpoint_name}' configuration must be a table - skipping"
                )
                continue

            try:
                endpoints[endpoint_name] = EndpointConfig.from_dict(endpoint_data, logger)
            except ConfigError as e:
                warnings.append(
                    f"Invalid configuration for endpoint '{endpoint_name}': {e} - skipping"
                )

        config = cls(endpoints=endpoints, warnings=warnings)
        config.validate()
        return config

    def get_endpoint(self, name: str) -> EndpointConfig:
        """Get an endpoint configuration by name.

        Raises:
            RemoteNotFoundError: If the endpoint is not configured
        """
        if name not in self.endpoints:
            available = ", ".join(self.endpoints.keys())
            raise RemoteNotFoundError(
                f"Endpoint '{name}' not found in configuration. "
                f"Available endpoints: {available}"
            )

        return self.endpoints[name]

    def validate(self) -> None:
        if not self.endpoints:
            raise ValidationError("Configuration must contain at least one endpoint")

        for endpoint_name, endpoint_config in self.endpoints.items():
            try:
                endpoint_config.validate()
            except ConfigError as e:
                raise ValidationError(f"Endpoint '{endpoint_name}': {e}")

    def list_endpoints(self) -> Dict[str, str]:
        return {name: config.protocol for name, config in self.endpoints.items()}

    def get_warnings(self) -> List[str]:
        """Get list of configuration warnings."""
        return self.warnings.copy()
