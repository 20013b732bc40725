"""Operation dispatcher: the public verbs of remotefs.

Every verb returns a CompletionSlot immediately and never raises; failures
surface through the slot.

Example usage:

    endpoint = init_endpoint({
        "protocol": "sftp",
        "host": "files.example.com",
        "port": 22,
        "secureSocket": {"basicAuth": {"username": "user", "password": "pass"}},
    })

    with RemoteFileClient(endpoint) as client:
        client.put("/inbox/hello.txt", InputContent.from_text("hi")).result()
        with client.get("/inbox/hello.txt").result() as stream:
            data = stream.read()

        # From a coroutine
        entries = await client.list("/inbox")
"""

import logging
from types import TracebackType
from typing import Any, BinaryIO, List, Mapping, Optional
from typing_extensions import Self

from remotefs.completion import ClientListener, CompletionSlot, as_transport_error
from remotefs.connectors.connector import PAYLOAD_ACTIONS, Action, ConnectorFactory
from remotefs.connectors.factory import DefaultConnectorFactory
from remotefs.content import InputContent
from remotefs.endpoint import (
    FTP_PASSIVE_MODE,
    PROPERTY_DESTINATION,
    PROPERTY_URI,
    Endpoint,
    init_endpoint,
)
from remotefs.exceptions import ContentReadError, RemoteFsError
from remotefs.fileinfo import FileInfo

_LOGGER = logging.getLogger("remotefs")


class RemoteFileClient:
    def __init__(
        self,
        endpoint: Endpoint,
        connector_factory: Optional[ConnectorFactory] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            endpoint: The remote server to operate on
            connector_factory: Creates the connector for each operation. If not
                               provided, a DefaultConnectorFactory is created
                               and closed together with this client.
            logger: Logger for this client
        """
        self.endpoint = endpoint
        self._factory = connector_factory or DefaultConnectorFactory()
        self._owns_factory = connector_factory is None
        self.logger = logger or _LOGGER

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        connector_factory: Optional[ConnectorFactory] = None,
        logger: Optional[logging.Logger] = None,
    ) -> "RemoteFileClient":
        """Build the endpoint from a raw configuration and wrap it in a client.

        Raises:
            ConfigError: If the configuration is invalid
        """
        return cls(init_endpoint(config, logger), connector_factory, logger)

    def name(self) -> str:
        return f"{self.endpoint.protocol.upper()}:{self.endpoint.host}"

    # Verbs

    def get(self, path: str) -> "CompletionSlot[BinaryIO]":
        """Fetch a file. The result is a readable stream the caller must close."""
        return self._dispatch(Action.GET, path)

    def put(self, path: str, content: InputContent) -> "CompletionSlot[None]":
        """Write ``content`` to ``path``, replacing any existing file."""
        return self._dispatch(Action.PUT, path, content=content)

    def append(self, path: str, content: InputContent) -> "CompletionSlot[None]":
        """Append ``content`` to the file at ``path``."""
        return self._dispatch(Action.APPEND, path, content=content)

    def delete(self, path: str) -> "CompletionSlot[None]":
        return self._dispatch(Action.DELETE, path)

    def is_directory(self, path: str) -> "CompletionSlot[bool]":
        return self._dispatch(Action.ISDIR, path)

    def list(self, path: str) -> "CompletionSlot[List[FileInfo]]":
        """List a directory. Entries keep the order the server reports."""
        return self._dispatch(Action.LIST, path)

    def mkdir(self, path: str) -> "CompletionSlot[None]":
        """Create a single directory. Parents are not created."""
        return self._dispatch(Action.MKDIR, path)

    def rmdir(self, path: str) -> "CompletionSlot[None]":
        """Remove an empty directory."""
        return self._dispatch(Action.RMDIR, path)

    def rename(self, origin: str, destination: str) -> "CompletionSlot[None]":
        return self._dispatch(Action.RENAME, origin, destination=destination)

    def size(self, path: str) -> "CompletionSlot[int]":
        """Size of a file in bytes. Always uses passive mode."""
        return self._dispatch(
            Action.SIZE, path, overrides={FTP_PASSIVE_MODE: "true"}
        )

    # Dispatch

    def _dispatch(
        self,
        action: Action,
        path: str,
        *,
        destination: Optional[str] = None,
        content: Optional[InputContent] = None,
        overrides: Optional[Mapping[str, str]] = None,
    ) -> CompletionSlot:
        slot: CompletionSlot = CompletionSlot(action)
        self.logger.debug("Dispatching %s for %s on %s", action.value, path, self.name())

        try:
            properties = self.endpoint.copy_properties()
            properties[PROPERTY_URI] = self.endpoint.url_for(path)
            if destination is not None:
                properties[PROPERTY_DESTINATION] = self.endpoint.url_for(destination)
            if overrides:
                properties.update(overrides)
            payload = None
            if action in PAYLOAD_ACTIONS:
                if content is None:
                    raise ContentReadError(f"{action.value} requires input content")
                payload = content.open_stream()
        except RemoteFsError as e:
            slot.fail(e)
            return slot

        listener = ClientListener(slot)
        try:
            connector = self._factory.open_connector(properties, listener)
        except Exception as e:
            if payload is not None:
                payload.close()
            slot.fail(as_transport_error(e, action))
            return slot

        slot.add_cancel_callback(connector.close)
        try:
            connector.send(payload, action)
        except Exception as e:
            if payload is not None:
                payload.close()
            listener.on_error(e)
        return slot

    # Lifecycle

    def close(self) -> None:
        if self._owns_factory:
            self._factory.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.close()


def connect(
    config: Mapping[str, Any],
    connector_factory: Optional[ConnectorFactory] = None,
    logger: Optional[logging.Logger] = None,
) -> RemoteFileClient:
    """Create a client from a raw endpoint configuration.

    Example:
        with connect({"protocol": "ftp", "host": "ftp.example.com"}) as client:
            print(client.list("/pub").result())
    """
    return RemoteFileClient.from_config(config, connector_factory, logger)
