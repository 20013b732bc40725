from concurrent.futures import Executor, ThreadPoolExecutor
from types import TracebackType
from typing import Dict, Mapping, Optional, Type
from typing_extensions import Self

from remotefs.connectors.connector import (
    ConnectorFactory,
    ConnectorListener,
    ThreadedConnector,
)
from remotefs.connectors.ftpconnector import FtpConnector
from remotefs.connectors.sftpconnector import SftpConnector
from remotefs.endpoint import PROPERTY_URI
from remotefs.exceptions import TransportError
from remotefs.urls import parse_url


class DefaultConnectorFactory(ConnectorFactory):
    """Creates FTP, FTPS and SFTP connectors from the ``uri`` property.

    Actions run on a thread pool. If no executor is supplied, one with
    ``max_workers`` threads is created on first use and shut down by close().
    """

    _connector_classes: Dict[str, Type[ThreadedConnector]] = {
        "ftp": FtpConnector,
        "ftps": FtpConnector,
        "sftp": SftpConnector,
    }

    def __init__(
        self,
        executor: Optional[Executor] = None,
        *,
        max_workers: int = 4,
        timeout: float = 30.0,
    ) -> None:
        self._executor = executor
        self._owns_executor = executor is None
        self._closed = False
        self.max_workers = max_workers
        self.timeout = timeout

    def _get_executor(self) -> Executor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="remotefs"
            )
        return self._executor

    def open_connector(
        self, properties: Mapping[str, str], listener: ConnectorListener
    ) -> ThreadedConnector:
        if self._closed:
            raise TransportError("factory is closed")

        uri = properties.get(PROPERTY_URI)
        if not uri:
            raise TransportError(f"Missing required property '{PROPERTY_URI}'")

        try:
            protocol = parse_url(uri).protocol
        except ValueError as e:
            raise TransportError(f"Invalid URI '{uri}': {e}")

        connector_class = self._connector_classes.get(protocol)
        if connector_class is None:
            raise TransportError(f"Unsupported protocol: {protocol}")

        return connector_class(
            properties, listener, self._get_executor(), timeout=self.timeout
        )

    def close(self) -> None:
        self._closed = True
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.close()
