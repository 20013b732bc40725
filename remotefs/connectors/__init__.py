"""Protocol connectors for remotefs."""

from remotefs.connectors.connector import (
    Action,
    Connector,
    ConnectorFactory,
    ConnectorListener,
    ThreadedConnector,
    TransportMessage,
)
from remotefs.connectors.ftpconnector import FtpConnector
from remotefs.connectors.sftpconnector import SftpConnector
from remotefs.connectors.factory import DefaultConnectorFactory

__all__ = [
    "Action",
    "Connector",
    "ConnectorFactory",
    "ConnectorListener",
    "ThreadedConnector",
    "TransportMessage",
    "FtpConnector",
    "SftpConnector",
    "DefaultConnectorFactory",
]
