"""remotefs - one asynchronous client for FTP, FTPS and SFTP servers.

Every operation returns a CompletionSlot that settles exactly once with a
typed result or a typed error, whatever the protocol.

Quick Start:
    from remotefs import InputContent, connect

    config = {
        "protocol": "sftp",
        "host": "files.example.com",
        "secureSocket": {"basicAuth": {"username": "user", "password": "pass"}},
    }

    with connect(config) as client:
        client.mkdir("/inbox").result()
        client.put("/inbox/note.txt", InputContent.from_text("hello")).result()
        for info in client.list("/inbox").result():
            print(info.path, info.size)

    # Slots are awaitable
    async def size_of(client, path):
        return await client.size(path)
"""

from remotefs.client import RemoteFileClient, connect
from remotefs.completion import ClientListener, CompletionSlot
from remotefs.connectors import Action, ConnectorFactory, DefaultConnectorFactory
from remotefs.content import InputContent
from remotefs.endpoint import Endpoint, init_endpoint
from remotefs.exceptions import (
    RemoteFsError,
    ConfigError,
    ValidationError,
    TransportError,
    ClientConnectionError,
    AuthenticationError,
    NotFoundError,
    PermissionDeniedError,
    ContentReadError,
)
from remotefs.fileinfo import FileInfo
from remotefs.urls import build_url

__all__ = [
    # Main facade
    "RemoteFileClient",
    "connect",
    "Endpoint",
    "init_endpoint",
    # Values
    "InputContent",
    "FileInfo",
    "CompletionSlot",
    "ClientListener",
    "Action",
    "build_url",
    # Transport
    "ConnectorFactory",
    "DefaultConnectorFactory",
    # Exceptions
    "RemoteFsError",
    "ConfigError",
    "ValidationError",
    "TransportError",
    "ClientConnectionError",
    "AuthenticationError",
    "NotFoundError",
    "PermissionDeniedError",
    "ContentReadError",
]

__version__ = "0.1.0"
