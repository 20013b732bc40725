import io
import posixpath
import socket
import stat
from concurrent.futures import Executor
from contextlib import contextmanager
from typing import BinaryIO, Iterator, List, Mapping, Optional, Tuple

import paramiko
from paramiko.sftp_attr import SFTPAttributes
from paramiko.ssh_exception import SSHException

from remotefs.connectors.connector import (
    ConnectorListener,
    ThreadedConnector,
    TransportMessage,
)
from remotefs.endpoint import (
    AVOID_PERMISSION_CHECK,
    PROPERTY_DESTINATION,
    PROPERTY_URI,
    USER_DIR_IS_ROOT,
)
from remotefs.exceptions import (
    AuthenticationError,
    ClientConnectionError,
    NotFoundError,
    PermissionDeniedError,
    TransportError,
)
from remotefs.fileinfo import FileInfo
from remotefs.urls import parse_url

SFTP_DEFAULT_PORT = 22

CHUNK_SIZE = 32768


class SftpDownloadStream(io.RawIOBase):
    """Reads a remote SFTP file and closes the SSH session with it."""

    def __init__(
        self,
        remote_file: paramiko.SFTPFile,
        ssh_client: paramiko.SSHClient,
        sftp_client: paramiko.SFTPClient,
    ) -> None:
        super().__init__()
        self._file = remote_file
        self._ssh_client = ssh_client
        self._sftp_client = sftp_client

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:  # type: ignore[override]
        data = self._file.read(len(buffer))
        size = len(data)
        buffer[:size] = data
        return size

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._file.close()
            self._sftp_client.close()
            self._ssh_client.close()
        finally:
            super().close()


class SftpConnector(ThreadedConnector):
    """SFTP connector built on paramiko.

    Each action opens its own SSH session. For GET the session is handed to
    the returned stream and closed with it.
    """

    def __init__(
        self,
        properties: Mapping[str, str],
        listener: ConnectorListener,
        executor: Executor,
        *,
        timeout: float = 30.0,
    ) -> None:
        super().__init__(properties, listener, executor)
        self.url = parse_url(self.require_property(PROPERTY_URI))
        self.timeout = timeout
        self._live: Optional[paramiko.SSHClient] = None

    # Connection handling

    def _connect(self) -> Tuple[paramiko.SSHClient, paramiko.SFTPClient]:
        ssh_client = paramiko.SSHClient()
        ssh_client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        self._live = ssh_client

        connect_kwargs = {
            "hostname": self.url.host,
            "port": self.url.port or SFTP_DEFAULT_PORT,
            "timeout": self.timeout,
        }

        if self.url.username:
            connect_kwargs["username"] = self.url.username

        if self.url.password:
            connect_kwargs["password"] = self.url.password
            connect_kwargs["look_for_keys"] = False
            connect_kwargs["allow_agent"] = False

        try:
            ssh_client.connect(**connect_kwargs)
            sftp_client = ssh_client.open_sftp()
        except paramiko.AuthenticationException as e:
            self._release(ssh_client)
            raise AuthenticationError(f"Authentication failed: {e}")
        except (SSHException, socket.error) as e:
            self._release(ssh_client)
            raise ClientConnectionError(f"Failed to connect to SFTP server: {e}")

        return ssh_client, sftp_client

    def _release(self, ssh_client: paramiko.SSHClient) -> None:
        if self._live is ssh_client:
            self._live = None
        ssh_client.close()

    @contextmanager
    def _session(self) -> Iterator[paramiko.SFTPClient]:
        ssh_client, sftp_client = self._connect()
        try:
            yield sftp_client
        finally:
            sftp_client.close()
            self._release(ssh_client)

    def close(self) -> None:
        ssh_client = self._live
        if ssh_client is not None:
            self._live = None
            ssh_client.close()

    def _translate_error(self, error: Exception) -> Exception:
        if isinstance(error, FileNotFoundError):
            return NotFoundError(str(error))
        if isinstance(error, PermissionError):
            return PermissionDeniedError(str(error))
        if isinstance(error, paramiko.AuthenticationException):
            return AuthenticationError(str(error))
        return error

    # Paths

    def _remote_path(self, uri: str) -> str:
        path = parse_url(uri).path
        if self.flag(USER_DIR_IS_ROOT):
            return path.lstrip("/") or "."
        return path

    @property
    def path(self) -> str:
        return self._remote_path(self.properties[PROPERTY_URI])

    def _check_parent(self, sftp: paramiko.SFTPClient, path: str) -> None:
        if self.flag(AVOID_PERMISSION_CHECK, default=True):
            return
        parent = posixpath.dirname(path.rstrip("/")) or ("/" if path.startswith("/") else ".")
        if not self._is_directory(sftp, parent):
            raise NotFoundError(f"Parent directory '{parent}' does not exist")

    # Actions

    def _do_get(self, payload: Optional[BinaryIO]) -> List[TransportMessage]:
        ssh_client, sftp_client = self._connect()
        try:
            remote_file = sftp_client.open(self.path, "rb")
            remote_file.prefetch()
        except Exception:
            sftp_client.close()
            self._release(ssh_client)
            raise
        self._live = None
        stream = io.BufferedReader(SftpDownloadStream(remote_file, ssh_client, sftp_client))
        return [TransportMessage(stream=stream)]

    def _do_put(self, payload: Optional[BinaryIO]) -> List[TransportMessage]:
        self._store("wb", payload)
        return []

    def _do_append(self, payload: Optional[BinaryIO]) -> List[TransportMessage]:
        self._store("ab", payload)
        return []

    def _store(self, mode: str, payload: Optional[BinaryIO]) -> None:
        if payload is None:
            raise TransportError("Upload requires a payload")
        path = self.path
        with self._session() as sftp:
            self._check_parent(sftp, path)
            with sftp.open(path, mode) as remote_file:
                remote_file.set_pipelined(True)
                while chunk := payload.read(CHUNK_SIZE):
                    remote_file.write(chunk)

    def _do_delete(self, payload: Optional[BinaryIO]) -> List[TransportMessage]:
        with self._session() as sftp:
            sftp.remove(self.path)
        return []

    def _do_isdir(self, payload: Optional[BinaryIO]) -> List[TransportMessage]:
        with self._session() as sftp:
            is_dir = self._is_directory(sftp, self.path)
        return [TransportMessage(is_directory=is_dir)]

    def _do_list(self, payload: Optional[BinaryIO]) -> List[TransportMessage]:
        path = self.path
        with self._session() as sftp:
            entries = [
                self._to_file_info(attr, posixpath.join(path, attr.filename))
                for attr in sftp.listdir_attr(path)
            ]
        return [TransportMessage(entries=entries)]

    def _do_mkdir(self, payload: Optional[BinaryIO]) -> List[TransportMessage]:
        path = self.path
        with self._session() as sftp:
            self._check_parent(sftp, path)
            sftp.mkdir(path)
        return []

    def _do_rmdir(self, payload: Optional[BinaryIO]) -> List[TransportMessage]:
        with self._session() as sftp:
            sftp.rmdir(self.path)
        return []

    def _do_rename(self, payload: Optional[BinaryIO]) -> List[TransportMessage]:
        destination = self._remote_path(self.require_property(PROPERTY_DESTINATION))
        with self._session() as sftp:
            sftp.rename(self.path, destination)
        return []

    def _do_size(self, payload: Optional[BinaryIO]) -> List[TransportMessage]:
        path = self.path
        with self._session() as sftp:
            attr = sftp.stat(path)
        if attr.st_size is None:
            raise TransportError(f"Server did not report a size for '{path}'")
        return [TransportMessage(size=attr.st_size)]

    # Helpers

    def _is_directory(self, sftp: paramiko.SFTPClient, path: str) -> bool:
        try:
            attr = sftp.stat(path)
        except FileNotFoundError:
            return False
        return attr.st_mode is not None and stat.S_ISDIR(attr.st_mode)

    def _to_file_info(self, attr: SFTPAttributes, path: str) -> FileInfo:
        is_dir = attr.st_mode is not None and stat.S_ISDIR(attr.st_mode)
        return FileInfo(
            path=path,
            size=attr.st_size or 0,
            last_modified=int(attr.st_mtime) * 1000 if attr.st_mtime is not None else 0,
            is_directory=is_dir,
        )
