import io
import posixpath
import re
import socket
from concurrent.futures import Executor
from contextlib import contextmanager
from datetime import datetime
from ftplib import FTP, FTP_TLS, error_perm, error_temp, error_reply
from typing import BinaryIO, Callable, Iterator, List, Mapping, Optional, Union

from remotefs.connectors.connector import (
    ConnectorListener,
    ThreadedConnector,
    TransportMessage,
)
from remotefs.endpoint import (
    AVOID_PERMISSION_CHECK,
    FTP_PASSIVE_MODE,
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
from remotefs.fileinfo import FileInfo, to_epoch_millis
from remotefs.urls import parse_url

FTP_DEFAULT_PORT = 21

_FTP_ERRORS = (error_perm, error_temp, error_reply, OSError, EOFError)


class FtpDownloadStream(io.RawIOBase):
    """Reads a RETR data connection and finishes the transfer on close.

    If the data was read to the end, a failure reply from the server is
    raised from close() as a TransportError.
    """

    def __init__(
        self,
        ftp: FTP,
        conn: socket.socket,
        disconnect: Callable[[FTP], None],
        translate: Callable[[Exception], Exception],
    ) -> None:
        super().__init__()
        self._ftp = ftp
        self._conn = conn
        self._disconnect = disconnect
        self._translate = translate
        self._drained = False

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:  # type: ignore[override]
        size = self._conn.recv_into(buffer)
        if size == 0:
            self._drained = True
        return size

    def close(self) -> None:
        if self.closed:
            return
        failure: Optional[Exception] = None
        try:
            self._conn.close()
            try:
                self._ftp.voidresp()
            except _FTP_ERRORS as e:
                # Server reports an aborted transfer when closed early
                if self._drained:
                    failure = e
            self._disconnect(self._ftp)
        finally:
            super().close()

        if failure is not None:
            error = self._translate(failure)
            if not isinstance(error, TransportError):
                error = TransportError(str(failure))
            if error.action is None:
                error.action = "GET"
            raise error from failure


class FtpConnector(ThreadedConnector):
    """FTP and FTPS connector built on ftplib.

    A new control connection is opened for each action. For GET the
    connection is handed to the returned stream and closed with it.
    """

    # Directory listing patterns
    _UNIX_PATTERN = re.compile(
        r"^([\-ld])([rwxs\-]{9})\s+(\d+)\s+(\S+)\s+(\S+)\s+(\d+)\s+"
        r"(\w{3}\s+\d{1,2}\s+(?:\d{1,2}:\d{1,2}|\d{4}))\s+(.+)$"
    )
    _WINDOWS_PATTERN = re.compile(
        r"^(\d{2}-\d{2}-\d{2}\s+\d{2}:\d{2}[AP]M)\s+(<DIR>|\d+)\s+(.+)$"
    )

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
        self.tls = self.url.protocol == "ftps"
        self.timeout = timeout
        self._live: Optional[Union[FTP, FTP_TLS]] = None

    # Connection handling

    def _connect(self) -> Union[FTP, FTP_TLS]:
        ftp = FTP_TLS() if self.tls else FTP()
        self._live = ftp
        try:
            ftp.connect(self.url.host, self.url.port or FTP_DEFAULT_PORT, timeout=self.timeout)
            if self.tls:
                ftp.auth()  # type: ignore[union-attr]
            ftp.login(
                user=self.url.username or "anonymous",
                passwd=self.url.password if self.url.password is not None else "anonymous@",
            )
            if self.tls:
                ftp.prot_p()  # type: ignore[union-attr]
            ftp.set_pasv(self.flag(FTP_PASSIVE_MODE, default=True))
        except error_perm as e:
            self._abort(ftp)
            error_str = str(e)
            if error_str.startswith("530"):
                raise AuthenticationError(f"Authentication failed: {error_str}")
            raise ClientConnectionError(f"FTP error: {error_str}")
        except (error_temp, error_reply) as e:
            self._abort(ftp)
            raise ClientConnectionError(f"FTP error: {e}")
        except (socket.gaierror, socket.timeout, OSError, EOFError) as e:
            self._abort(ftp)
            raise ClientConnectionError(f"Failed to connect to {self.url.host}: {e}")
        return ftp

    def _abort(self, ftp: FTP) -> None:
        if self._live is ftp:
            self._live = None
        ftp.close()

    def _disconnect(self, ftp: FTP) -> None:
        if self._live is ftp:
            self._live = None
        try:
            ftp.quit()
        except _FTP_ERRORS:
            # If quit fails (e.g., connection already closed), force close
            ftp.close()

    @contextmanager
    def _session(self) -> Iterator[Union[FTP, FTP_TLS]]:
        ftp = self._connect()
        try:
            yield ftp
        finally:
            self._disconnect(ftp)

    def close(self) -> None:
        ftp = self._live
        if ftp is not None:
            self._live = None
            ftp.close()

    def _translate_error(self, error: Exception) -> Exception:
        if isinstance(error, error_perm):
            error_str = str(error)
            if error_str.startswith("530"):
                return AuthenticationError(error_str)
            if error_str.startswith("550"):
                return NotFoundError(error_str)
            if error_str.startswith(("532", "553")):
                return PermissionDeniedError(error_str)
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

    def _check_parent(self, ftp: FTP, path: str) -> None:
        if self.flag(AVOID_PERMISSION_CHECK, default=True):
            return
        parent = posixpath.dirname(path.rstrip("/")) or ("/" if path.startswith("/") else ".")
        if not self._is_directory(ftp, parent):
            raise NotFoundError(f"Parent directory '{parent}' does not exist")

    # Actions

    def _do_get(self, payload: Optional[BinaryIO]) -> List[TransportMessage]:
        ftp = self._connect()
        try:
            ftp.voidcmd("TYPE I")
            conn = ftp.transfercmd(f"RETR {self.path}")
        except Exception:
            self._disconnect(ftp)
            raise
        self._live = None
        stream = io.BufferedReader(
            FtpDownloadStream(ftp, conn, self._disconnect, self._translate_error)
        )
        return [TransportMessage(stream=stream)]

    def _do_put(self, payload: Optional[BinaryIO]) -> List[TransportMessage]:
        self._store("STOR", payload)
        return []

    def _do_append(self, payload: Optional[BinaryIO]) -> List[TransportMessage]:
        self._store("APPE", payload)
        return []

    def _store(self, command: str, payload: Optional[BinaryIO]) -> None:
        if payload is None:
            raise TransportError(f"{command} requires a payload")
        path = self.path
        with self._session() as ftp:
            self._check_parent(ftp, path)
            ftp.storbinary(f"{command} {path}", payload)

    def _do_delete(self, payload: Optional[BinaryIO]) -> List[TransportMessage]:
        with self._session() as ftp:
            ftp.delete(self.path)
        return []

    def _do_isdir(self, payload: Optional[BinaryIO]) -> List[TransportMessage]:
        with self._session() as ftp:
            is_dir = self._is_directory(ftp, self.path)
        return [TransportMessage(is_directory=is_dir)]

    def _do_list(self, payload: Optional[BinaryIO]) -> List[TransportMessage]:
        with self._session() as ftp:
            entries = self._ls(ftp, self.path)
        return [TransportMessage(entries=entries)]

    def _do_mkdir(self, payload: Optional[BinaryIO]) -> List[TransportMessage]:
        path = self.path
        with self._session() as ftp:
            self._check_parent(ftp, path)
            ftp.mkd(path)
        return []

    def _do_rmdir(self, payload: Optional[BinaryIO]) -> List[TransportMessage]:
        with self._session() as ftp:
            ftp.rmd(self.path)
        return []

    def _do_rename(self, payload: Optional[BinaryIO]) -> List[TransportMessage]:
        destination = self._remote_path(self.require_property(PROPERTY_DESTINATION))
        with self._session() as ftp:
            ftp.rename(self.path, destination)
        return []

    def _do_size(self, payload: Optional[BinaryIO]) -> List[TransportMessage]:
        path = self.path
        with self._session() as ftp:
            ftp.voidcmd("TYPE I")
            size = ftp.size(path)
        if size is None:
            raise TransportError(f"Server did not report a size for '{path}'")
        return [TransportMessage(size=size)]

    # Listing

    def _is_directory(self, ftp: FTP, path_str: str) -> bool:
        """
        Check if a path on the FTP server is a directory.

        Args:
            ftp: Connected FTP session
            path_str: The path string to check

        Returns:
            True if the path is a directory, False otherwise
        """
        original_dir = ftp.pwd()
        try:
            ftp.cwd(path_str)
            return True
        except (error_perm, error_temp):
            # Cannot cwd into path - it's not a directory (or doesn't exist)
            return False
        finally:
            try:
                ftp.cwd(original_dir)
            except (error_perm, error_temp):
                # Best effort to restore directory - if it fails, we can't do much
                pass

    def _ls(self, ftp: FTP, path: str) -> List[FileInfo]:
        """List directory contents, trying MLSD first with LIST fallback."""
        try:
            # Try MLSD first (RFC 3659 standardized format)
            return self._ls_mlsd(ftp, path)
        except error_perm:
            # MLSD not supported, fall back to LIST parsing
            return self._ls_list(ftp, path)

    def _ls_mlsd(self, ftp: FTP, path: str) -> List[FileInfo]:
        """List directory contents using MLSD command (RFC 3659).

        Raises:
            error_perm: If MLSD is not supported by the server
        """
        result: List[FileInfo] = []

        for name, facts in ftp.mlsd(path):
            # Skip current and parent directory entries
            file_type_str = facts.get("type", "").lower()
            if file_type_str in ("cdir", "pdir"):
                continue

            size = 0
            if "size" in facts:
                try:
                    size = int(facts["size"])
                except ValueError:
                    pass

            # Parse modification time (YYYYMMDDHHMMSS format, UTC)
            last_modified = 0
            if "modify" in facts:
                try:
                    modify_str = facts["modify"].split(".")[0]
                    last_modified = to_epoch_millis(
                        datetime.strptime(modify_str, "%Y%m%d%H%M%S")
                    )
                except ValueError:
                    pass

            result.append(
                FileInfo(
                    path=posixpath.join(path, name),
                    size=size,
                    last_modified=last_modified,
                    is_directory=file_type_str == "dir",
                )
            )

        return result

    def _ls_list(self, ftp: FTP, path: str) -> List[FileInfo]:
        """List directory contents using LIST command with regex parsing.

        This is a fallback for servers that don't support MLSD.
        """
        result: List[FileInfo] = []

        lines: List[str] = []
        ftp.cwd(path)
        ftp.dir(lines.append)

        for line in lines:
            if info := self._parse_list_line(line, path):
                result.append(info)

        # If detailed listing doesn't work, fall back to simpler listing
        if not result:
            for name in ftp.nlst():
                full_path = posixpath.join(path, name)
                result.append(
                    FileInfo(
                        path=full_path,
                        is_directory=self._is_directory(ftp, full_path),
                    )
                )

        return result

    def _parse_list_line(self, line: str, directory: str) -> Optional[FileInfo]:
        # Try Unix style first
        unix_match = self._UNIX_PATTERN.match(line)
        if unix_match:
            date_str = unix_match.group(7)
            try:
                modified_time: Optional[datetime] = datetime.strptime(date_str, "%b %d %Y")
            except ValueError:
                try:
                    # Recent entries carry a time instead of the year
                    current_year = datetime.now().year
                    modified_time = datetime.strptime(
                        f"{current_year} {date_str}", "%Y %b %d %H:%M"
                    )
                except ValueError:
                    modified_time = None

            return FileInfo(
                path=posixpath.join(directory, unix_match.group(8)),
                size=int(unix_match.group(6)),
                last_modified=to_epoch_millis(modified_time) if modified_time else 0,
                is_directory=unix_match.group(1) == "d",
            )

        # Try Windows style
        windows_match = self._WINDOWS_PATTERN.match(line)
        if windows_match:
            try:
                modified_time = datetime.strptime(windows_match.group(1), "%m-%d-%y %I:%M%p")
            except ValueError:
                modified_time = None

            dir_or_size = windows_match.group(2)
            is_dir = dir_or_size == "<DIR>"

            return FileInfo(
                path=posixpath.join(directory, windows_match.group(3)),
                size=0 if is_dir else int(dir_or_size),
                last_modified=to_epoch_millis(modified_time) if modified_time else 0,
                is_directory=is_dir,
            )

        # If we couldn't parse the line format, return None
        return None
