"""Tests for SftpConnector class."""

import io
import stat
import unittest
from unittest.mock import MagicMock, patch

import paramiko
from paramiko.sftp_attr import SFTPAttributes

from remotefs.connectors.connector import Action
from remotefs.connectors.sftpconnector import CHUNK_SIZE, SftpConnector
from remotefs.endpoint import default_properties
from remotefs.exceptions import (
    AuthenticationError,
    ClientConnectionError,
    NotFoundError,
    PermissionDeniedError,
    TransportError,
)
from remotefs.fileinfo import FileInfo
from tests.fixtures.stub_transport import ImmediateExecutor, RecordingListener


class FakeRemoteFile:
    """Minimal stand-in for paramiko.SFTPFile opened for reading."""

    def __init__(self, data: bytes) -> None:
        self._buffer = io.BytesIO(data)
        self.prefetched = False
        self.closed = False

    def prefetch(self) -> None:
        self.prefetched = True

    def read(self, size: int) -> bytes:
        return self._buffer.read(size)

    def close(self) -> None:
        self.closed = True


def make_attr(filename="", mode=stat.S_IFREG | 0o644, size=None, mtime=None):
    attr = SFTPAttributes()
    attr.filename = filename
    attr.st_mode = mode
    attr.st_size = size
    attr.st_mtime = mtime
    return attr


class TestSftpConnector(unittest.TestCase):
    """Test cases for SftpConnector class."""

    def setUp(self):
        """Set up test fixtures."""
        self.listener = RecordingListener()
        self.executor = ImmediateExecutor()

        patcher = patch("remotefs.connectors.sftpconnector.paramiko.SSHClient")
        self.mock_ssh_class = patcher.start()
        self.addCleanup(patcher.stop)

        self.mock_ssh = MagicMock()
        self.mock_sftp = MagicMock()
        self.mock_ssh_class.return_value = self.mock_ssh
        self.mock_ssh.open_sftp.return_value = self.mock_sftp

    def make_connector(self, path="/x.txt", **overrides):
        properties = default_properties()
        properties["uri"] = overrides.pop("uri", f"sftp://a:b@h:22{path}")
        properties.update(overrides)
        return SftpConnector(properties, self.listener, self.executor)

    def test_connect_with_password(self):
        """Test that password logins skip key lookup."""
        self.make_connector().send(None, Action.DELETE)

        self.mock_ssh.connect.assert_called_once_with(
            hostname="h",
            port=22,
            timeout=30.0,
            username="a",
            password="b",
            look_for_keys=False,
            allow_agent=False,
        )
        self.mock_ssh.set_missing_host_key_policy.assert_called_once()
        policy = self.mock_ssh.set_missing_host_key_policy.call_args[0][0]
        self.assertIsInstance(policy, paramiko.AutoAddPolicy)
        self.mock_sftp.remove.assert_called_once_with("/x.txt")
        self.mock_sftp.close.assert_called_once()
        self.mock_ssh.close.assert_called_once()
        self.assertEqual(self.listener.completed, 1)

    def test_connect_with_keys(self):
        self.make_connector(uri="sftp://deploy@h/x").send(None, Action.DELETE)

        self.mock_ssh.connect.assert_called_once_with(
            hostname="h", port=22, timeout=30.0, username="deploy"
        )

    def test_authentication_failure(self):
        self.mock_ssh.connect.side_effect = paramiko.AuthenticationException(
            "Authentication failed."
        )

        self.make_connector().send(None, Action.DELETE)

        error = self.listener.errors[0]
        self.assertIsInstance(error, AuthenticationError)
        self.assertIn("Authentication failed", str(error))
        self.mock_ssh.close.assert_called_once()
        self.mock_sftp.remove.assert_not_called()

    def test_connection_failure(self):
        for side_effect in [paramiko.SSHException("banner error"), OSError("unreachable")]:
            with self.subTest(error=side_effect):
                self.listener = RecordingListener()
                self.mock_ssh.connect.side_effect = side_effect

                self.make_connector().send(None, Action.MKDIR)

                self.assertIsInstance(self.listener.errors[0], ClientConnectionError)

    def test_errors_translated(self):
        cases = [
            (FileNotFoundError(2, "No such file"), NotFoundError),
            (PermissionError(13, "Permission denied"), PermissionDeniedError),
        ]
        for side_effect, error_class in cases:
            with self.subTest(error=side_effect):
                self.listener = RecordingListener()
                self.mock_sftp.remove.side_effect = side_effect

                self.make_connector().send(None, Action.DELETE)

                self.assertIsInstance(self.listener.errors[0], error_class)

    def test_get_operation(self):
        """Test that GET hands back a stream owning the session."""
        remote_file = FakeRemoteFile(b"ABC")
        self.mock_sftp.open.return_value = remote_file

        self.make_connector().send(None, Action.GET)

        self.mock_sftp.open.assert_called_once_with("/x.txt", "rb")
        self.assertTrue(remote_file.prefetched)
        self.mock_ssh.close.assert_not_called()

        with self.listener.messages[0].stream as stream:
            self.assertEqual(stream.read(), b"ABC")

        self.assertTrue(remote_file.closed)
        self.mock_sftp.close.assert_called_once()
        self.mock_ssh.close.assert_called_once()

    def test_get_missing_file(self):
        self.mock_sftp.open.side_effect = FileNotFoundError(2, "No such file")

        self.make_connector().send(None, Action.GET)

        self.assertIsInstance(self.listener.errors[0], NotFoundError)
        self.mock_ssh.close.assert_called_once()

    def test_put_operation(self):
        remote_file = MagicMock()
        self.mock_sftp.open.return_value.__enter__.return_value = remote_file
        data = b"x" * (CHUNK_SIZE + 10)
        payload = io.BytesIO(data)

        self.make_connector(path="/up.bin").send(payload, Action.PUT)

        self.mock_sftp.open.assert_called_once_with("/up.bin", "wb")
        remote_file.set_pipelined.assert_called_once_with(True)
        written = b"".join(c.args[0] for c in remote_file.write.call_args_list)
        self.assertEqual(written, data)
        self.assertEqual(remote_file.write.call_count, 2)
        self.assertTrue(payload.closed)
        self.assertEqual(self.listener.completed, 1)

    def test_append_operation(self):
        self.make_connector(path="/log.txt").send(io.BytesIO(b"line"), Action.APPEND)

        self.mock_sftp.open.assert_called_once_with("/log.txt", "ab")

    def test_is_directory(self):
        self.mock_sftp.stat.return_value = make_attr(mode=stat.S_IFDIR | 0o755)

        self.make_connector(path="/dir").send(None, Action.ISDIR)

        self.assertTrue(self.listener.messages[0].is_directory)

    def test_is_directory_regular_file(self):
        self.mock_sftp.stat.return_value = make_attr()

        self.make_connector().send(None, Action.ISDIR)

        self.assertFalse(self.listener.messages[0].is_directory)

    def test_is_directory_missing(self):
        self.mock_sftp.stat.side_effect = FileNotFoundError(2, "No such file")

        self.make_connector().send(None, Action.ISDIR)

        self.assertFalse(self.listener.messages[0].is_directory)
        self.assertEqual(self.listener.errors, [])

    def test_ls_operation(self):
        self.mock_sftp.listdir_attr.return_value = [
            make_attr("a.txt", size=1024, mtime=1673778600),
            make_attr("b", mode=stat.S_IFDIR | 0o755, size=4096, mtime=1673687700),
        ]

        self.make_connector(path="/dir").send(None, Action.LIST)

        self.mock_sftp.listdir_attr.assert_called_once_with("/dir")
        self.assertEqual(
            self.listener.messages[0].entries,
            [
                FileInfo("/dir/a.txt", 1024, 1673778600000, False),
                FileInfo("/dir/b", 4096, 1673687700000, True),
            ],
        )

    def test_mkdir_operation(self):
        self.make_connector(path="/new").send(None, Action.MKDIR)

        self.mock_sftp.mkdir.assert_called_once_with("/new")
        self.mock_sftp.stat.assert_not_called()

    def test_mkdir_checks_parent(self):
        self.mock_sftp.stat.side_effect = FileNotFoundError(2, "No such file")

        self.make_connector(
            path="/missing/new", **{"avoid-permission-check": "false"}
        ).send(None, Action.MKDIR)

        self.mock_sftp.stat.assert_called_once_with("/missing")
        self.assertIsInstance(self.listener.errors[0], NotFoundError)
        self.mock_sftp.mkdir.assert_not_called()

    def test_rmdir_operation(self):
        self.make_connector(path="/old").send(None, Action.RMDIR)

        self.mock_sftp.rmdir.assert_called_once_with("/old")

    def test_rename_operation(self):
        self.make_connector(path="/a", destination="sftp://a:b@h:22/b").send(
            None, Action.RENAME
        )

        self.mock_sftp.rename.assert_called_once_with("/a", "/b")

    def test_size_operation(self):
        self.mock_sftp.stat.return_value = make_attr(size=42)

        self.make_connector().send(None, Action.SIZE)

        self.assertEqual(self.listener.messages[0].size, 42)

    def test_size_unreported(self):
        self.mock_sftp.stat.return_value = make_attr(size=None)

        self.make_connector().send(None, Action.SIZE)

        self.assertIsInstance(self.listener.errors[0], TransportError)

    def test_user_dir_is_root(self):
        self.make_connector(path="/inbox/a.txt", **{"user-dir-is-root": "true"}).send(
            None, Action.DELETE
        )

        self.mock_sftp.remove.assert_called_once_with("inbox/a.txt")

    def test_close_aborts_live_session(self):
        connector = self.make_connector()
        self.mock_sftp.remove.side_effect = lambda path: connector.close()

        connector.send(None, Action.DELETE)

        self.assertGreaterEqual(self.mock_ssh.close.call_count, 1)
        self.assertEqual(self.listener.completed, 1)


if __name__ == "__main__":
    unittest.main()
