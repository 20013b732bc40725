"""Tests for Endpoint construction."""

import unittest
from dataclasses import FrozenInstanceError

from remotefs.endpoint import (
    AVOID_PERMISSION_CHECK,
    FTP_PASSIVE_MODE,
    USER_DIR_IS_ROOT,
    Endpoint,
    init_endpoint,
)
from remotefs.exceptions import ConfigError
from tests.fixtures.test_data import TestDataFixtures


class TestInitEndpoint(unittest.TestCase):
    def test_sftp_endpoint(self):
        endpoint = init_endpoint(TestDataFixtures.sftp_config())

        self.assertEqual(endpoint.protocol, "sftp")
        self.assertEqual(endpoint.host, "h")
        self.assertEqual(endpoint.port, 22)
        self.assertEqual(endpoint.username, "a")
        self.assertEqual(endpoint.password, "b")

    def test_protocol_normalized(self):
        endpoint = init_endpoint(TestDataFixtures.ftp_config())
        self.assertEqual(endpoint.protocol, "ftp")

    def test_default_properties(self):
        """Test the property bag every endpoint starts with."""
        endpoint = init_endpoint({"protocol": "ftps", "host": "h"})

        self.assertEqual(
            dict(endpoint.properties),
            {
                FTP_PASSIVE_MODE: "true",
                USER_DIR_IS_ROOT: "false",
                AVOID_PERMISSION_CHECK: "true",
            },
        )

    def test_unsupported_protocol(self):
        with self.assertRaises(ConfigError):
            init_endpoint({"protocol": "http", "host": "h"})


class TestEndpoint(unittest.TestCase):
    def setUp(self):
        self.endpoint = init_endpoint(TestDataFixtures.sftp_config())

    def test_immutable(self):
        with self.assertRaises(FrozenInstanceError):
            self.endpoint.host = "other"  # type: ignore[misc]
        with self.assertRaises(TypeError):
            self.endpoint.properties["uri"] = "x"  # type: ignore[index]

    def test_copy_properties_is_independent(self):
        copy = self.endpoint.copy_properties()
        copy[FTP_PASSIVE_MODE] = "false"

        self.assertEqual(self.endpoint.properties[FTP_PASSIVE_MODE], "true")
        self.assertIsNot(copy, self.endpoint.copy_properties())

    def test_url_for(self):
        self.assertEqual(self.endpoint.url_for("/x.txt"), "sftp://a:b@h:22/x.txt")

    def test_url_for_relative_path_with_base(self):
        endpoint = Endpoint(protocol="ftp", host="h", base_path="/srv/data")
        self.assertEqual(endpoint.url_for("in/a.csv"), "ftp://h/srv/data/in/a.csv")
        self.assertEqual(endpoint.url_for("/abs.csv"), "ftp://h/abs.csv")

    def test_url_for_relative_path_without_base(self):
        endpoint = Endpoint(protocol="ftp", host="h")
        self.assertEqual(endpoint.url_for("a.csv"), "ftp://h/a.csv")

    def test_repr_hides_password(self):
        text = repr(self.endpoint)
        self.assertIn("'h'", text)
        self.assertNotIn("'b'", text)


if __name__ == "__main__":
    unittest.main()
