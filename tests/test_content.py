"""Tests for InputContent."""

import io
import unittest

from remotefs.content import InputContent
from remotefs.exceptions import ContentReadError


class TestInputContent(unittest.TestCase):
    def test_text_is_utf8(self):
        stream = InputContent.from_text("héllo").open_stream()
        self.assertEqual(stream.read(), b"h\xc3\xa9llo")

    def test_empty_text(self):
        stream = InputContent(is_file=False, text_content="").open_stream()
        self.assertEqual(stream.read(), b"")

    def test_file_stream_passed_through(self):
        source = io.BytesIO(b"raw")
        self.assertIs(InputContent.from_file(source).open_stream(), source)

    def test_file_flag_wins_over_text(self):
        source = io.BytesIO(b"from file")
        content = InputContent(is_file=True, file_content=source, text_content="ignored")
        self.assertEqual(content.open_stream().read(), b"from file")

    def test_missing_text(self):
        with self.assertRaises(ContentReadError):
            InputContent(is_file=False).open_stream()

    def test_missing_file(self):
        with self.assertRaises(ContentReadError):
            InputContent(is_file=True, text_content="text").open_stream()

    def test_closed_file(self):
        source = io.BytesIO(b"data")
        source.close()
        with self.assertRaises(ContentReadError):
            InputContent.from_file(source).open_stream()

    def test_write_only_file(self):
        class WriteOnly(io.RawIOBase):
            def writable(self):
                return True

        with self.assertRaises(ContentReadError):
            InputContent.from_file(WriteOnly()).open_stream()

    def test_stream_without_readable(self):
        class ReadOnlyObject:
            def read(self, size=-1):
                return b""

        with self.assertRaises(ContentReadError):
            InputContent.from_file(ReadOnlyObject()).open_stream()  # type: ignore[arg-type]

    def test_unencodable_text(self):
        with self.assertRaises(ContentReadError):
            InputContent.from_text("\ud800").open_stream()

    def test_content_error_is_oserror(self):
        self.assertTrue(issubclass(ContentReadError, OSError))


if __name__ == "__main__":
    unittest.main()
