from dataclasses import dataclass
from io import BytesIO
from typing import BinaryIO, Optional

from remotefs.exceptions import ContentReadError

TEXT_ENCODING = "utf-8"


@dataclass
class InputContent:
    """Content supplied to put and append.

    Either a readable binary stream (``is_file=True``) or a text string,
    which is sent as UTF-8.
    """

    is_file: bool
    file_content: Optional[BinaryIO] = None
    text_content: Optional[str] = None

    @classmethod
    def from_file(cls, stream: BinaryIO) -> "InputContent":
        return cls(is_file=True, file_content=stream)

    @classmethod
    def from_text(cls, text: str) -> "InputContent":
        return cls(is_file=False, text_content=text)

    def open_stream(self) -> BinaryIO:
        """Return the stream the connector should drain.

        Raises:
            ContentReadError: If no usable source is present
        """
        if self.is_file:
            stream = self.file_content
            if stream is None:
                raise ContentReadError("File content requires a readable stream")
            try:
                readable = stream.readable()
            except (AttributeError, OSError, ValueError) as e:
                raise ContentReadError(f"Failed to read file content: {e}") from e
            if not readable:
                raise ContentReadError("File content stream is not readable")
            return stream

        if self.text_content is None:
            raise ContentReadError("Text content is missing")
        try:
            return BytesIO(self.text_content.encode(TEXT_ENCODING))
        except UnicodeEncodeError as e:
            raise ContentReadError(f"Failed to encode text content: {e}") from e
