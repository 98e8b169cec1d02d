"""
Document handles and request payload decoding.

A Document wraps a byte stream together with a content type. It is the unit
that flows between the asset loader, the remote form services and the HTTP
response. Streams are single pass: once a document has been read it cannot be
read again, mirroring the behaviour of the repository and service streams it
usually wraps.
"""

from __future__ import annotations

import io
import logging
from typing import BinaryIO, Optional, Union

from .errors import DocumentConsumedError, IOFailure

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
PDF_CONTENT_TYPE = "application/pdf"


class Document:
    """
    Single-pass byte stream with a content-type label.

    Args:
        source: Raw bytes or a readable binary stream
        content_type: MIME type describing the bytes

    Example:
        >>> doc = Document(b"%PDF-1.7", PDF_CONTENT_TYPE)
        >>> doc.read_bytes()
        b'%PDF-1.7'
    """

    def __init__(self, source: Union[bytes, bytearray, BinaryIO], content_type: str = DEFAULT_CONTENT_TYPE) -> None:
        if isinstance(source, (bytes, bytearray)):
            source = io.BytesIO(bytes(source))
        self._stream: Optional[BinaryIO] = source
        self.content_type = content_type
        self._consumed = False

    @property
    def consumed(self) -> bool:
        return self._consumed

    def get_input_stream(self) -> BinaryIO:
        """
        Hand out the underlying stream. May only be called once.

        Raises:
            DocumentConsumedError: If the stream was already handed out or closed
        """
        if self._consumed or self._stream is None:
            raise DocumentConsumedError(f"{self!r} has already been read")
        self._consumed = True
        return self._stream

    def read_bytes(self) -> bytes:
        """Read the whole stream and close it."""
        stream = self.get_input_stream()
        try:
            return stream.read()
        finally:
            self.close()

    def close(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None
        self._consumed = True

    def __enter__(self) -> "Document":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "consumed" if self._consumed else "unread"
        return f"Document(content_type={self.content_type!r}, {state})"


def decode_request_body(body: bytes, charset: str) -> Document:
    """
    Turn a raw request payload into an XML document in the given charset.

    The body is decoded strictly so that a payload which is not valid in the
    configured charset is rejected instead of being silently mangled, then
    re-encoded under the same charset for the form service.

    Args:
        body: Raw HTTP request body
        charset: Python codec name, e.g. "windows-1255"

    Returns:
        Document labelled application/xml with the charset parameter

    Raises:
        IOFailure: If the body cannot be decoded or re-encoded
    """
    try:
        xml = body.decode(charset)
        encoded = xml.encode(charset)
    except (UnicodeError, LookupError) as exc:
        raise IOFailure(f"Request body is not valid {charset}: {exc}") from exc

    logger.debug(f"xml: {xml}")
    return Document(encoded, f"application/xml;charset={charset}")
