"""Readable handle over a downloaded object."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from .exceptions import ErrorKind, ErrorTranslator
from .types import StreamingBodyLike

DEFAULT_READ_CHUNK_SIZE = 4096


class ObjectBody:
    """Live, not-yet-drained object download.

    Wraps a botocore ``StreamingBody``.  Reaching end of data releases the
    connection automatically; further reads return ``b""``.  Closing before
    the end also releases it.  Callers are expected to close explicitly or
    use the handle as a context manager.
    """

    def __init__(
        self,
        stream: StreamingBodyLike,
        *,
        key: str,
        content_length: int | None = None,
        content_type: str | None = None,
        etag: str | None = None,
        metadata: dict[str, str] | None = None,
        chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
        errors: ErrorTranslator | None = None,
    ) -> None:
        self._stream: StreamingBodyLike | None = stream
        self._errors = errors or ErrorTranslator()
        self._exhausted = False
        self.key = key
        self.content_length = content_length
        self.content_type = content_type
        self.etag = etag
        self.metadata = metadata or {}
        self.chunk_size = chunk_size

    @property
    def closed(self) -> bool:
        return self._stream is None

    def read(self, amt: int | None = None) -> bytes:
        """Read the next chunk.

        Parameters
        ----------
        amt : int | None
            Maximum bytes to read.  Defaults to ``chunk_size``.

        Returns
        -------
        bytes
            ``b""`` once the object is fully read.

        Raises
        ------
        S3AdaptorError
            If the handle was closed before reaching the end.
        """
        if self._exhausted:
            return b""
        if self._stream is None:
            raise self._errors.error(ErrorKind.GENERIC, "Stream is closed.")
        if amt == 0:
            return b""

        try:
            data = self._stream.read(amt if amt is not None else self.chunk_size)
        except Exception as e:
            self._release()
            raise self._errors.translate(e) from e

        if not data:
            self._exhausted = True
            self._release()
        return data

    def read_all(self) -> bytes:
        """Read the rest of the object."""
        buffer = bytearray()
        for chunk in self.iter_chunks():
            buffer += chunk
        return bytes(buffer)

    def iter_chunks(self, chunk_size: int | None = None) -> Iterator[bytes]:
        while True:
            chunk = self.read(chunk_size)
            if not chunk:
                break
            yield chunk

    def iter_lines(self, chunk_size: int | None = None) -> Iterator[bytes]:
        buffer = b""
        for chunk in self.iter_chunks(chunk_size):
            buffer += chunk
            while b"\n" in buffer:
                line, buffer = buffer.split(b"\n", 1)
                yield line + b"\n"
        if buffer:
            yield buffer

    def close(self) -> None:
        """Release the connection.  Safe to call repeatedly."""
        self._release()

    def _release(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.close()

    def __iter__(self) -> Iterator[bytes]:
        return self.iter_chunks()

    def __enter__(self) -> ObjectBody:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"ObjectBody(key={self.key!r}, content_length={self.content_length}, {state})"
