"""Pull-to-push bridge from chunk-producing sources to a byte reader.

:class:`ChunkSourceReader` consumes an iterator of byte chunks one chunk at a
time and serves arbitrary-sized reads from it.  It never pulls a chunk before
the consumer asks for bytes, and holds at most one chunk in memory.
:class:`AsyncChunkSource` lets an async iterable act as such a source.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable, Iterator
from enum import Enum
from typing import Any

from .exceptions import ErrorTranslator
from .types import ChunkSource


class BridgeState(Enum):
    EMPTY = "empty"
    HAS_DATA = "has_data"
    ENDED = "ended"
    CLOSED = "closed"


class ChunkSourceReader:
    """Synchronous, boundedly-buffered reader over a chunk source.

    Parameters
    ----------
    source : ChunkSource
        Chunk producer.  If the object (or its iterator) has a ``close``
        method it is called once by :meth:`close`.
    errors : ErrorTranslator | None
        Translator used to report source faults.
    """

    def __init__(self, source: ChunkSource, errors: ErrorTranslator | None = None) -> None:
        self._source = source
        self._iterator: Iterator[bytes] = iter(source)
        self._errors = errors or ErrorTranslator()
        self._state = BridgeState.EMPTY
        self._chunk: bytes = b""
        self._cursor = 0

    @property
    def state(self) -> BridgeState:
        return self._state

    @property
    def ended(self) -> bool:
        return self._state in (BridgeState.ENDED, BridgeState.CLOSED)

    def _pull(self) -> bool:
        """Pull the next non-empty chunk.  Returns False at end of data."""
        while True:
            try:
                chunk = next(self._iterator)
            except StopIteration:
                self._state = BridgeState.ENDED
                return False
            except Exception as e:
                self._state = BridgeState.ENDED
                raise self._errors.connectivity(e, "Error reading from chunk source") from e

            if not isinstance(chunk, (bytes, bytearray, memoryview)):
                self._state = BridgeState.ENDED
                raise self._errors.connectivity(
                    TypeError(f"expected bytes, got {type(chunk).__name__}"),
                    "Unexpected value type in chunk source",
                )
            if len(chunk) == 0:
                # An empty chunk is not end-of-data
                continue

            self._chunk = bytes(chunk)
            self._cursor = 0
            self._state = BridgeState.HAS_DATA
            return True

    def read_chunk(self, max_bytes: int) -> tuple[bytes, bool]:
        """Read up to ``max_bytes`` from the source.

        Parameters
        ----------
        max_bytes : int
            Upper bound on returned bytes.

        Returns
        -------
        tuple[bytes, bool]
            The bytes read and whether the source is exhausted.  End of data
            is only reported with an empty byte string.

        Raises
        ------
        ConnectivityError
            If the underlying source fails.
        """
        if self.ended:
            return b"", True
        if max_bytes <= 0:
            return b"", False

        if self._state is BridgeState.EMPTY and not self._pull():
            return b"", True

        end = min(self._cursor + max_bytes, len(self._chunk))
        data = self._chunk[self._cursor : end]
        self._cursor = end
        if self._cursor >= len(self._chunk):
            self._chunk = b""
            self._cursor = 0
            self._state = BridgeState.EMPTY
        return data, False

    # File-like surface

    def read(self, amt: int | None = None) -> bytes:
        """Read up to ``amt`` bytes, or everything when ``amt`` is None.

        Returns ``b""`` only at end of data.
        """
        if amt is None or amt < 0:
            return self.read_all()
        buffer = bytearray()
        while len(buffer) < amt:
            data, ended = self.read_chunk(amt - len(buffer))
            if ended:
                break
            buffer += data
        return bytes(buffer)

    def read_all(self) -> bytes:
        """Drain the remaining source into a single bytes object."""
        buffer = bytearray()
        while True:
            data, ended = self.read_chunk(1024 * 1024)
            if ended:
                return bytes(buffer)
            buffer += data

    def readinto(self, b: bytearray | memoryview) -> int:
        data = self.read(len(b))
        b[: len(data)] = data
        return len(data)

    def readable(self) -> bool:
        return True

    def close(self) -> None:
        """Release the underlying source, at most once.

        Reads after closing report end of data.
        """
        if self._state is BridgeState.CLOSED:
            return
        self._state = BridgeState.CLOSED
        self._chunk = b""
        self._cursor = 0

        release = _find_close(self._source, self._iterator)
        if release is None:
            return
        try:
            release()
        except Exception as e:
            raise self._errors.connectivity(e, "Error closing chunk source") from e

    def __enter__(self) -> ChunkSourceReader:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


def _find_close(*candidates: Any) -> Any:
    for candidate in candidates:
        release = getattr(candidate, "close", None)
        if callable(release):
            return release
    return None


class AsyncChunkSource:
    """Blocking iterator over an async iterable of byte chunks.

    If ``loop`` is given it must be running in another thread; each pull is
    scheduled on it.  Otherwise a private event loop is created and driven
    from the calling thread.
    """

    def __init__(
        self,
        source: AsyncIterable[bytes],
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._source = source
        self._iterator = source.__aiter__()
        self._loop = loop
        self._own_loop: asyncio.AbstractEventLoop | None = None
        self._closed = False

    def _run(self, coro: Any) -> Any:
        if self._loop is not None:
            return asyncio.run_coroutine_threadsafe(coro, self._loop).result()
        if self._own_loop is None:
            self._own_loop = asyncio.new_event_loop()
        return self._own_loop.run_until_complete(coro)

    def __iter__(self) -> AsyncChunkSource:
        return self

    def __next__(self) -> bytes:
        if self._closed:
            raise StopIteration

        async def _next() -> bytes | None:
            try:
                return await self._iterator.__anext__()
            except StopAsyncIteration:
                return None

        chunk = self._run(_next())
        if chunk is None:
            raise StopIteration
        return chunk

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            aclose = getattr(self._iterator, "aclose", None)
            if callable(aclose):
                self._run(aclose())
        finally:
            if self._own_loop is not None:
                self._own_loop.close()
                self._own_loop = None
