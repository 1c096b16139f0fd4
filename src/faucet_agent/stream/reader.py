"""Line reader for the faucet event socket."""

import asyncio
import logging

from ..errors import EndOfStream, StreamConnectError, StreamReadError


logger = logging.getLogger(__name__)

# Longest accepted event line, in bytes
DEFAULT_LINE_LIMIT = 64 * 1024


class StreamReader:
    """
    One connection to a unix stream socket carrying newline-delimited records.

    ``close()`` may be called from another task while ``read_record()`` is
    pending; the pending read then ends with EndOfStream.
    """

    def __init__(self, path: str, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.path = path
        self._reader = reader
        self._writer = writer
        self._closed = False
        self.records_read = 0

    @classmethod
    async def open(cls, path: str, limit: int = DEFAULT_LINE_LIMIT) -> "StreamReader":
        """
        Connect to the socket at ``path``.

        Raises:
            StreamConnectError: If the socket cannot be reached
        """
        try:
            reader, writer = await asyncio.open_unix_connection(path, limit=limit)
        except OSError as e:
            raise StreamConnectError(f"Failed to connect to unix socket {path}: {e}") from e

        return cls(path, reader, writer)

    @property
    def closed(self) -> bool:
        return self._closed

    async def read_record(self) -> bytes:
        """
        Return the next line without its line terminator.

        Raises:
            EndOfStream: When the peer closed the connection or close() was called
            StreamReadError: When the read fails or a line exceeds the limit
        """
        if self._closed and self._reader.at_eof():
            raise EndOfStream(f"Connection to {self.path} is closed")

        try:
            line = await self._reader.readline()
        except ValueError as e:
            # readline() reports an over-long line as ValueError
            raise StreamReadError(f"Event line too long on {self.path}: {e}") from e
        except OSError as e:
            raise StreamReadError(f"Error reading from {self.path}: {e}") from e

        if not line:
            raise EndOfStream(f"EOF from {self.path}")

        if line.endswith(b"\n"):
            line = line[:-1]
            if line.endswith(b"\r"):
                line = line[:-1]

        self.records_read += 1
        return line

    def close(self):
        """Close the connection; safe to call repeatedly and from other tasks."""
        if self._closed:
            return

        self._closed = True
        self._writer.close()
        # Wake a pending readline even if the transport is slow to report loss
        self._reader.feed_eof()

    async def wait_closed(self):
        self.close()
        try:
            await self._writer.wait_closed()
        except (OSError, ConnectionError) as e:
            logger.debug(f"Error while closing {self.path}: {e}")

    def __aiter__(self):
        return self

    async def __anext__(self) -> bytes:
        try:
            return await self.read_record()
        except EndOfStream:
            raise StopAsyncIteration from None
