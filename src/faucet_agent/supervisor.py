"""Reconnecting control loop for the faucet event socket."""

import asyncio
import logging
import random
from enum import Enum
from typing import Awaitable, Callable, Optional

from .errors import EndOfStream, StreamConnectError, StreamReadError
from .processor import EventProcessor
from .stream.reader import StreamReader


logger = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[StreamReader]]


class SupervisorState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    SHUTDOWN = "shutdown"


def compute_backoff(
    retries: int,
    initial: float,
    maximum: float,
    rng: Optional[random.Random] = None,
) -> float:
    """
    Reconnect delay in seconds for the given retry count.

    ``initial + 2**retries`` plus a random whole number of seconds in
    ``[0, 2**retries // 2)``, capped at ``maximum``.
    """
    expo = 2 ** retries
    # int/float comparison is exact; adding a huge int to a float overflows
    if initial + maximum <= expo:
        return maximum

    half = expo // 2

    jitter = 0
    if half >= 1:
        jitter = (rng or random).randrange(half)

    return min(initial + expo + jitter, maximum)


class ReconnectSupervisor:
    """
    Owns the event socket session and the retry/backoff state machine.

    DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED ... until
    ``shutdown()`` moves it to SHUTDOWN. The retry counter is reset by
    traffic (every processed record), not by a successful connect.
    """

    def __init__(
        self,
        socket_path: str,
        processor: EventProcessor,
        initial_backoff: float = 5.0,
        max_backoff: float = 300.0,
        connect: Connector = StreamReader.open,
        rng: Optional[random.Random] = None,
    ):
        self.socket_path = socket_path
        self.processor = processor
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self._connect = connect
        self._rng = rng

        self._state = SupervisorState.DISCONNECTED
        self._retries = 0
        self._cancelled = asyncio.Event()
        self._active: Optional[StreamReader] = None
        self.connection_count = 0

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def retries(self) -> int:
        return self._retries

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def next_backoff(self) -> float:
        return compute_backoff(self._retries, self.initial_backoff, self.max_backoff, self._rng)

    async def run(self):
        """Run sessions until shutdown() is called."""
        self._retries = 0

        while not self.cancelled:
            await self._run_session()

            if self.cancelled:
                break

            delay = self.next_backoff()
            logger.info(
                f"Waiting before reconnecting to event socket: retries={self._retries} backoff={delay}s"
            )
            await self._wait(delay)
            self._retries += 1

        self._state = SupervisorState.SHUTDOWN
        logger.info("Event socket supervisor stopped")

    def shutdown(self):
        """Request cancellation and force-close the active connection."""
        if self._cancelled.is_set():
            return

        self._cancelled.set()

        reader = self._active
        if reader is not None:
            reader.close()

    async def _wait(self, delay: float):
        try:
            await asyncio.wait_for(self._cancelled.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def _run_session(self):
        self._state = SupervisorState.CONNECTING

        try:
            reader = await self._connect(self.socket_path)
        except StreamConnectError as e:
            logger.error(f"Failed to connect to unix socket: socket={self.socket_path} error={e}")
            self._state = SupervisorState.DISCONNECTED
            return

        self._active = reader
        self.connection_count += 1
        self._state = SupervisorState.CONNECTED
        logger.info(f"Connected to unix socket: socket={self.socket_path}")

        try:
            # shutdown() may have run while the connect was in flight
            if self.cancelled:
                reader.close()

            while not self.cancelled:
                try:
                    line = await reader.read_record()
                except EndOfStream:
                    if not self.cancelled:
                        logger.info("Got EOF from unix socket")
                    break
                except StreamReadError as e:
                    if not self.cancelled:
                        logger.error(f"Error reading from socket: {e}")
                    break

                await self.processor.process(line)
                self._retries = 0
        finally:
            self._active = None
            await reader.wait_closed()
            self._state = SupervisorState.DISCONNECTED
            logger.info(f"Event socket session closed: records_read={reader.records_read}")
