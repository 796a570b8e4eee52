"""TCP connection to the fireplace."""

import asyncio
import logging
import socket
from typing import Callable, List, Optional

from constants import (
    DEVICE_CONNECT_TIMEOUT,
    DEVICE_READ_CHUNK,
    DEVICE_READ_MARGIN,
    DEVICE_RECONNECT_BACKOFF,
    STATUS_POLL_INTERVAL,
)
from fireplace_protocol import DecodeError, decode_status
from models import ConnectionState, FireplaceStatus

logger = logging.getLogger(__name__)

StateListener = Callable[[ConnectionState], None]


class FireplaceConnection:
    """
    Owns the single socket to the fireplace:
      - connect loop with fixed backoff, runs until the stop event is set
      - read loop that decodes status frames onto a queue
      - serialized writes
    """

    def __init__(
        self,
        host: str,
        port: int,
        status_queue: asyncio.Queue[FireplaceStatus],
        poll_interval: float = STATUS_POLL_INTERVAL,
        backoff: float = DEVICE_RECONNECT_BACKOFF,
        connect_timeout: float = DEVICE_CONNECT_TIMEOUT,
    ):
        self.host = host
        self.port = port
        self.status_queue = status_queue
        self.read_timeout = poll_interval + DEVICE_READ_MARGIN
        self.backoff = backoff
        self.connect_timeout = connect_timeout
        self.state = ConnectionState.DISCONNECTED

        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._write_lock = asyncio.Lock()
        self._listeners: List[StateListener] = []

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def add_state_listener(self, listener: StateListener):
        """Register a callback invoked on every state transition."""
        self._listeners.append(listener)

    def _set_state(self, state: ConnectionState):
        if state is self.state:
            return
        logger.debug(f"Fireplace connection {self.state.value} -> {state.value}")
        self.state = state
        for listener in self._listeners:
            try:
                listener(state)
            except Exception as e:
                logger.error(f"State listener failed: {e}", exc_info=True)

    async def connect_loop(self, stop: asyncio.Event):
        """Connect, read until the socket fails, back off, repeat."""
        while not stop.is_set():
            self._set_state(ConnectionState.CONNECTING)
            try:
                reader, writer = await asyncio.wait_for(
                    asyncio.open_connection(self.host, self.port),
                    timeout=self.connect_timeout,
                )
            except (OSError, asyncio.TimeoutError) as e:
                logger.warning(f"Could not connect to fireplace at {self.host}:{self.port}: {e!r}")
                self._set_state(ConnectionState.DISCONNECTED)
            else:
                _enable_keepalive(writer)
                self._reader, self._writer = reader, writer
                logger.info(f"Fireplace connected at {self.host}:{self.port}")
                self._set_state(ConnectionState.CONNECTED)
                try:
                    await self._read_loop(reader)
                finally:
                    await self._teardown()

            if stop.is_set():
                break
            logger.info(f"Reconnecting to fireplace in {self.backoff:.0f}s")
            await _wait_or_stop(stop, self.backoff)

    async def _read_loop(self, reader: asyncio.StreamReader):
        while True:
            try:
                chunk = await asyncio.wait_for(reader.read(DEVICE_READ_CHUNK), timeout=self.read_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"No data from fireplace for {self.read_timeout:.0f}s")
                return
            except OSError as e:
                logger.warning(f"Fireplace read failed: {e!r}")
                return
            if not chunk:
                logger.warning("Fireplace connection closed")
                return
            self._handle_frame(chunk)

    def _handle_frame(self, frame: bytes):
        try:
            status = decode_status(frame)
        except DecodeError as e:
            logger.debug(f"Dropping frame {frame!r}: {e}")
            return
        logger.info(f"Fireplace status: on={status.is_on} flame_height={status.flame_height}")
        self.status_queue.put_nowait(status)

    async def _teardown(self):
        writer = self._writer
        self._reader = None
        self._writer = None
        self._set_state(ConnectionState.DISCONNECTED)
        if writer is None:
            return
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            logger.debug(f"Error closing fireplace socket: {e!r}")

    def _drop(self):
        """End the current session; the read loop sees EOF and unwinds."""
        if self._reader is not None:
            self._reader.feed_eof()

    async def send(self, frame: bytes) -> bool:
        """Write one frame. Returns False if it could not be written."""
        async with self._write_lock:
            writer = self._writer
            if writer is None or not self.connected:
                logger.warning("Fireplace not connected, command dropped")
                return False
            try:
                writer.write(frame)
                await writer.drain()
            except OSError as e:
                logger.error(f"Could not send command to fireplace: {e!r}")
                self._drop()
                return False
        logger.debug(f"Sent frame {frame.hex()}")
        return True


def _enable_keepalive(writer: asyncio.StreamWriter):
    sock = writer.get_extra_info("socket")
    if sock is not None:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)


async def _wait_or_stop(stop: asyncio.Event, delay: float):
    try:
        await asyncio.wait_for(stop.wait(), timeout=delay)
    except asyncio.TimeoutError:
        pass
