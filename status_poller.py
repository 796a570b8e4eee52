"""Periodic status polling of the fireplace."""

import asyncio
import logging
from typing import Optional

from constants import STATUS_POLL_INTERVAL
from fireplace_connection import FireplaceConnection
from fireplace_protocol import status_query
from models import ConnectionState

logger = logging.getLogger(__name__)


class StatusPoller:
    """Sends a status query while the fireplace is connected."""

    def __init__(self, connection: FireplaceConnection, interval: float = STATUS_POLL_INTERVAL):
        self.connection = connection
        self.interval = interval
        self._task: Optional[asyncio.Task] = None
        connection.add_state_listener(self._on_state)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _on_state(self, state: ConnectionState):
        if state is ConnectionState.CONNECTED:
            self.start()
        else:
            self.stop()

    def start(self):
        """(Re)start polling; the first query goes out immediately."""
        self.stop()
        self._task = asyncio.get_running_loop().create_task(self._poll_task(), name="status_poll")
        logger.debug(f"Status polling started, every {self.interval}s")

    def stop(self):
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
            logger.debug("Status polling stopped")
        self._task = None

    async def _poll_task(self):
        while True:
            await self.connection.send(status_query())
            await asyncio.sleep(self.interval)
