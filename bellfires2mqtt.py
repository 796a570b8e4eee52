#!/usr/bin/env python3
"""Bellfires fireplace to MQTT bridge."""

import asyncio
import logging
import signal
from typing import Any, Dict

from bellfires2mqtt_app import Bellfires2MQTT, _load_config
from constants import DEFAULT_LOG_LEVEL

logger = logging.getLogger(__name__)


async def serve(app: Bellfires2MQTT):
    """Run the bridge until SIGINT/SIGTERM, then stop it."""
    loop = asyncio.get_running_loop()
    bridge_task = loop.create_task(app.start(), name="bridge")

    def _shutdown(sig: signal.Signals):
        if not bridge_task.done():
            logger.info(f"Received {sig.name}, shutting down...")
            bridge_task.cancel()

    handled = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _shutdown, sig)
            handled.append(sig)
        except NotImplementedError:
            pass

    try:
        await bridge_task
    except asyncio.CancelledError:
        pass
    finally:
        for sig in handled:
            loop.remove_signal_handler(sig)
        await app.stop()


async def main(config: Dict[str, Any]):
    """Main entry point."""
    await serve(Bellfires2MQTT(config))


def run():
    config = _load_config()
    logging.basicConfig(
        level=str(config.get("log_level", DEFAULT_LOG_LEVEL)).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(main(config))


if __name__ == "__main__":
    run()
