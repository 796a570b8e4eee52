"""Main Bellfires2MQTT bridge application."""

import asyncio
import json
import logging
import os
from typing import Any, Dict, Optional, Tuple

import yaml

from constants import (
    CONFIG_ENV_VAR,
    DEFAULT_CLIENT_ID,
    DEFAULT_CONFIG_EXAMPLE_FILE,
    DEFAULT_CONFIG_FILE,
    DEFAULT_DISCOVERY_PREFIX,
    DEFAULT_LOG_LEVEL,
    DEFAULT_TOPIC_PREFIX,
    FLAME_HEIGHT_MAX,
    MQTT_PAYLOAD_AVAILABLE,
    MQTT_PAYLOAD_OFF,
    MQTT_PAYLOAD_ON,
    MQTT_PAYLOAD_UNAVAILABLE,
    STATUS_POLL_INTERVAL,
)
from fireplace_connection import FireplaceConnection
from fireplace_protocol import set_flame_height, turn_off, turn_on
from models import ConnectionState, FireplaceStatus, MqttCommand
from mqtt_bridge import MqttBridge
from status_poller import StatusPoller
from topics import Topics, ha_discovery_topic

logger = logging.getLogger(__name__)


def _parse_address(address: Any) -> Tuple[str, int]:
    """Split a 'host:port' string."""
    host, sep, port = str(address).rpartition(":")
    if not sep or not host:
        raise ValueError(f"'fireplace.address' must be host:port, got '{address}'")
    try:
        return host, int(port)
    except ValueError:
        raise ValueError(f"Invalid port in 'fireplace.address': '{address}'")


def _load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load and validate configuration file."""
    path = path or os.getenv(CONFIG_ENV_VAR, DEFAULT_CONFIG_FILE)
    if not os.path.exists(path):
        raise FileNotFoundError(
            f"Configuration file '{path}' not found. "
            f"Please copy '{DEFAULT_CONFIG_EXAMPLE_FILE}' to '{DEFAULT_CONFIG_FILE}' "
            f"and update with your settings."
        )

    try:
        with open(path, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in '{path}': {e}")

    if not config:
        raise ValueError(f"'{path}' is empty")

    # Validate required sections
    if 'mqtt' not in config:
        raise ValueError("Missing 'mqtt' section in configuration")
    if 'fireplace' not in config:
        raise ValueError("Missing 'fireplace' section in configuration")

    # Validate required keys
    mqtt_config = config.get('mqtt') or {}
    if 'host' not in mqtt_config:
        raise ValueError("Missing 'mqtt.host' in configuration")
    if 'port' not in mqtt_config:
        raise ValueError("Missing 'mqtt.port' in configuration")

    fireplace_config = config.get('fireplace') or {}
    if 'address' not in fireplace_config:
        raise ValueError("Missing 'fireplace.address' in configuration")
    _parse_address(fireplace_config['address'])

    poll_interval = fireplace_config.get('poll_interval', STATUS_POLL_INTERVAL)
    if not isinstance(poll_interval, (int, float)) or poll_interval <= 0:
        raise ValueError("'fireplace.poll_interval' must be a positive number of seconds")

    log_level = str(config.get('log_level', DEFAULT_LOG_LEVEL)).upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ValueError(f"Unknown 'log_level': {config['log_level']}")

    return config


class Bellfires2MQTT:
    """Main bridge application."""

    def __init__(self, config: Dict[str, Any]):
        self.loop = asyncio.get_running_loop()
        self.cmd_queue: asyncio.Queue[MqttCommand] = asyncio.Queue()
        self.status_queue: asyncio.Queue[FireplaceStatus] = asyncio.Queue()
        self.stop_event = asyncio.Event()

        mqtt_config = config['mqtt']
        fireplace_config = config['fireplace']
        ha_config = config.get('homeassistant') or {}

        self.topics = Topics(mqtt_config.get('topic_prefix', DEFAULT_TOPIC_PREFIX))
        self.discovery_enabled = bool(ha_config.get('discovery', True))
        self.discovery_prefix = ha_config.get('prefix', DEFAULT_DISCOVERY_PREFIX)

        host, port = _parse_address(fireplace_config['address'])
        poll_interval = fireplace_config.get('poll_interval', STATUS_POLL_INTERVAL)
        self.fireplace = FireplaceConnection(host, port, self.status_queue, poll_interval=poll_interval)
        self.poller = StatusPoller(self.fireplace, poll_interval)
        self.fireplace.add_state_listener(self._on_fireplace_state)

        self.mqtt = MqttBridge(
            self.loop,
            self.cmd_queue,
            self.topics,
            host=mqtt_config['host'],
            port=int(mqtt_config['port']),
            username=mqtt_config.get('username'),
            password=mqtt_config.get('password'),
            client_id=mqtt_config.get('client_id', DEFAULT_CLIENT_ID),
            on_connected=self.on_mqtt_connected,
        )

        # Track last published availability to avoid spamming on every retry
        self.last_avail: Optional[bool] = None

        self.running = True

    async def start(self):
        """Start the bridge."""
        self.mqtt.connect()

        self._tasks = [
            asyncio.create_task(self.fireplace.connect_loop(self.stop_event), name="fireplace"),
            asyncio.create_task(self.status_consumer_task(), name="status_consumer"),
            asyncio.create_task(self.command_consumer_task(), name="cmd_consumer"),
        ]

        # Wait until tasks finish (they won't until stopped)
        await asyncio.gather(*self._tasks)

    async def stop(self):
        """Stop the bridge."""
        if not self.running:
            return
        self.running = False
        self.stop_event.set()
        self.poller.stop()

        # Cancel tasks first
        tasks = getattr(self, "_tasks", [])
        for t in tasks:
            t.cancel()
        for t in tasks:
            try:
                await t
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"Task {t.get_name()} ended with error: {e}")

        # Then close resources
        try:
            self.mqtt.close()
        except Exception as e:
            logger.debug(f"Error closing MQTT client: {e}")

    def on_mqtt_connected(self):
        """Republish discovery and availability after every broker (re)connect."""
        if self.discovery_enabled:
            self.publish_ha_discovery()
        self.publish_availability(self.fireplace.connected, force=True)

    def publish_ha_discovery(self):
        """Publish Home Assistant discovery messages."""
        prefix = self.topics.prefix
        device = {
            "identifiers": [f"{prefix}_fireplace"],
            "name": "Bellfires Fireplace",
            "manufacturer": "Mertik Maxitrol",
            "model": "Bellfires",
        }
        availability = {
            "availability_topic": self.topics.available,
            "payload_available": MQTT_PAYLOAD_AVAILABLE,
            "payload_not_available": MQTT_PAYLOAD_UNAVAILABLE,
        }
        power = {
            "name": "Fireplace",
            "state_topic": self.topics.status_get,
            "command_topic": self.topics.status_set,
            "payload_on": MQTT_PAYLOAD_ON,
            "payload_off": MQTT_PAYLOAD_OFF,
            "unique_id": f"{prefix}_power",
            "device": device,
            **availability,
        }
        flame_height = {
            "name": "Flame height",
            "state_topic": self.topics.flame_height_get,
            "command_topic": self.topics.flame_height_set,
            "min": 0,  # reported while off
            "max": FLAME_HEIGHT_MAX,
            "step": 1,
            "unique_id": f"{prefix}_flame_height",
            "device": device,
            **availability,
        }

        self.mqtt.publish_retained(
            ha_discovery_topic("switch", f"{prefix}_power", self.discovery_prefix),
            json.dumps(power),
        )
        self.mqtt.publish_retained(
            ha_discovery_topic("number", f"{prefix}_flame_height", self.discovery_prefix),
            json.dumps(flame_height),
        )
        logger.debug("Home Assistant discovery published")

    def publish_availability(self, available: bool, force: bool = False):
        if not force and self.last_avail == available:
            return
        self.last_avail = available
        value = MQTT_PAYLOAD_AVAILABLE if available else MQTT_PAYLOAD_UNAVAILABLE
        self.mqtt.publish_retained(self.topics.available, value)
        logger.info(f"Published fireplace availability: {value}")

    def publish_status(self, status: FireplaceStatus):
        """Publish on/off and flame height, both retained."""
        self.mqtt.publish_retained(self.topics.status_get, MQTT_PAYLOAD_ON if status.is_on else MQTT_PAYLOAD_OFF)
        self.mqtt.publish_retained(self.topics.flame_height_get, str(status.flame_height))

    def _on_fireplace_state(self, state: ConnectionState):
        if state is ConnectionState.CONNECTED:
            self.publish_availability(True)
        elif state is ConnectionState.DISCONNECTED:
            self.publish_availability(False)

    async def status_consumer_task(self):
        """Consume decoded statuses from the fireplace and publish them."""
        while self.running:
            status = await self.status_queue.get()
            try:
                self.publish_status(status)
            except Exception as e:
                logger.error(f"Failed to publish fireplace status: {e}", exc_info=True)

    async def command_consumer_task(self):
        """Consume commands from MQTT queue and send to the fireplace."""
        while self.running:
            cmd = await self.cmd_queue.get()
            logger.info(f"Processing MQTT command: {cmd.action}")
            try:
                frame = command_frame(cmd)
            except ValueError as e:
                logger.error(f"Rejected command {cmd}: {e}")
                continue

            if await self.fireplace.send(frame):
                logger.info(f"Command {cmd.action} sent to fireplace")


def command_frame(cmd: MqttCommand) -> bytes:
    """Encode an MQTT command as a fireplace frame."""
    if cmd.action == "on":
        return turn_on()
    if cmd.action == "off":
        return turn_off()
    if cmd.action == "flame_height" and cmd.flame_height is not None:
        return set_flame_height(cmd.flame_height)
    raise ValueError(f"Invalid action: {cmd.action}")
