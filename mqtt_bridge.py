"""MQTT bridge implementation."""

import asyncio
import logging
from typing import Callable, Optional

import paho.mqtt.client as mqtt

from constants import (
    DEFAULT_CLIENT_ID,
    FLAME_HEIGHT_MAX,
    FLAME_HEIGHT_MIN,
    MQTT_KEEPALIVE,
    MQTT_PAYLOAD_OFF,
    MQTT_PAYLOAD_ON,
    MQTT_PAYLOAD_UNAVAILABLE,
    MQTT_QOS,
    MQTT_RECONNECT_DELAY,
)
from models import MqttCommand
from topics import Topics

logger = logging.getLogger(__name__)


def parse_command(topics: Topics, topic: str, payload: str) -> Optional[MqttCommand]:
    """Translate an inbound message into a command, or None if it is invalid."""
    if topic == topics.status_set:
        if payload == MQTT_PAYLOAD_ON:
            return MqttCommand(action="on")
        if payload == MQTT_PAYLOAD_OFF:
            return MqttCommand(action="off")
        logger.warning(f"Unknown payload '{payload}' on {topic}")
        return None

    if topic == topics.flame_height_set:
        if not (payload.isascii() and payload.isdigit()):
            logger.warning(f"Flame height '{payload}' on {topic} is not an integer")
            return None
        height = int(payload)
        if not FLAME_HEIGHT_MIN <= height <= FLAME_HEIGHT_MAX:
            logger.warning(
                f"Flame height {height} on {topic} outside {FLAME_HEIGHT_MIN}..{FLAME_HEIGHT_MAX}"
            )
            return None
        return MqttCommand(action="flame_height", flame_height=height)

    logger.debug(f"Ignoring message on unexpected topic: {topic}")
    return None


class MqttBridge:
    """Bridge between MQTT and asyncio event loop."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        cmd_queue: asyncio.Queue[MqttCommand],
        topics: Topics,
        host: str,
        port: int,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client_id: str = DEFAULT_CLIENT_ID,
        on_connected: Optional[Callable[[], None]] = None,
    ):
        self.loop = loop
        self.cmd_queue = cmd_queue
        self.topics = topics
        self.host = host
        self.port = port
        self.on_connected = on_connected

        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)
        if username:
            self.client.username_pw_set(username, password)
        self.client.will_set(topics.available, MQTT_PAYLOAD_UNAVAILABLE, qos=MQTT_QOS, retain=True)
        self.client.reconnect_delay_set(min_delay=MQTT_RECONNECT_DELAY, max_delay=MQTT_RECONNECT_DELAY * 12)

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

    def connect(self):
        """Start connecting to the MQTT broker; paho retries in the background."""
        try:
            self.client.connect_async(self.host, self.port, keepalive=MQTT_KEEPALIVE)
            self.client.loop_start()
            logger.info(f"Connecting to MQTT broker at {self.host}:{self.port}")
        except Exception as e:
            logger.error(f"Failed to connect to MQTT broker: {e}")
            raise

    def close(self):
        """Close MQTT connection."""
        try:
            self.client.publish(self.topics.available, MQTT_PAYLOAD_UNAVAILABLE, qos=MQTT_QOS, retain=True)
            self.client.disconnect()
        finally:
            self.client.loop_stop()

    def publish_retained(self, topic: str, payload: str):
        """Publish a retained message."""
        # retained so new subscribers see the last known state
        self.client.publish(topic, payload=payload, qos=MQTT_QOS, retain=True)
        logger.debug(f"Published to {topic}: {payload}")

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        """Handle MQTT connection."""
        if reason_code == 0:
            logger.info("Connected to MQTT broker successfully")
        else:
            logger.warning(f"Connected to MQTT broker with code {reason_code}")
        for topic in (self.topics.status_set, self.topics.flame_height_set):
            client.subscribe(topic, qos=MQTT_QOS)
            logger.info(f"Subscribed to: {topic}")
        if self.on_connected is not None:
            self.loop.call_soon_threadsafe(self.on_connected)

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        if reason_code == 0:
            logger.info("Disconnected from MQTT broker")
        else:
            logger.warning(f"Lost MQTT broker connection ({reason_code}), paho will reconnect")

    def _on_message(self, client, userdata, msg):
        """Handle incoming MQTT message."""
        try:
            payload = (msg.payload or b"").decode("utf-8", errors="replace").strip()
            cmd = parse_command(self.topics, msg.topic, payload)
            if cmd is None:
                return

            logger.info(f"Received command from MQTT: {cmd.action} {cmd.flame_height or ''}".rstrip())
            # push into asyncio loop safely from MQTT thread
            self.loop.call_soon_threadsafe(self.cmd_queue.put_nowait, cmd)

        except Exception as e:
            logger.error(f"Error handling MQTT message: {e}", exc_info=True)
