"""Data models and dataclasses."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class FireplaceStatus:
    """State decoded from one fireplace status frame."""
    flame_height: int  # 0..12, 0 means off
    is_on: bool


class ConnectionState(Enum):
    """Lifecycle of the TCP connection to the fireplace."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass
class MqttCommand:
    """Command received from MQTT."""
    action: str  # "on" | "off" | "flame_height"
    flame_height: Optional[int] = None
