"""
Shared fixtures for unit tests.

This module provides reusable fixtures for testing the bridge components.
"""

from unittest.mock import MagicMock, patch

import pytest

from topics import Topics


def _make_status_frame(raw: int, marker: bytes = b"\x02") -> bytes:
    """Frame with a marker, 14 filler characters, the hex value and a trailer."""
    return marker + b"0" * 14 + f"{raw:02X}".encode("ascii") + b"\x03"


@pytest.fixture
def status_frame():
    """Factory building a status frame for a raw 0..255 value."""
    return _make_status_frame


@pytest.fixture
def topics():
    return Topics("bellfires")


@pytest.fixture
def mock_mqtt_client():
    """
    Patch the paho client class used by mqtt_bridge.

    Yields the MagicMock instance every MqttBridge will receive.
    """
    client = MagicMock()
    with patch("mqtt_bridge.mqtt.Client", return_value=client):
        yield client


@pytest.fixture
def app_config():
    return {
        "mqtt": {
            "host": "broker.local",
            "port": 1883,
            "username": "user",
            "password": "secret",
            "topic_prefix": "bellfires",
        },
        "fireplace": {
            "address": "127.0.0.1:2000",
            "poll_interval": 60,
        },
        "homeassistant": {
            "discovery": True,
        },
    }
