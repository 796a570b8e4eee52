"""Topic utilities for MQTT."""

from dataclasses import dataclass

from constants import DEFAULT_DISCOVERY_PREFIX, DEFAULT_TOPIC_PREFIX


@dataclass(frozen=True)
class Topics:
    """Fixed topic table, built once from the prefix at startup."""
    prefix: str = DEFAULT_TOPIC_PREFIX

    @property
    def status_set(self) -> str:
        return f"{self.prefix}/status/set"

    @property
    def status_get(self) -> str:
        return f"{self.prefix}/status/get"

    @property
    def flame_height_set(self) -> str:
        return f"{self.prefix}/flameHeight/set"

    @property
    def flame_height_get(self) -> str:
        return f"{self.prefix}/flameHeight/get"

    @property
    def available(self) -> str:
        return f"{self.prefix}/available"


def ha_discovery_topic(component: str, object_id: str, discovery_prefix: str = DEFAULT_DISCOVERY_PREFIX) -> str:
    """Get Home Assistant discovery topic for an entity."""
    return f"{discovery_prefix}/{component}/{object_id}/config"
