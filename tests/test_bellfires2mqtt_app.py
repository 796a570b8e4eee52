"""Unit tests for the bridge application and its configuration."""

import asyncio
import contextlib
import json
from unittest.mock import AsyncMock, call

import pytest
import yaml

from bellfires2mqtt_app import Bellfires2MQTT, _load_config, _parse_address, command_frame
from fireplace_protocol import set_flame_height, turn_off, turn_on
from models import ConnectionState, FireplaceStatus, MqttCommand


def _write_config(tmp_path, config) -> str:
    path = tmp_path / "bellfires2mqtt.yaml"
    path.write_text(yaml.safe_dump(config))
    return str(path)


class TestConfig:
    def test_load_valid_config(self, tmp_path, app_config):
        config = _load_config(_write_config(tmp_path, app_config))
        assert config["fireplace"]["address"] == "127.0.0.1:2000"

    def test_path_from_environment(self, tmp_path, app_config, monkeypatch):
        monkeypatch.setenv("BELLFIRES2MQTT_CONFIG", _write_config(tmp_path, app_config))
        assert _load_config()["mqtt"]["host"] == "broker.local"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            _load_config(str(tmp_path / "nope.yaml"))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        with pytest.raises(ValueError, match="empty"):
            _load_config(str(path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("mqtt: [unclosed")
        with pytest.raises(ValueError, match="Invalid YAML"):
            _load_config(str(path))

    @pytest.mark.parametrize(
        "section, key",
        [("mqtt", "host"), ("mqtt", "port"), ("fireplace", "address")],
    )
    def test_missing_required_key(self, tmp_path, app_config, section, key):
        del app_config[section][key]
        with pytest.raises(ValueError, match=f"{section}.{key}"):
            _load_config(_write_config(tmp_path, app_config))

    def test_missing_fireplace_section(self, tmp_path, app_config):
        del app_config["fireplace"]
        with pytest.raises(ValueError, match="'fireplace' section"):
            _load_config(_write_config(tmp_path, app_config))

    @pytest.mark.parametrize("interval", [0, -5, "often"])
    def test_invalid_poll_interval(self, tmp_path, app_config, interval):
        app_config["fireplace"]["poll_interval"] = interval
        with pytest.raises(ValueError, match="poll_interval"):
            _load_config(_write_config(tmp_path, app_config))

    @pytest.mark.parametrize("level", ["debug", "WARNING"])
    def test_log_level(self, tmp_path, app_config, level):
        app_config["log_level"] = level
        assert _load_config(_write_config(tmp_path, app_config))["log_level"] == level

    def test_unknown_log_level(self, tmp_path, app_config):
        app_config["log_level"] = "chatty"
        with pytest.raises(ValueError, match="log_level"):
            _load_config(_write_config(tmp_path, app_config))

    def test_parse_address(self):
        assert _parse_address("192.168.1.50:2000") == ("192.168.1.50", 2000)

    @pytest.mark.parametrize("address", ["192.168.1.50", ":2000", "host:port"])
    def test_parse_address_invalid(self, address):
        with pytest.raises(ValueError):
            _parse_address(address)


class TestCommandFrame:
    def test_frames(self):
        assert command_frame(MqttCommand(action="on")) == turn_on()
        assert command_frame(MqttCommand(action="off")) == turn_off()
        assert command_frame(MqttCommand(action="flame_height", flame_height=4)) == set_flame_height(4)

    def test_out_of_range_height_rejected(self):
        with pytest.raises(ValueError):
            command_frame(MqttCommand(action="flame_height", flame_height=13))

    def test_unknown_action_rejected(self):
        with pytest.raises(ValueError):
            command_frame(MqttCommand(action="toggle"))


class TestBellfires2MQTT:
    @pytest.mark.asyncio
    async def test_publish_status_is_idempotent(self, mock_mqtt_client, app_config):
        app = Bellfires2MQTT(app_config)
        status = FireplaceStatus(flame_height=7, is_on=True)

        app.publish_status(status)
        app.publish_status(status)

        expected = [
            call("bellfires/status/get", payload="1", qos=1, retain=True),
            call("bellfires/flameHeight/get", payload="7", qos=1, retain=True),
        ]
        assert mock_mqtt_client.publish.call_args_list == expected * 2

    @pytest.mark.asyncio
    async def test_publish_off_status(self, mock_mqtt_client, app_config):
        app = Bellfires2MQTT(app_config)
        app.publish_status(FireplaceStatus(flame_height=0, is_on=False))

        assert mock_mqtt_client.publish.call_args_list == [
            call("bellfires/status/get", payload="0", qos=1, retain=True),
            call("bellfires/flameHeight/get", payload="0", qos=1, retain=True),
        ]

    @pytest.mark.asyncio
    async def test_custom_topic_prefix(self, mock_mqtt_client, app_config):
        app_config["mqtt"]["topic_prefix"] = "living_room"
        app = Bellfires2MQTT(app_config)
        app.publish_status(FireplaceStatus(flame_height=3, is_on=True))

        topics = [c.args[0] for c in mock_mqtt_client.publish.call_args_list]
        assert topics == ["living_room/status/get", "living_room/flameHeight/get"]

    @pytest.mark.asyncio
    async def test_status_consumer_publishes_queued_status(self, mock_mqtt_client, app_config):
        app = Bellfires2MQTT(app_config)
        task = asyncio.create_task(app.status_consumer_task())
        try:
            app.status_queue.put_nowait(FireplaceStatus(flame_height=12, is_on=True))
            await asyncio.sleep(0.01)
        finally:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        mock_mqtt_client.publish.assert_any_call("bellfires/flameHeight/get", payload="12", qos=1, retain=True)

    @pytest.mark.asyncio
    async def test_command_consumer_sends_frames(self, mock_mqtt_client, app_config):
        app = Bellfires2MQTT(app_config)
        app.fireplace.send = AsyncMock(return_value=True)
        task = asyncio.create_task(app.command_consumer_task())
        try:
            app.cmd_queue.put_nowait(MqttCommand(action="on"))
            app.cmd_queue.put_nowait(MqttCommand(action="flame_height", flame_height=5))
            await asyncio.sleep(0.01)
        finally:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        assert app.fireplace.send.await_args_list == [call(turn_on()), call(set_flame_height(5))]

    @pytest.mark.asyncio
    async def test_command_consumer_skips_invalid_command(self, mock_mqtt_client, app_config):
        app = Bellfires2MQTT(app_config)
        app.fireplace.send = AsyncMock(return_value=True)
        task = asyncio.create_task(app.command_consumer_task())
        try:
            app.cmd_queue.put_nowait(MqttCommand(action="flame_height", flame_height=0))
            app.cmd_queue.put_nowait(MqttCommand(action="off"))
            await asyncio.sleep(0.01)
        finally:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        app.fireplace.send.assert_awaited_once_with(turn_off())

    @pytest.mark.asyncio
    async def test_availability_follows_connection(self, mock_mqtt_client, app_config):
        app = Bellfires2MQTT(app_config)

        app.fireplace._set_state(ConnectionState.CONNECTING)
        app.fireplace._set_state(ConnectionState.DISCONNECTED)
        app.fireplace._set_state(ConnectionState.CONNECTING)
        app.fireplace._set_state(ConnectionState.DISCONNECTED)
        app.fireplace._set_state(ConnectionState.CONNECTING)
        app.fireplace._set_state(ConnectionState.CONNECTED)
        app.poller.stop()

        assert mock_mqtt_client.publish.call_args_list == [
            call("bellfires/available", payload="false", qos=1, retain=True),
            call("bellfires/available", payload="true", qos=1, retain=True),
        ]

    @pytest.mark.asyncio
    async def test_mqtt_connect_publishes_discovery(self, mock_mqtt_client, app_config):
        app = Bellfires2MQTT(app_config)
        app.on_mqtt_connected()

        published = {c.args[0]: c.kwargs["payload"] for c in mock_mqtt_client.publish.call_args_list}
        power = json.loads(published["homeassistant/switch/bellfires_power/config"])
        flame = json.loads(published["homeassistant/number/bellfires_flame_height/config"])

        assert power["command_topic"] == "bellfires/status/set"
        assert power["state_topic"] == "bellfires/status/get"
        assert flame["command_topic"] == "bellfires/flameHeight/set"
        assert (flame["min"], flame["max"]) == (0, 12)
        assert published["bellfires/available"] == "false"

    @pytest.mark.asyncio
    async def test_discovery_can_be_disabled(self, mock_mqtt_client, app_config):
        app_config["homeassistant"]["discovery"] = False
        app = Bellfires2MQTT(app_config)
        app.on_mqtt_connected()

        topics = [c.args[0] for c in mock_mqtt_client.publish.call_args_list]
        assert topics == ["bellfires/available"]

    @pytest.mark.asyncio
    async def test_stop_cancels_tasks_and_closes_mqtt(self, mock_mqtt_client, app_config):
        app = Bellfires2MQTT(app_config)

        async def idle_connect_loop(stop):
            await stop.wait()

        app.fireplace.connect_loop = idle_connect_loop
        start = asyncio.create_task(app.start())
        await asyncio.sleep(0.01)

        await app.stop()
        with contextlib.suppress(asyncio.CancelledError):
            await start

        assert app.stop_event.is_set()
        mock_mqtt_client.connect_async.assert_called_once()
        mock_mqtt_client.loop_stop.assert_called_once()
