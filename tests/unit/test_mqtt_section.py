from __future__ import annotations

import asyncio

import httpx
import pytest

from camsync.core.gateway import Endpoint
from camsync.sections.credentials import CredentialKind
from camsync.sections.mqtt import DEFAULT_PORT, DEFAULT_TLS_PORT, MqttSection

REPORT = {
    "currentPlatformType": 1,
    "mqttPlatform": {
        "host": "broker.local",
        "mqttPort": 8883,
        "topic": "cams/front",
        "clientId": "front-1",
        "qos": 1,
        "username": "cam",
        "password": "pw",
        "isConnected": 1,
        "ssl": 1,
        "caName": "ca.pem",
        "certName": "",
        "keyName": "client.key",
    },
}


@pytest.fixture
def section(gateway, notifier, dialogs) -> MqttSection:
    return MqttSection(gateway, notifier, dialogs, poll_interval=0.01)


@pytest.mark.asyncio
async def test_read_maps_tls_and_hands_names_to_credentials(device, section) -> None:
    device.responses[Endpoint.GET_DATA_REPORT] = REPORT

    await section.read_all()

    assert section.platform.tls is True
    assert section.platform.connected is True
    names = section.credentials.names()
    assert names[CredentialKind.CA] == "ca.pem"
    assert names[CredentialKind.CERT] == ""
    assert names[CredentialKind.KEY] == "client.key"
    assert section.polling
    await section.stop()


@pytest.mark.asyncio
async def test_invalid_form_sends_nothing(device, section) -> None:
    section.update_platform(host=" ", port="70000", topic="")

    assert not await section.set_data_report()

    assert set(section.field_errors) == {"host", "port", "topic"}
    assert device.paths == []


@pytest.mark.asyncio
async def test_payload_shape(device, section, notifier) -> None:
    device.responses[Endpoint.GET_DATA_REPORT] = REPORT
    await section.get_data_report()
    await section.stop_status_polling()
    section.credentials.slot("cert").file_name = "client.crt"
    section.update_platform(port="1884")

    assert await section.set_data_report()

    sent = device.bodies("/network/setPlatformParam")[-1]
    assert sent["currentPlatformType"] == 1
    platform = sent["mqttPlatform"]
    assert "isConnected" not in platform
    assert platform["ssl"] == 1
    assert platform["mqttPort"] == 1884
    assert platform["certName"] == "client.crt"
    assert notifier.alerts == ["success"]


@pytest.mark.asyncio
async def test_failed_write_alerts_error(device, section, notifier) -> None:
    device.responses[Endpoint.SET_DATA_REPORT] = httpx.Response(503)
    section.credentials.slot("cert").file_name = "client.crt"
    section.update_platform(port="1884")

    assert not await section.set_data_report()

    assert notifier.alerts == ["error"]
    assert section.platform.port == "1884"
    assert section.platform.cert_name == ""


@pytest.mark.asyncio
async def test_polling_is_single_instance_and_reports_status(device, gateway, notifier, dialogs) -> None:
    device.responses[Endpoint.GET_DATA_REPORT] = {
        "mqttPlatform": {**REPORT["mqttPlatform"], "isConnected": 0}
    }
    seen: list[bool] = []
    section = MqttSection(gateway, notifier, dialogs, poll_interval=0.01, on_status=seen.append)

    assert section.start_status_polling()
    assert not section.start_status_polling()
    await asyncio.sleep(0.05)
    await section.stop_status_polling()

    assert not section.polling
    assert seen and not any(seen)
    polls = device.count("/network/getPlatformParam")
    await asyncio.sleep(0.03)
    assert device.count("/network/getPlatformParam") == polls


@pytest.mark.asyncio
async def test_polling_survives_transport_errors(device, section) -> None:
    device.responses[Endpoint.GET_DATA_REPORT] = [
        httpx.Response(500),
        REPORT,
    ]

    section.start_status_polling()
    await asyncio.sleep(0.05)

    assert section.polling
    assert section.platform.connected is True
    await section.stop()


@pytest.mark.asyncio
async def test_polling_survives_a_failing_status_callback(device, gateway, notifier, dialogs) -> None:
    device.responses[Endpoint.GET_DATA_REPORT] = REPORT
    seen: list[bool] = []

    def on_status(connected: bool) -> None:
        seen.append(connected)
        if len(seen) == 1:
            raise RuntimeError("subscriber crashed")

    section = MqttSection(gateway, notifier, dialogs, poll_interval=0.01, on_status=on_status)
    section.start_status_polling()
    await asyncio.sleep(0.05)

    assert section.polling
    assert len(seen) > 1
    await section.stop()


def test_change_ssl_suggests_port_only_when_blank(gateway, notifier, dialogs) -> None:
    section = MqttSection(gateway, notifier, dialogs)
    section.update_platform(port="")

    section.change_ssl(True)
    assert section.platform.port == DEFAULT_TLS_PORT

    section.change_ssl(False)
    assert section.platform.port == DEFAULT_TLS_PORT

    section.update_platform(port=" ")
    section.change_ssl(False)
    assert section.platform.port == DEFAULT_PORT
