from __future__ import annotations

import asyncio

import httpx
import pytest

from camsync import SessionOrchestrator
from camsync.core.bus import EventBus
from camsync.core.config import ConfigService, SessionSettings
from camsync.core.contracts import MqttStatus, StepOutcome
from camsync.core.gateway import Endpoint
from camsync.core.orchestrator import MQTT_STATUS_TOPIC, STEP_TOPIC
from camsync.sections.wlan import FCC_REGIONS

WIFI_STEPS = ["sync_time", "device", "image", "capture", "upload", "mqtt", "wlan"]


def stub_device(device, *, netmod: str = "wifi") -> None:
    device.responses.update(
        {
            Endpoint.GET_DEV_INFO: {
                "netmod": netmod,
                "name": "cam",
                "softVersion": "2.1.4",
                "countryCode": "US",
            },
            Endpoint.GET_DEV_BATTERY: {"freePercent": 80, "bBattery": 1},
            Endpoint.GET_DEV_NTP_SYNC: {"enable": 0},
            Endpoint.GET_LIGHT_PARAM: {"lightMode": 0},
            Endpoint.GET_CAM_PARAM: {"frameSize": 14},
            Endpoint.GET_CAP_PARAM: {"bAlarmInCap": 1},
            Endpoint.GET_TRIGGER_PARAM: {"trigger_mode": 1},
            Endpoint.GET_UPLOAD_PARAM: {"uploadMode": 0},
            Endpoint.GET_DATA_REPORT: {"mqttPlatform": {"isConnected": 1}},
            Endpoint.GET_WIFI_LIST: {"nodes": [{"ssid": "home", "rssi": -60}]},
            Endpoint.GET_WIFI_PARAM: {"ssid": "home", "isConnected": 1},
            Endpoint.GET_CELLULAR_PARAM: {"apn": "internet"},
            Endpoint.GET_CELLULAR_STATUS: {"networkStatus": "Connected"},
        }
    )


@pytest.fixture
def orchestrator(gateway, notifier, dialogs, loading) -> SessionOrchestrator:
    return SessionOrchestrator(
        gateway=gateway,
        notifier=notifier,
        dialogs=dialogs,
        loading=loading,
        bus=EventBus(),
        session=SessionSettings(timezone="UTC0", mqtt_status_interval=60),
    )


@pytest.mark.asyncio
async def test_startup_runs_steps_in_order(device, orchestrator) -> None:
    stub_device(device)

    report = await orchestrator.start()
    await orchestrator.stop()

    assert report.ok
    assert report.steps == WIFI_STEPS
    assert list(dict.fromkeys(device.paths)) == [
        "/system/setDevTime",
        "/system/getDevInfo",
        "/system/getDevBattery",
        "/system/getDevNtpSync",
        "/image/getLightParam",
        "/image/getCamParam",
        "/capture/getCapParam",
        "/capture/getTriggerParam",
        "/capture/getUploadParam",
        "/network/getPlatformParam",
        "/network/getWifiList",
        "/network/getWifiParam",
    ]
    assert device.max_concurrent == 1


@pytest.mark.asyncio
async def test_cellular_device_reads_modem_instead_of_wifi(device, orchestrator) -> None:
    stub_device(device, netmod="cat1")

    report = await orchestrator.start()
    await orchestrator.stop()

    assert report.steps[-1] == "cellular"
    assert orchestrator.network is orchestrator.cellular
    assert "/network/getCellularStatus" in device.paths
    assert "/network/getWifiList" not in device.paths


@pytest.mark.asyncio
async def test_failed_step_alerts_and_sequence_continues(device, orchestrator, notifier) -> None:
    stub_device(device)
    device.responses[Endpoint.GET_LIGHT_PARAM] = httpx.Response(500)

    report = await orchestrator.start()
    await orchestrator.stop()

    assert report.failed == ["image"]
    assert report.steps == WIFI_STEPS
    assert notifier.alerts == ["error"]
    # The camera group is skipped with the light read; later groups still load.
    assert "/image/getCamParam" not in device.paths
    assert orchestrator.upload.loaded


@pytest.mark.asyncio
async def test_unexpected_step_error_is_recorded_and_sequence_continues(
    device, orchestrator, notifier, monkeypatch
) -> None:
    stub_device(device)

    async def crash() -> None:
        raise RuntimeError("unexpected payload")

    monkeypatch.setattr(orchestrator.upload, "read_all", crash)

    report = await orchestrator.start()
    await orchestrator.stop()

    assert report.failed == ["upload"]
    assert report.steps == WIFI_STEPS
    assert report.outcomes[4].error == "unexpected payload"
    assert notifier.alerts == ["error"]
    assert orchestrator.wlan.loaded

@pytest.mark.asyncio
async def test_region_options_come_from_device_info(device, orchestrator) -> None:
    stub_device(device)

    await orchestrator.start()
    await orchestrator.stop()

    assert orchestrator.wlan.region_options == FCC_REGIONS
    assert orchestrator.wlan.region == "US"


@pytest.mark.asyncio
async def test_step_outcomes_and_mqtt_status_are_published(device, gateway, notifier, dialogs) -> None:
    stub_device(device)
    bus = EventBus()
    steps: list[StepOutcome] = []
    statuses: list[MqttStatus] = []
    bus.subscribe(STEP_TOPIC, lambda _topic, payload: steps.append(payload))
    bus.subscribe(MQTT_STATUS_TOPIC, lambda _topic, payload: statuses.append(payload))
    orchestrator = SessionOrchestrator(
        gateway=gateway,
        notifier=notifier,
        dialogs=dialogs,
        bus=bus,
        session=SessionSettings(mqtt_status_interval=0.01),
    )

    await orchestrator.start()
    await asyncio.sleep(0.05)
    await bus.drain()
    await orchestrator.stop()

    assert [step.step for step in steps] == WIFI_STEPS
    assert statuses and statuses[0].connected


@pytest.mark.asyncio
async def test_stop_cancels_polling_and_closes_dialogs(device, orchestrator, dialogs) -> None:
    stub_device(device)
    await orchestrator.start()
    assert orchestrator.mqtt.polling

    await orchestrator.stop()

    assert not orchestrator.mqtt.polling
    assert not orchestrator.bus.running
    assert not orchestrator.running
    assert dialogs.closed == 1


@pytest.mark.asyncio
async def test_upgrade_reload_reruns_startup(device, orchestrator) -> None:
    stub_device(device)
    await orchestrator.start()
    first = device.count("/system/getDevInfo")

    await orchestrator.device.on_reload()
    await orchestrator.stop()

    assert device.count("/system/getDevInfo") == first + 1
    assert orchestrator.last_report.ok


@pytest.mark.asyncio
async def test_from_config_wires_gateway_and_limits(
    device, sample_config_service: ConfigService
) -> None:
    stub_device(device)
    orchestrator = SessionOrchestrator.from_config(
        sample_config_service.snapshot, transport=httpx.MockTransport(device)
    )

    report = await orchestrator.start()
    await orchestrator.stop()

    assert report.ok
    assert orchestrator.credentials.max_file_bytes == 64 * 1024 * 1024
    assert device.bodies("/system/setDevTime")[0]["tz"] == "UTC-8"
