from __future__ import annotations

import datetime as dt

import httpx
import pytest

from camsync.core.contracts import FieldValidationError
from camsync.core.gateway import Endpoint
from camsync.files import LocalFile
from camsync.sections.device import (
    CONFIRM_SLEEP_TIP,
    CONFIRM_UPGRADE_TIP,
    NO_FIRMWARE_TIP,
    UPGRADE_FAILED_TIP,
    UPGRADE_SUCCESS_TIP,
    DeviceSection,
    host_timezone,
)

INFO = {
    "netmod": "wifi",
    "name": "Front door",
    "mac": "AA:BB:CC:DD:EE:FF",
    "sn": "NE101-0001",
    "hardVersion": "V1.0",
    "softVersion": "1.2.7",
    "countryCode": "EU",
    "camera": "CSI",
}


class ReloadRecorder:
    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self) -> None:
        self.calls += 1


@pytest.fixture
def reload() -> ReloadRecorder:
    return ReloadRecorder()


@pytest.fixture
def section(gateway, notifier, dialogs, reload) -> DeviceSection:
    return DeviceSection(
        gateway,
        notifier,
        dialogs,
        timezone="UTC-8",
        upgrade_settle_seconds=0,
        on_reload=reload,
        clock=lambda: 1_700_000_000.7,
    )


def test_host_timezone_inverts_offset() -> None:
    east = dt.datetime(2024, 1, 1, tzinfo=dt.timezone(dt.timedelta(hours=8)))
    west = dt.datetime(2024, 1, 1, tzinfo=dt.timezone(dt.timedelta(hours=-5, minutes=-30)))
    assert host_timezone(east) == "UTC-8"
    assert host_timezone(west) == "UTC+5:30"


@pytest.mark.asyncio
async def test_sync_time_sends_timezone_and_epoch_seconds(device, section) -> None:
    await section.sync_time()

    assert device.bodies("/system/setDevTime") == [{"tz": "UTC-8", "ts": 1_700_000_000}]


@pytest.mark.asyncio
async def test_device_info_battery_and_ntp(device, section) -> None:
    device.responses[Endpoint.GET_DEV_INFO] = INFO
    device.responses[Endpoint.GET_DEV_BATTERY] = {"freePercent": 64, "bBattery": 1}
    device.responses[Endpoint.GET_DEV_NTP_SYNC] = {"enable": 1}

    await section.read_all()

    assert device.paths == [
        "/system/getDevInfo",
        "/system/getDevBattery",
        "/system/getDevNtpSync",
    ]
    assert not section.cellular
    assert section.battery_label == "64%"
    assert section.ntp.enable is True


def test_battery_label_without_battery(section) -> None:
    assert section.battery_label == "Type-C powered"


@pytest.mark.asyncio
async def test_identity_write(device, section) -> None:
    device.responses[Endpoint.GET_DEV_INFO] = INFO
    device.responses[Endpoint.GET_DEV_BATTERY] = {}
    device.responses[Endpoint.GET_DEV_NTP_SYNC] = {}
    await section.read_all()

    assert await section.set_device_info("Back door")

    assert device.bodies("/system/setDevInfo") == [
        {
            "name": "Back door",
            "mac": "AA:BB:CC:DD:EE:FF",
            "sn": "NE101-0001",
            "hardVersion": "V1.0",
            "softVersion": "1.2.7",
        }
    ]
    with pytest.raises(FieldValidationError):
        await section.set_device_info("  ")


@pytest.mark.asyncio
async def test_ntp_toggle(device, section) -> None:
    assert await section.set_ntp_sync(True)
    assert device.bodies("/system/setDevNtpSync") == [{"enable": 1}]


@pytest.mark.asyncio
async def test_failed_identity_and_ntp_writes_keep_previous_values(device, section, notifier) -> None:
    device.responses[Endpoint.SET_DEV_INFO] = httpx.Response(500)
    device.responses[Endpoint.SET_DEV_NTP_SYNC] = httpx.Response(500)
    section.info.name = "Front door"

    assert not await section.set_device_info("Back door")
    assert not await section.set_ntp_sync(True)

    assert section.info.name == "Front door"
    assert section.ntp.enable is False
    assert notifier.alerts == ["error", "error"]


@pytest.mark.asyncio
async def test_upgrade_without_file_only_shows_tip(device, section, dialogs, reload) -> None:
    assert not await section.upgrade()

    assert dialogs.tips == [(NO_FIRMWARE_TIP, False)]
    assert device.paths == []
    assert reload.calls == 0


@pytest.mark.asyncio
async def test_cancelled_upgrade_sends_nothing(device, section, dialogs, reload) -> None:
    dialogs.tip_answers = [False]
    section.select_firmware(LocalFile.from_bytes("fw.bin", b"\x00\x01"))

    assert not await section.upgrade()

    assert dialogs.tips == [(CONFIRM_UPGRADE_TIP, True)]
    assert device.paths == []
    assert dialogs.upgrades == []


@pytest.mark.asyncio
async def test_successful_upgrade_reloads(device, section, dialogs, reload) -> None:
    section.select_firmware(LocalFile.from_bytes("fw.bin", b"\x00\x01"))

    assert await section.upgrade()

    assert device.bodies("/system/setDevUpgrade") == [b"\x00\x01"]
    assert len(dialogs.upgrades) == 1
    assert dialogs.closed == 1
    assert dialogs.tips[-1] == (UPGRADE_SUCCESS_TIP, False)
    assert reload.calls == 1
    assert not section.upgrading


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"result": 1003}),
        httpx.ConnectError("reset by peer"),
    ],
)
@pytest.mark.asyncio
async def test_failed_upgrade_still_reloads(device, section, dialogs, reload, response) -> None:
    device.responses[Endpoint.SET_DEV_UPGRADE] = response
    section.select_firmware(LocalFile.from_bytes("fw.bin", b"\x00"))

    assert not await section.upgrade()

    assert dialogs.closed == 1
    assert dialogs.tips[-1] == (UPGRADE_FAILED_TIP, False)
    assert reload.calls == 1


@pytest.mark.asyncio
async def test_sleep_requires_confirmation(device, section, dialogs) -> None:
    dialogs.tip_answers = [False, True]

    assert not await section.sleep()
    assert device.paths == []

    assert await section.sleep()
    assert dialogs.tips == [(CONFIRM_SLEEP_TIP, True), (CONFIRM_SLEEP_TIP, True)]
    assert device.paths == ["/system/setDevSleep"]
