"""
Device identity, clock, power and firmware maintenance.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
import time
from collections.abc import Awaitable, Callable

from .. import codec
from ..core.contracts import BaseSection, FieldValidationError, SectionStatus
from ..core.gateway import Endpoint, NetworkError, RequestGateway, ResultCode
from ..core.groups import BatteryInfo, DeviceInfo, NtpSync
from ..core.notifications import DialogPort, LoadingPort, NotificationPort
from ..files import LocalFile

logger = logging.getLogger(__name__)

NETMOD_CELLULAR = "cat1"

NO_FIRMWARE_TIP = "No firmware file specified."
CONFIRM_UPGRADE_TIP = "Really upgrade the firmware? The device restarts afterwards."
UPGRADE_WAIT_MESSAGE = "Upgrading, please wait..."
UPGRADE_SUCCESS_TIP = "Upgrade succeeded. The page will reload."
UPGRADE_FAILED_TIP = "Upgrade failed, please try again."
CONFIRM_SLEEP_TIP = "Put the device to sleep? It stops serving requests until it wakes up."
TYPE_C_POWERED = "Type-C powered"

ReloadCallback = Callable[[], Awaitable[object]]


def host_timezone(now: dt.datetime | None = None) -> str:
    """POSIX TZ string for the host's current UTC offset."""
    moment = now or dt.datetime.now().astimezone()
    offset = moment.utcoffset() or dt.timedelta(0)
    return codec.posix_timezone(int(offset.total_seconds()))


class DeviceSection(BaseSection):
    """
    Owns the identity, battery and NTP groups.

    ``on_reload`` is awaited after a firmware upgrade finishes either way,
    the same action a language change triggers.
    """

    name = "device"

    def __init__(
        self,
        gateway: RequestGateway,
        notifier: NotificationPort,
        dialogs: DialogPort | None = None,
        loading: LoadingPort | None = None,
        *,
        timezone: str | None = None,
        upgrade_settle_seconds: float = 5.0,
        on_reload: ReloadCallback | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(gateway, notifier, dialogs, loading)
        self.info = DeviceInfo()
        self.battery = BatteryInfo()
        self.ntp = NtpSync()
        self.timezone = timezone
        self.upgrade_settle_seconds = upgrade_settle_seconds
        self.on_reload = on_reload
        self._clock = clock
        self.firmware: LocalFile | None = None
        self.upgrading = False

    @property
    def netmod(self) -> str:
        return self.info.netmod

    @property
    def cellular(self) -> bool:
        return self.info.netmod == NETMOD_CELLULAR

    @property
    def battery_label(self) -> str:
        if self.battery.has_battery:
            return f"{self.battery.free_percent}%"
        return TYPE_C_POWERED

    async def read_all(self) -> None:
        await self.get_device_info()

    def status(self) -> SectionStatus:
        return SectionStatus(
            loaded=self.loaded,
            details={"netmod": self.netmod, "firmware": self.info.soft_version},
        )

    async def sync_time(self) -> None:
        """Push the host clock and timezone to the device."""
        payload = {"tz": self.timezone or host_timezone(), "ts": int(self._clock())}
        logger.debug("Syncing device time: %s", payload)
        await self.gateway.write(Endpoint.SET_DEV_TIME, payload)

    async def get_device_info(self) -> None:
        self.info = await self.gateway.read(Endpoint.GET_DEV_INFO, DeviceInfo)
        self.battery = await self.gateway.read(Endpoint.GET_DEV_BATTERY, BatteryInfo)
        self.ntp = await self.gateway.read(Endpoint.GET_DEV_NTP_SYNC, NtpSync)
        self.loaded = True
        logger.info(
            "Device %s (%s) firmware %s on %s",
            self.info.name,
            self.info.sn,
            self.info.soft_version,
            self.info.netmod or "wifi",
        )

    async def set_device_info(self, name: str | None = None) -> bool:
        candidate = self.info.name if name is None else name
        if not candidate or not candidate.strip():
            raise FieldValidationError("name", "device name is required")
        draft = self.info.edited(name=candidate)
        payload = draft.model_dump(
            by_alias=True, include={"name", "mac", "sn", "hard_version", "soft_version"}
        )
        try:
            await self.gateway.write(Endpoint.SET_DEV_INFO, payload)
        except NetworkError as exc:
            self._report_failure("identity write", exc)
            return False
        self.info = draft
        return True

    async def set_ntp_sync(self, enabled: bool) -> bool:
        draft = self.ntp.edited(enable=enabled)
        try:
            await self.gateway.write(Endpoint.SET_DEV_NTP_SYNC, draft.to_device())
        except NetworkError as exc:
            self._report_failure("NTP write", exc)
            return False
        self.ntp = draft
        return True

    # -- Firmware ----------------------------------------------------------------------

    def select_firmware(self, file: LocalFile | None) -> None:
        self.firmware = file

    async def upgrade(self) -> bool:
        """
        Upload the selected firmware image.

        The progress dialog stays up while the image transfers. On success the
        device gets ``upgrade_settle_seconds`` to reset before the success tip.
        """
        if self.firmware is None or not self.firmware.name:
            await self.dialogs.tip(NO_FIRMWARE_TIP)
            return False
        if not await self.dialogs.tip(CONFIRM_UPGRADE_TIP, show_cancel=True):
            return False
        self.upgrading = True
        await self.dialogs.show_upgrade(UPGRADE_WAIT_MESSAGE)
        ok = False
        try:
            content = await self.firmware.read()
            ack = await self.gateway.upload_bytes(Endpoint.SET_DEV_UPGRADE, content)
            ok = ack.result == ResultCode.OK
            if not ok:
                logger.error("Firmware upgrade rejected with result %s", ack.result)
        except (NetworkError, OSError) as exc:
            logger.error("Firmware upload failed: %s", exc)
        if ok:
            logger.info("Firmware %s accepted; waiting for the device to reset", self.firmware.name)
            await asyncio.sleep(self.upgrade_settle_seconds)
        self.dialogs.close()
        self.upgrading = False
        await self.dialogs.tip(UPGRADE_SUCCESS_TIP if ok else UPGRADE_FAILED_TIP)
        if self.on_reload is not None:
            await self.on_reload()
        return ok

    async def sleep(self) -> bool:
        if not await self.dialogs.tip(CONFIRM_SLEEP_TIP, show_cancel=True):
            return False
        try:
            await self.gateway.write(Endpoint.SET_DEV_SLEEP)
        except NetworkError as exc:
            self._report_failure("sleep", exc)
            return False
        logger.info("Device put to sleep")
        return True


__all__ = ["DeviceSection", "NETMOD_CELLULAR", "host_timezone"]
