"""
MQTT data report settings and broker connection polling.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Any

from ..core.contracts import BaseSection, SectionStatus
from ..core.gateway import Endpoint, NetworkError, RequestGateway
from ..core.groups import DataReport
from ..core.notifications import DialogPort, LoadingPort, NotificationPort
from .credentials import CredentialKind, CredentialLifecycleManager

logger = logging.getLogger(__name__)

MQTT_PLATFORM_TYPE = 1
DEFAULT_PORT = 1883
DEFAULT_TLS_PORT = 8883
PORT_RANGE = (1, 65535)

StatusCallback = Callable[[bool], None]


def _is_blank(value: Any) -> bool:
    return value is None or not str(value).strip()


class MqttSection(BaseSection):
    """
    Owns the data report group and the connection-status poll.

    Credential file names read from the device are handed to the
    :class:`CredentialLifecycleManager`, which owns them from then on.
    """

    name = "mqtt"

    def __init__(
        self,
        gateway: RequestGateway,
        notifier: NotificationPort,
        dialogs: DialogPort | None = None,
        loading: LoadingPort | None = None,
        *,
        credentials: CredentialLifecycleManager | None = None,
        poll_interval: float = 2.0,
        on_status: StatusCallback | None = None,
    ) -> None:
        super().__init__(gateway, notifier, dialogs, loading)
        self.report = DataReport()
        self.credentials = credentials or CredentialLifecycleManager(
            gateway, notifier, self.dialogs, loading
        )
        self.poll_interval = poll_interval
        self.on_status = on_status
        self.field_errors: dict[str, str] = {}
        self._poll_task: asyncio.Task[None] | None = None

    @property
    def platform(self):
        return self.report.mqtt

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def read_all(self) -> None:
        await self.get_data_report()

    async def stop(self) -> None:
        await self.stop_status_polling()

    def status(self) -> SectionStatus:
        return SectionStatus(
            loaded=self.loaded,
            details={"connected": self.platform.connected, "polling": self.polling},
        )

    async def get_data_report(self) -> None:
        self.report = await self.gateway.read(Endpoint.GET_DATA_REPORT, DataReport)
        self.credentials.adopt_names(
            ca=self.platform.ca_name, cert=self.platform.cert_name, key=self.platform.key_name
        )
        self.loaded = True
        self.start_status_polling()

    # -- Status polling ------------------------------------------------------------

    def start_status_polling(self) -> bool:
        """Start the poll unless one is already running."""
        if self.polling:
            return False
        self._poll_task = asyncio.create_task(self._poll_status(), name="camsync-mqtt-status")
        return True

    async def stop_status_polling(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _poll_status(self) -> None:
        while True:
            try:
                await self._poll_once()
            except NetworkError as exc:
                logger.warning("MQTT status poll failed: %s", exc)
            except Exception:
                logger.exception("MQTT status poll raised; polling continues")
            await asyncio.sleep(self.poll_interval)

    async def _poll_once(self) -> None:
        fresh = await self.gateway.read(Endpoint.GET_DATA_REPORT, DataReport)
        changed = fresh.mqtt.connected != self.platform.connected
        self.platform.connected = fresh.mqtt.connected
        if changed:
            logger.info("MQTT broker connected: %s", fresh.mqtt.connected)
        if self.on_status is not None:
            self.on_status(fresh.mqtt.connected)

    # -- Form ------------------------------------------------------------------------

    def validate(self) -> bool:
        """Check host, port and topic; failures land in :attr:`field_errors`."""
        errors: dict[str, str] = {}
        if _is_blank(self.platform.host):
            errors["host"] = "required"
        port = self.platform.port
        if _is_blank(port):
            errors["port"] = "required"
        else:
            try:
                number = float(str(port).strip())
            except ValueError:
                errors["port"] = "must be a number"
            else:
                if not PORT_RANGE[0] <= number <= PORT_RANGE[1]:
                    errors["port"] = f"must be between {PORT_RANGE[0]} and {PORT_RANGE[1]}"
        if _is_blank(self.platform.topic):
            errors["topic"] = "required"
        self.field_errors = errors
        return not errors

    def clear_validation(self) -> None:
        self.field_errors = {}

    async def set_data_report(self) -> bool:
        if not self.validate():
            logger.info("MQTT form rejected: %s", self.field_errors)
            return False
        names = self.credentials.names()
        draft = self.report.edited(platform_type=MQTT_PLATFORM_TYPE)
        draft.mqtt = draft.mqtt.edited(
            port=int(float(str(self.platform.port).strip())),
            ca_name=names[CredentialKind.CA],
            cert_name=names[CredentialKind.CERT],
            key_name=names[CredentialKind.KEY],
        )
        try:
            await self.gateway.write(Endpoint.SET_DATA_REPORT, draft.to_device())
        except NetworkError as exc:
            self._report_failure("data report write", exc)
            return False
        # The status poll may have updated the broker state during the write.
        draft.mqtt.connected = self.platform.connected
        self.report = draft
        self.notifier.alert("success")
        return True

    def change_ssl(self, enabled: bool) -> None:
        """Toggle TLS, suggesting the matching default port when none is set."""
        self.platform.tls = enabled
        if _is_blank(self.platform.port):
            self.platform.port = DEFAULT_TLS_PORT if enabled else DEFAULT_PORT

    def change_qos(self, qos: int) -> None:
        self.platform.qos = qos

    def update_platform(self, **changes: Any) -> None:
        for key, value in changes.items():
            setattr(self.platform, key, value)
        self.clear_validation()


__all__ = ["MqttSection"]
