"""
Session lifecycle: build the sections, run the startup read sequence and tear
everything down again.

The device cannot serve concurrent requests, so startup is strictly
sequential. Every step is guarded on its own: a failed step raises the error
banner and the sequence moves on to the next one.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx
from pydantic import BaseModel, ConfigDict, Field

from ..sections.capture import CaptureSection
from ..sections.cellular import CellularSection
from ..sections.credentials import CredentialLifecycleManager
from ..sections.device import DeviceSection
from ..sections.image import ImageSection
from ..sections.mqtt import MqttSection
from ..sections.upload import UploadSection
from ..sections.wlan import ConnectionStateMachine
from .bus import EventBus
from .config import ConfigSnapshot, CredentialSettings, SessionSettings
from .contracts import BaseSection, CamsyncError, MqttStatus, StepOutcome
from .gateway import RequestGateway
from .notifications import (
    BusDialogService,
    BusLoading,
    BusNotifier,
    DialogPort,
    LoadingPort,
    NotificationPort,
)

logger = logging.getLogger(__name__)

STEP_TOPIC = "session.step"
MQTT_STATUS_TOPIC = "mqtt.status"


class StartupReport(BaseModel):
    """Outcome of every step of one startup run, in execution order."""

    model_config = ConfigDict(frozen=True)

    outcomes: list[StepOutcome] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes)

    @property
    def steps(self) -> list[str]:
        return [outcome.step for outcome in self.outcomes]

    @property
    def failed(self) -> list[str]:
        return [outcome.step for outcome in self.outcomes if not outcome.ok]


class SessionOrchestrator:
    """Own the gateway, the user-facing ports and every section of a session."""

    def __init__(
        self,
        *,
        gateway: RequestGateway,
        notifier: NotificationPort,
        dialogs: DialogPort,
        loading: LoadingPort | None = None,
        bus: EventBus | None = None,
        session: SessionSettings | None = None,
        credentials: CredentialSettings | None = None,
    ) -> None:
        session = session or SessionSettings()
        credentials = credentials or CredentialSettings()
        self.bus = bus or EventBus()
        self.gateway = gateway
        self.notifier = notifier
        self.dialogs = dialogs
        self.loading = loading
        self._running = False
        self._startup_lock = asyncio.Lock()
        self.last_report: StartupReport | None = None

        self.device = DeviceSection(
            gateway,
            notifier,
            dialogs,
            loading,
            timezone=session.timezone,
            upgrade_settle_seconds=session.upgrade_settle_seconds,
            on_reload=self.reload,
        )
        self.image = ImageSection(gateway, notifier, dialogs, loading)
        self.capture = CaptureSection(gateway, notifier, dialogs, loading)
        self.upload = UploadSection(gateway, notifier, dialogs, loading)
        self.credentials = CredentialLifecycleManager(
            gateway, notifier, dialogs, loading, max_file_bytes=credentials.max_file_bytes
        )
        self.mqtt = MqttSection(
            gateway,
            notifier,
            dialogs,
            loading,
            credentials=self.credentials,
            poll_interval=session.mqtt_status_interval,
            on_status=self._publish_mqtt_status,
        )
        self.wlan = ConnectionStateMachine(gateway, notifier, dialogs, loading)
        self.cellular = CellularSection(gateway, notifier, dialogs, loading)

    @classmethod
    def from_config(
        cls,
        snapshot: ConfigSnapshot,
        *,
        bus: EventBus | None = None,
        dialogs: DialogPort | None = None,
        notifier: NotificationPort | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> SessionOrchestrator:
        """Wire a session from configuration with the bus-backed ports."""
        bus = bus or EventBus()
        gateway = RequestGateway(
            snapshot.device.base_url,
            api_prefix=snapshot.device.api_prefix,
            timeout=snapshot.device.request_timeout,
            transport=transport,
        )
        return cls(
            gateway=gateway,
            notifier=notifier
            or BusNotifier(bus, clear_after=snapshot.session.notification_clear_seconds),
            dialogs=dialogs or BusDialogService(bus),
            loading=BusLoading(bus),
            bus=bus,
            session=snapshot.session,
            credentials=snapshot.credentials,
        )

    @property
    def running(self) -> bool:
        return self._running

    @property
    def network(self) -> BaseSection:
        """The uplink section this device uses."""
        return self.cellular if self.device.cellular else self.wlan

    @property
    def sections(self) -> dict[str, BaseSection]:
        return {
            section.name: section
            for section in (
                self.device,
                self.image,
                self.capture,
                self.upload,
                self.mqtt,
                self.wlan,
                self.cellular,
            )
        }

    async def start(self) -> StartupReport:
        """Start the bus and run the startup sequence once."""
        if self._running:
            logger.warning("Session already running.")
            return self.last_report or StartupReport()
        await self.bus.start()
        self._running = True
        return await self.run_startup()

    async def reload(self) -> StartupReport:
        """Re-read everything from the device, as after a page reload."""
        logger.info("Reloading session state from the device.")
        return await self.run_startup()

    async def run_startup(self) -> StartupReport:
        async with self._startup_lock:
            outcomes: list[StepOutcome] = []
            steps: list[tuple[str, Callable[[], Awaitable[object]]]] = [
                ("sync_time", self.device.sync_time),
                ("device", self._read_device),
                ("image", self.image.read_all),
                ("capture", self.capture.read_all),
                ("upload", self.upload.read_all),
                ("mqtt", self.mqtt.read_all),
            ]
            for name, action in steps:
                outcomes.append(await self._run_step(name, action))
            # The uplink depends on the netmod read in the device step.
            network = self.network
            outcomes.append(await self._run_step(network.name, network.read_all))
            report = StartupReport(outcomes=outcomes)
            self.last_report = report
            if report.ok:
                logger.info("Startup finished: %d steps.", len(outcomes))
            else:
                logger.warning("Startup finished with failed steps: %s", ", ".join(report.failed))
            return report

    async def stop(self) -> None:
        """Cancel background polling, close the device channel and stop the bus."""
        for section in reversed(list(self.sections.values())):
            try:
                await section.stop()
            except Exception as exc:  # pragma: no cover - logged for troubleshooting
                logger.exception("Failed to stop section %s: %s", section.name, exc)
        self.dialogs.close()
        await self.gateway.aclose()
        await self.bus.stop()
        self._running = False
        logger.info("Session stopped.")

    async def _read_device(self) -> None:
        await self.device.read_all()
        self.wlan.set_region_options(self.device.info.soft_version, self.device.info.country_code)

    async def _run_step(
        self, name: str, action: Callable[[], Awaitable[object]]
    ) -> StepOutcome:
        logger.debug("Startup step %s", name)
        try:
            await action()
        except CamsyncError as exc:
            logger.error("Startup step %s failed: %s", name, exc)
            self.notifier.alert("error")
            outcome = StepOutcome(step=name, ok=False, error=str(exc))
        except Exception as exc:
            logger.exception("Startup step %s crashed: %s", name, exc)
            self.notifier.alert("error")
            outcome = StepOutcome(step=name, ok=False, error=str(exc))
        else:
            outcome = StepOutcome(step=name, ok=True)
        self.bus.publish_nowait(STEP_TOPIC, outcome)
        return outcome

    def _publish_mqtt_status(self, connected: bool) -> None:
        self.bus.publish_nowait(MQTT_STATUS_TOPIC, MqttStatus(connected=connected))


__all__ = ["MQTT_STATUS_TOPIC", "STEP_TOPIC", "SessionOrchestrator", "StartupReport"]
