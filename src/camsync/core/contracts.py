"""
Contracts and payload schemas shared by camsync sections.

Sections talk to the outside world through three narrow channels: the request
gateway for device I/O, and the notification/dialog ports for the user. The
payloads below are what those ports publish on the event bus so any front end
(console, web socket, test double) can render them.
"""

from __future__ import annotations

import abc
import datetime as dt
import logging
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from .gateway import RequestGateway
    from .notifications import DialogPort, LoadingPort, NotificationPort

logger = logging.getLogger(__name__)

NotificationKind = Literal["success", "error"]


class CamsyncError(RuntimeError):
    """Root of all camsync errors."""


class FieldValidationError(CamsyncError, ValueError):
    """Client-side validation rejected a field before any request was sent."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class BasePayload(BaseModel):
    """Base class for all bus payloads."""

    model_config = ConfigDict(extra="allow", frozen=True)

    schema_version: str = Field(
        default="1.0.0", description="Semantic version of the payload schema."
    )
    timestamp_utc: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(tz=dt.UTC),
        description="Emission timestamp in UTC.",
    )


class Notification(BasePayload):
    """Global success/error banner. ``kind=None`` means the banner was cleared."""

    kind: NotificationKind | None = None


class DialogRequest(BasePayload):
    """Common fields for the single process-wide dialog."""

    dialog_id: int = Field(ge=0)
    shape: str
    title: str = Field(default="Tips")


class TipDialog(DialogRequest):
    """Plain message with a confirm button and an optional cancel button."""

    shape: Literal["tip"] = "tip"
    message: str
    show_cancel: bool = False


class PasswordPrompt(DialogRequest):
    """Password form for joining an encrypted network."""

    shape: Literal["password"] = "password"
    ssid: str
    show_error: bool = False


class UpgradeProgress(DialogRequest):
    """Firmware upgrade progress; ``progress`` runs from 0 to 100."""

    shape: Literal["upgrade"] = "upgrade"
    message: str
    progress: int = Field(default=0, ge=0, le=100)


class DialogClosed(BasePayload):
    """Published when the current dialog is dismissed or superseded."""

    dialog_id: int = Field(ge=0)


class LoadingState(BasePayload):
    """Loading overlay visibility."""

    visible: bool
    message: str = "Loading..."


class MqttStatus(BasePayload):
    """Broker connection state reported by the device while polling."""

    connected: bool


class StepOutcome(BasePayload):
    """Result of a single startup step."""

    step: str
    ok: bool
    error: str | None = None


class SectionStatus(BaseModel):
    """Structured status report for a section."""

    model_config = ConfigDict(extra="allow", frozen=True)

    loaded: bool
    details: dict[str, Any] = Field(default_factory=dict)


class BaseSection(abc.ABC):
    """
    Abstract base class for configuration sections.

    A section owns one or more parameter groups and exposes a narrow
    interface: ``init`` for one-off setup, ``read_all`` to pull its groups
    from the device and ``stop`` to release timers. Sections never reach into
    each other; the orchestrator wires any cross-section data explicitly.
    """

    name: str

    def __init__(
        self,
        gateway: RequestGateway,
        notifier: NotificationPort,
        dialogs: DialogPort | None = None,
        loading: LoadingPort | None = None,
    ) -> None:
        self.gateway = gateway
        self.notifier = notifier
        self._dialogs = dialogs
        self._loading = loading
        self.loaded = False

    @property
    def dialogs(self) -> DialogPort:
        if self._dialogs is None:
            raise RuntimeError(f"{self.__class__.__name__} has no dialog port attached.")
        return self._dialogs

    async def init(self) -> None:
        """Optional one-off setup before the first read."""
        return None

    @abc.abstractmethod
    async def read_all(self) -> None:
        """Fetch every parameter group owned by the section, in dependency order."""

    async def stop(self) -> None:
        """
        Optional hook to release timers.

        Base implementation is a no-op so subclasses only override when they
        schedule background work.
        """
        return None

    def status(self) -> SectionStatus:
        return SectionStatus(loaded=self.loaded)

    def _report_failure(self, action: str, exc: Exception) -> None:
        logger.error("%s %s failed: %s", self.name, action, exc)
        self.notifier.alert("error")


__all__ = [
    "BasePayload",
    "BaseSection",
    "CamsyncError",
    "DialogClosed",
    "DialogRequest",
    "FieldValidationError",
    "LoadingState",
    "MqttStatus",
    "Notification",
    "NotificationKind",
    "PasswordPrompt",
    "SectionStatus",
    "StepOutcome",
    "TipDialog",
    "UpgradeProgress",
]
