"""
User-facing ports: the global notification banner, the single dialog and the
loading overlay.

Sections depend on the :class:`NotificationPort`, :class:`DialogPort` and
:class:`LoadingPort` protocols only. The bus-backed implementations here are
the process-wide instances: they publish typed payloads on the event bus so a
front end can render them, and they enforce the "one banner, one dialog"
rules regardless of who calls them.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
from typing import Protocol, runtime_checkable

from .bus import EventBus
from .contracts import (
    DialogClosed,
    DialogRequest,
    LoadingState,
    Notification,
    NotificationKind,
    PasswordPrompt,
    TipDialog,
    UpgradeProgress,
)

logger = logging.getLogger(__name__)

NOTIFICATION_TOPIC = "ui.notification"
DIALOG_TOPIC = "ui.dialog"
LOADING_TOPIC = "ui.loading"


@runtime_checkable
class NotificationPort(Protocol):
    def alert(self, kind: NotificationKind = "error") -> None: ...


@runtime_checkable
class DialogPort(Protocol):
    async def tip(self, message: str, *, show_cancel: bool = False) -> bool: ...

    async def prompt_password(self, ssid: str, *, show_error: bool = False) -> str | None: ...

    async def show_upgrade(self, message: str) -> None: ...

    def close(self) -> None: ...


@runtime_checkable
class LoadingPort(Protocol):
    def show(self, message: str = "Loading...") -> None: ...

    def hide(self) -> None: ...


class BusNotifier:
    """Single global banner that clears itself after ``clear_after`` seconds."""

    def __init__(self, bus: EventBus, *, clear_after: float = 5.0) -> None:
        self._bus = bus
        self._clear_after = clear_after
        self._current: NotificationKind | None = None
        self._clear_handle: asyncio.TimerHandle | None = None
        self._history: list[NotificationKind] = []

    @property
    def current(self) -> NotificationKind | None:
        return self._current

    @property
    def history(self) -> list[NotificationKind]:
        return list(self._history)

    def alert(self, kind: NotificationKind = "error") -> None:
        self._current = kind
        self._history.append(kind)
        logger.info("Notification: %s", kind)
        self._bus.publish_nowait(NOTIFICATION_TOPIC, Notification(kind=kind))
        if self._clear_handle is not None:
            self._clear_handle.cancel()
            self._clear_handle = None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._clear_handle = loop.call_later(self._clear_after, self._clear)

    def _clear(self) -> None:
        self._clear_handle = None
        self._current = None
        self._bus.publish_nowait(NOTIFICATION_TOPIC, Notification(kind=None))


class BusDialogService:
    """
    The one dialog instance of the process.

    Opening a dialog publishes its request on ``ui.dialog`` and waits for a
    front end to call :meth:`respond`. Opening another dialog first dismisses
    the current one, which resolves its waiter as cancelled.
    """

    def __init__(
        self,
        bus: EventBus,
        *,
        progress_step: float = 0.12,
    ) -> None:
        self._bus = bus
        self._ids = itertools.count(1)
        self._current: DialogRequest | None = None
        self._waiter: asyncio.Future[tuple[bool, str | None]] | None = None
        self._progress_step = progress_step
        self._progress_task: asyncio.Task[None] | None = None
        self._progress = 0

    @property
    def current(self) -> DialogRequest | None:
        return self._current

    @property
    def progress(self) -> int:
        return self._progress

    async def tip(self, message: str, *, show_cancel: bool = False) -> bool:
        request = TipDialog(dialog_id=next(self._ids), message=message, show_cancel=show_cancel)
        confirmed, _ = await self._open(request)
        return confirmed

    async def prompt_password(self, ssid: str, *, show_error: bool = False) -> str | None:
        request = PasswordPrompt(
            dialog_id=next(self._ids), title=ssid, ssid=ssid, show_error=show_error
        )
        confirmed, password = await self._open(request)
        if not confirmed:
            return None
        return password or ""

    async def show_upgrade(self, message: str) -> None:
        """Open the progress dialog and simulate progress up to 100."""
        request = UpgradeProgress(
            dialog_id=next(self._ids), title="System upgrade", message=message
        )
        self._replace(request)
        self._progress = 0
        self._progress_task = asyncio.create_task(
            self._simulate_progress(request), name="camsync-upgrade-progress"
        )

    def respond(self, dialog_id: int, *, confirmed: bool, password: str | None = None) -> bool:
        """Resolve the dialog ``dialog_id``; stale responses are ignored."""
        if self._current is None or self._current.dialog_id != dialog_id:
            logger.debug("Ignoring response for stale dialog %s", dialog_id)
            return False
        waiter, self._waiter = self._waiter, None
        self._dismiss()
        if waiter is not None and not waiter.done():
            waiter.set_result((confirmed, password))
        return True

    def close(self) -> None:
        self._dismiss()

    async def _open(self, request: DialogRequest) -> tuple[bool, str | None]:
        self._replace(request)
        waiter: asyncio.Future[tuple[bool, str | None]] = (
            asyncio.get_running_loop().create_future()
        )
        self._waiter = waiter
        return await waiter

    def _replace(self, request: DialogRequest) -> None:
        self._dismiss()
        self._current = request
        logger.debug("Opening %s dialog %s", request.shape, request.dialog_id)
        self._bus.publish_nowait(DIALOG_TOPIC, request)

    def _dismiss(self) -> None:
        if self._progress_task is not None:
            self._progress_task.cancel()
            self._progress_task = None
        waiter, self._waiter = self._waiter, None
        if waiter is not None and not waiter.done():
            waiter.set_result((False, None))
        if self._current is not None:
            closed = DialogClosed(dialog_id=self._current.dialog_id)
            self._current = None
            self._bus.publish_nowait(DIALOG_TOPIC, closed)

    async def _simulate_progress(self, request: UpgradeProgress) -> None:
        with contextlib.suppress(asyncio.CancelledError):
            while self._progress < 100:
                await asyncio.sleep(self._progress_step)
                self._progress += 1
                if self._progress % 10 == 0:
                    self._bus.publish_nowait(
                        DIALOG_TOPIC, request.model_copy(update={"progress": self._progress})
                    )


class BusLoading:
    """Loading overlay toggled through ``ui.loading``."""

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus
        self.visible = False

    def show(self, message: str = "Loading...") -> None:
        self.visible = True
        self._bus.publish_nowait(LOADING_TOPIC, LoadingState(visible=True, message=message))

    def hide(self) -> None:
        self.visible = False
        self._bus.publish_nowait(LOADING_TOPIC, LoadingState(visible=False))


__all__ = [
    "BusDialogService",
    "BusLoading",
    "BusNotifier",
    "DIALOG_TOPIC",
    "DialogPort",
    "LOADING_TOPIC",
    "LoadingPort",
    "NOTIFICATION_TOPIC",
    "NotificationPort",
]
