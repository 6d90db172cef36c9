"""
Capture and trigger parameters.

The capture group decides whether alarm-in (trigger) capture is enabled; the
trigger group holds the trigger mode and the PIR registers. Trigger mode 0
means "disabled" and is never offered to the user, so the section remembers
the last real mode and restores it when trigger capture comes back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any

from .. import codec
from ..core.contracts import BaseSection, FieldValidationError, SectionStatus
from ..core.gateway import Endpoint, NetworkError, RequestGateway
from ..core.groups import CaptureParams, TimedNode, TriggerParams
from ..core.notifications import DialogPort, LoadingPort, NotificationPort
from .schedule import DAILY, ClockField, TimeOfDayDraft, parse_ranged_int

logger = logging.getLogger(__name__)

TRIGGER_DISABLED = 0
TRIGGER_ALARM = 1
TRIGGER_PIR = 2
TRIGGER_MODES = (TRIGGER_ALARM, TRIGGER_PIR)

INTERVAL_RANGE = (1, 999)
DEFAULT_INTERVAL = 8

# Register defaults used when the device omits a field.
DEFAULT_REGISTERS = {"sens": 15, "blind": 3, "pulse": 1, "window": 0}


@dataclass
class TriggerModeMemory:
    """Current trigger mode plus the last non-zero mode."""

    current: int = TRIGGER_ALARM
    saved: int = TRIGGER_ALARM

    def __post_init__(self) -> None:
        if self.saved not in TRIGGER_MODES:
            raise ValueError(f"saved trigger mode must be one of {TRIGGER_MODES}")
        if self.current not in (TRIGGER_DISABLED, *TRIGGER_MODES):
            raise ValueError(f"unknown trigger mode {self.current}")

    @property
    def enabled(self) -> bool:
        return self.current != TRIGGER_DISABLED

    def choose(self, mode: int) -> None:
        if mode not in TRIGGER_MODES:
            raise ValueError(f"trigger mode must be one of {TRIGGER_MODES}")
        self.current = mode
        self.saved = mode

    def disable(self) -> None:
        if self.current != TRIGGER_DISABLED:
            self.saved = self.current
        self.current = TRIGGER_DISABLED

    def enable(self) -> None:
        if self.current == TRIGGER_DISABLED:
            self.current = self.saved

    def park(self, reported: int | None) -> None:
        """Record a mode read from the device while trigger capture is off."""
        self.disable()
        if reported in TRIGGER_MODES:
            self.saved = reported

    def adopt(self, reported: int | None) -> None:
        """Reconcile with a mode read from the device while trigger capture is on."""
        if reported in TRIGGER_MODES:
            self.choose(reported)
        else:
            self.current = self.saved


@dataclass
class TriggerDisplay:
    """PIR settings in display units (seconds, pulses)."""

    sensitivity: int = 15
    blind: float = 2.0
    pulse: int = 2
    window: float = 2.0

    @classmethod
    def from_registers(cls, params: TriggerParams) -> TriggerDisplay:
        def reg(name: str) -> int:
            value = getattr(params, name)
            return DEFAULT_REGISTERS[name] if value is None else value

        return cls(
            sensitivity=codec.sensitivity_to_display(reg("sens")),
            blind=codec.blind_to_display(reg("blind")),
            pulse=codec.pulse_to_display(reg("pulse")),
            window=codec.window_to_display(reg("window")),
        )

    def to_registers(self, mode: int) -> TriggerParams:
        return TriggerParams(
            trigger_mode=mode,
            sens=codec.sensitivity_to_register(self.sensitivity),
            blind=codec.blind_to_register(self.blind),
            pulse=codec.pulse_to_register(self.pulse),
            window=codec.window_to_register(self.window),
        )


class CaptureSection(BaseSection):
    """Scheduled, interval, button and trigger capture settings."""

    name = "capture"

    def __init__(
        self,
        gateway: RequestGateway,
        notifier: NotificationPort,
        dialogs: DialogPort | None = None,
        loading: LoadingPort | None = None,
    ) -> None:
        super().__init__(gateway, notifier, dialogs, loading)
        self.capture = CaptureParams()
        self.trigger = TriggerDisplay()
        self.memory = TriggerModeMemory()
        self.capture_time = TimeOfDayDraft()
        self.capture_day = DAILY
        self.interval_error = False
        self.trigger_loaded = False

    @property
    def trigger_mode(self) -> int:
        return self.memory.current

    async def read_all(self) -> None:
        await self.get_capture_info()

    def status(self) -> SectionStatus:
        return SectionStatus(
            loaded=self.loaded,
            details={"trigger_loaded": self.trigger_loaded, "trigger_mode": self.trigger_mode},
        )

    # -- Reads -----------------------------------------------------------------

    async def get_capture_info(self) -> None:
        """Read the capture group, then the trigger group that depends on it."""
        self.capture = await self.gateway.read(Endpoint.GET_CAP_PARAM, CaptureParams)
        self.loaded = True
        await self.get_trigger_info()

    async def get_trigger_info(self) -> None:
        try:
            params = await self.gateway.read(Endpoint.GET_TRIGGER_PARAM, TriggerParams)
        except NetworkError as exc:
            self._report_failure("trigger read", exc)
            self.trigger_loaded = True
            return
        if self.capture.alarm_in:
            self.memory.adopt(params.trigger_mode)
        else:
            self.memory.park(params.trigger_mode)
        self.trigger = TriggerDisplay.from_registers(params)
        self.trigger_loaded = True

    # -- Writes ----------------------------------------------------------------

    async def set_capture_info(self, capture: CaptureParams | None = None) -> bool:
        """
        Write ``capture`` (default: the current group), then act on the trigger
        enable transition.

        The draft replaces ``self.capture`` and the trigger group is only
        touched after the device acknowledged the capture write.
        """
        draft = self.capture if capture is None else capture
        try:
            await self.gateway.write(Endpoint.SET_CAP_PARAM, draft.to_device())
        except NetworkError as exc:
            self._report_failure("capture write", exc)
            return False
        self.capture = draft
        if not draft.alarm_in:
            self.memory.disable()
            await self.set_trigger_info()
        else:
            if not self.memory.enabled:
                self.memory.enable()
                await self.set_trigger_info()
            await self.get_trigger_info()
        return True

    async def set_trigger_info(self, trigger: TriggerDisplay | None = None) -> bool:
        draft = self.trigger if trigger is None else trigger
        params = draft.to_registers(self.memory.current)
        try:
            await self.gateway.write(Endpoint.SET_TRIGGER_PARAM, params.to_device())
        except NetworkError as exc:
            self._report_failure("trigger write", exc)
            return False
        self.trigger = draft
        return True

    async def set_alarm_in_capture(self, enabled: bool) -> bool:
        return await self.set_capture_info(self.capture.edited(alarm_in=enabled))

    async def set_button_capture(self, enabled: bool) -> bool:
        return await self.set_capture_info(self.capture.edited(button=enabled))

    async def set_scheduled_capture(self, enabled: bool) -> bool:
        return await self.set_capture_info(self.capture.edited(scheduled=enabled))

    async def set_warmup_ms(self, value: Any) -> bool:
        warmup = parse_ranged_int(value, 0, 60_000)
        if warmup is None:
            raise FieldValidationError("warmup_ms", "expected milliseconds between 0 and 60000")
        return await self.set_capture_info(self.capture.edited(warmup_ms=warmup))

    async def change_trigger_mode(self, mode: int, *, initial: bool = False) -> bool:
        if not self.memory.enabled:
            raise FieldValidationError("trigger_mode", "trigger capture is disabled")
        previous = replace(self.memory)
        try:
            self.memory.choose(int(mode))
        except ValueError as exc:
            raise FieldValidationError("trigger_mode", str(exc)) from exc
        if initial:
            return True
        if not await self.set_trigger_info():
            self.memory = previous
            return False
        return True

    # -- PIR fields --------------------------------------------------------------

    async def set_pir_sensitivity(self, value: Any) -> bool:
        sensitivity = codec.sensitivity_to_display(codec.sensitivity_to_register(value))
        return await self.set_trigger_info(replace(self.trigger, sensitivity=sensitivity))

    async def set_pir_blind(self, value: Any) -> bool:
        blind = codec.blind_to_display(codec.blind_to_register(value))
        return await self.set_trigger_info(replace(self.trigger, blind=blind))

    async def set_pir_pulse(self, value: Any) -> bool:
        pulse = codec.pulse_to_display(codec.pulse_to_register(value))
        return await self.set_trigger_info(replace(self.trigger, pulse=pulse))

    async def set_pir_window(self, value: Any) -> bool:
        window = codec.window_to_display(codec.window_to_register(value))
        return await self.set_trigger_info(replace(self.trigger, window=window))

    # -- Schedule ----------------------------------------------------------------

    def input_capture_time(self, field: ClockField, raw: Any) -> str:
        return self.capture_time.normalize(field, raw)

    async def add_time_setting(self) -> bool:
        node = TimedNode(day=self.capture_day, time=self.capture_time.clock)
        nodes = [*self.capture.timed_nodes, node]
        return await self.set_capture_info(self.capture.edited(timed_nodes=nodes))

    async def delete_time_setting(self, index: int) -> bool:
        nodes = list(self.capture.timed_nodes)
        if not 0 <= index < len(nodes):
            raise FieldValidationError("timed_nodes", f"no scheduled capture at {index}")
        del nodes[index]
        return await self.set_capture_info(self.capture.edited(timed_nodes=nodes))

    async def change_capture_mode(self, mode: int, *, initial: bool = False) -> bool:
        changes: dict[str, Any] = {"mode": mode}
        reset_interval = mode == 1 and self.interval_error
        if reset_interval:
            changes["interval_value"] = DEFAULT_INTERVAL
        draft = self.capture.edited(**changes)
        if initial:
            self.capture = draft
        elif not await self.set_capture_info(draft):
            return False
        if reset_interval:
            self.interval_error = False
        return True

    async def change_interval_unit(self, unit: int) -> bool:
        return await self.set_capture_info(self.capture.edited(interval_unit=unit))

    async def input_interval(self, raw: Any) -> bool:
        """Validate the interval on blur; invalid input only raises the error flag."""
        value = parse_ranged_int(raw, *INTERVAL_RANGE)
        if value is None:
            self.interval_error = True
            logger.debug("Rejected capture interval %r", raw)
            return False
        self.interval_error = False
        return await self.set_capture_info(self.capture.edited(interval_value=value))


__all__ = [
    "CaptureSection",
    "TRIGGER_ALARM",
    "TRIGGER_DISABLED",
    "TRIGGER_PIR",
    "TriggerDisplay",
    "TriggerModeMemory",
]
