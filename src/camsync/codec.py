"""
Value transforms between device register encodings and display values.

Every function here is pure. Display input coming from the user is clamped to
the display domain before it is converted back into a register value, so the
device never receives an out-of-range register. Non-numeric input is treated
as the lower bound of the domain.
"""

from __future__ import annotations

import math
from enum import IntEnum
from typing import Any, Literal

SENSITIVITY_RANGE = (0, 255)
BLIND_REGISTER_RANGE = (0, 15)
BLIND_DISPLAY_RANGE = (0.5, 8.0)
PULSE_REGISTER_RANGE = (0, 3)
PULSE_DISPLAY_RANGE = (1, 4)
WINDOW_REGISTER_RANGE = (0, 3)
WINDOW_DISPLAY_RANGE = (2.0, 8.0)
QUALITY_RANGE = (0, 63)

# Lower bounds of signal levels 1..4; anything below the first is level 0.
RSSI_THRESHOLDS = (-88, -77, -66, -55)

TimeKind = Literal["hour", "minute", "second"]
_TIME_MAX: dict[str, int] = {"hour": 23, "minute": 59, "second": 59}


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number):
        return None
    return number


def clamp(value: Any, low: float, high: float) -> float:
    """Clamp ``value`` into ``[low, high]``; non-numeric input becomes ``low``."""
    number = _to_number(value)
    if number is None:
        return low
    return min(max(number, low), high)


def round_half_up(value: float) -> int:
    """Round like a browser's ``Math.round`` (ties go towards +infinity)."""
    return math.floor(value + 0.5)


def _register(value: Any, bounds: tuple[int, int]) -> int:
    return int(clamp(value, *bounds))


# -- PIR sensitivity ---------------------------------------------------------


def sensitivity_to_display(register: Any) -> int:
    return _register(register, SENSITIVITY_RANGE)


def sensitivity_to_register(display: Any) -> int:
    return round_half_up(clamp(display, *SENSITIVITY_RANGE))


# -- PIR blind time: display = register * 0.5 + 0.5 --------------------------


def blind_to_display(register: Any) -> float:
    return _register(register, BLIND_REGISTER_RANGE) * 0.5 + 0.5


def blind_to_register(display: Any) -> int:
    seconds = clamp(display, *BLIND_DISPLAY_RANGE)
    return round_half_up((seconds - 0.5) * 2)


# -- PIR pulse count: display = register + 1 ---------------------------------


def pulse_to_display(register: Any) -> int:
    return _register(register, PULSE_REGISTER_RANGE) + 1


def pulse_to_register(display: Any) -> int:
    return round_half_up(clamp(display, *PULSE_DISPLAY_RANGE)) - 1


# -- PIR window time: display = register * 2 + 2 -----------------------------


def window_to_display(register: Any) -> float:
    return float(_register(register, WINDOW_REGISTER_RANGE) * 2 + 2)


def window_to_register(display: Any) -> int:
    seconds = clamp(display, *WINDOW_DISPLAY_RANGE)
    return round_half_up((seconds - 2) / 2)


# -- Rendering helpers --------------------------------------------------------


def rssi_to_level(rssi: Any) -> int:
    """
    Bucket a negative RSSI reading into a signal level from 0 to 4.

    Each bucket's lower bound is exclusive on the level below it:
    ``rssi < -88`` is 0, ``-88 <= rssi < -77`` is 1 and so on, ``>= -55`` is 4.
    """
    number = _to_number(rssi)
    if number is None:
        return 0
    level = 0
    for threshold in RSSI_THRESHOLDS:
        if number < threshold:
            break
        level += 1
    return level


def clamp_quality(value: Any) -> int:
    return round_half_up(clamp(value, *QUALITY_RANGE))


# -- Time of day ---------------------------------------------------------------


def format_time_number(kind: TimeKind, raw: Any) -> str:
    """
    Normalise a single hour/minute/second field to a two-digit string.

    Empty, non-numeric, or non-positive input becomes ``"00"``; anything above
    the field maximum becomes the maximum.
    """
    maximum = _TIME_MAX[kind]
    number = _to_number(raw)
    if number is None or number <= 0:
        return "00"
    if number > maximum:
        return f"{maximum:02d}"
    return f"{int(number):02d}"


def increase_one_minute(hour: Any, minute: Any) -> tuple[str, str]:
    """Advance ``hour:minute`` by one minute, wrapping 23:59 to 00:00."""
    h = int(clamp(hour, 0, 23))
    m = int(clamp(minute, 0, 59))
    total = (h * 60 + m + 1) % (24 * 60)
    return f"{total // 60:02d}", f"{total % 60:02d}"


def split_clock(value: str | None, default: str = "00:00") -> tuple[str, str]:
    """Split ``"HH:MM"`` into its two components, falling back to ``default``."""
    text = value if value and ":" in value else default
    hour, minute = text.split(":", 1)
    return hour, minute.split(":", 1)[0]


def posix_timezone(offset_seconds: int) -> str:
    """
    Render a UTC offset as a POSIX ``TZ`` string.

    POSIX offsets are inverted: UTC+08:00 is ``UTC-8`` and UTC-05:30 is
    ``UTC+5:30``.
    """
    sign = "-" if offset_seconds >= 0 else "+"
    minutes = abs(offset_seconds) // 60
    hours, rest = divmod(minutes, 60)
    if offset_seconds == 0:
        return "UTC0"
    if rest:
        return f"UTC{sign}{hours}:{rest:02d}"
    return f"UTC{sign}{hours}"


class FrameSize(IntEnum):
    """Sensor frame sizes accepted by the camera group."""

    QVGA = 5
    VGA = 8
    SVGA = 9
    XGA = 10
    HD = 11
    SXGA = 12
    UXGA = 13
    FHD = 14
    QXGA = 17
    QSXGA = 21

    @property
    def resolution(self) -> tuple[int, int]:
        return _RESOLUTIONS[self]

    @property
    def label(self) -> str:
        width, height = self.resolution
        return f"{width}×{height}"

    @classmethod
    def from_label(cls, label: str) -> FrameSize:
        normalised = label.replace("x", "×").replace("X", "×").strip()
        for member in cls:
            if member.label == normalised:
                return member
        raise ValueError(f"Unknown frame size label {label!r}")


_RESOLUTIONS: dict[FrameSize, tuple[int, int]] = {
    FrameSize.QVGA: (320, 240),
    FrameSize.VGA: (640, 480),
    FrameSize.SVGA: (800, 600),
    FrameSize.XGA: (1024, 768),
    FrameSize.HD: (1280, 720),
    FrameSize.SXGA: (1280, 1024),
    FrameSize.UXGA: (1600, 1200),
    FrameSize.FHD: (1920, 1080),
    FrameSize.QXGA: (2048, 1536),
    FrameSize.QSXGA: (2560, 1920),
}


__all__ = [
    "BLIND_DISPLAY_RANGE",
    "BLIND_REGISTER_RANGE",
    "FrameSize",
    "PULSE_DISPLAY_RANGE",
    "PULSE_REGISTER_RANGE",
    "QUALITY_RANGE",
    "RSSI_THRESHOLDS",
    "SENSITIVITY_RANGE",
    "WINDOW_DISPLAY_RANGE",
    "WINDOW_REGISTER_RANGE",
    "blind_to_display",
    "blind_to_register",
    "clamp",
    "clamp_quality",
    "format_time_number",
    "increase_one_minute",
    "posix_timezone",
    "pulse_to_display",
    "pulse_to_register",
    "round_half_up",
    "rssi_to_level",
    "sensitivity_to_display",
    "sensitivity_to_register",
    "split_clock",
    "window_to_display",
    "window_to_register",
]
