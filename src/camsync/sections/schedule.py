"""
Helpers shared by the capture and upload schedules.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from ..codec import format_time_number

ClockField = Literal["hour", "minute", "second"]

DAILY = 7
WEEKDAY_LABELS: dict[int, str] = {
    DAILY: "Daily",
    1: "Mon",
    2: "Tue",
    3: "Wed",
    4: "Thu",
    5: "Fri",
    6: "Sat",
    0: "Sun",
}

INTERVAL_UNITS: dict[int, str] = {0: "min", 1: "h", 2: "d"}


def day_label(day: int) -> str:
    return WEEKDAY_LABELS[day]


def parse_ranged_int(value: Any, low: int, high: int) -> int | None:
    """Return ``value`` as an int when it is present and inside ``[low, high]``."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if not low <= number <= high:
        return None
    return int(number)


@dataclass
class TimeOfDayDraft:
    """Hour/minute/second text fields edited before a node is added."""

    hour: str = "00"
    minute: str = "00"
    second: str = "00"

    def normalize(self, field: ClockField, raw: Any) -> str:
        """Clamp one field on blur; the other two are left untouched."""
        kind = "hour" if field == "hour" else "minute"
        value = format_time_number(kind, raw)
        setattr(self, field, value)
        return value

    @property
    def clock(self) -> str:
        return f"{self.hour}:{self.minute}:{self.second}"


__all__ = [
    "DAILY",
    "INTERVAL_UNITS",
    "TimeOfDayDraft",
    "WEEKDAY_LABELS",
    "day_label",
    "parse_ranged_int",
]
