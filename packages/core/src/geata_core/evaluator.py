"""Schedule evaluation.

Pure functions deciding whether a schedule admits a given instant. A slot
matches when the instant's weekday is in its day set (an empty set means every
day) and its ``HH:MM`` lies within ``[start, end]``, both bounds inclusive.
Times are compared as zero-padded strings.

A schedule without slots admits nothing. "No schedule at all" means
unrestricted access, but that is decided by the access policy and never
reaches this module.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from geata_core.errors import MalformedInputError

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")


@dataclass(frozen=True)
class Slot:
    start: str
    end: str
    days_of_week: Sequence[int] = field(default_factory=tuple)


def normalize_hhmm(value: str) -> str:
    """Return ``value`` as zero-padded ``HH:MM`` or raise MalformedInputError."""
    m = _HHMM.match(str(value or "").strip())
    if not m:
        raise MalformedInputError(f"invalid time of day: {value!r}")
    hour, minute = int(m.group(1)), int(m.group(2))
    if hour > 23 or minute > 59:
        raise MalformedInputError(f"invalid time of day: {value!r}")
    return f"{hour:02d}:{minute:02d}"


def normalize_days(values: Optional[Iterable[int]]) -> List[int]:
    days = []
    for d in values or []:
        try:
            n = int(d)
        except (TypeError, ValueError):
            raise MalformedInputError(f"invalid weekday: {d!r}")
        if not 0 <= n <= 6:
            raise MalformedInputError(f"weekday out of range (0=Sunday..6=Saturday): {d!r}")
        days.append(n)
    return sorted(set(days))


def weekday_of(instant: datetime) -> int:
    """Weekday with 0=Sunday .. 6=Saturday."""
    return instant.isoweekday() % 7


def is_slot_active(slot, instant: datetime) -> bool:
    days = slot.days_of_week
    if days and weekday_of(instant) not in days:
        return False
    now_str = instant.strftime("%H:%M")
    return slot.start <= now_str <= slot.end


def is_schedule_active(schedule, instant: datetime) -> bool:
    slots = schedule.slots
    if not slots:
        return False
    return any(is_slot_active(s, instant) for s in slots)


__all__ = [
    "Slot",
    "normalize_hhmm",
    "normalize_days",
    "weekday_of",
    "is_slot_active",
    "is_schedule_active",
]
