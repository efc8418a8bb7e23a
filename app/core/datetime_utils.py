from __future__ import annotations

from datetime import date, datetime, time


def combine(day: date, at: time) -> datetime:
    return datetime.combine(day, at.replace(tzinfo=None))


def hhmm(value: datetime | time) -> str:
    return value.strftime("%H:%M")


def parse_hhmm(raw: str) -> str:
    """Normalize "9:00", "09:00" or "09:00:00" to "HH:MM"; raises ValueError otherwise."""
    text = (raw or "").strip()
    parts = text.split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"invalid time: {raw!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"invalid time: {raw!r}")
    return f"{hours:02d}:{minutes:02d}"


def minutes_between(start: time, end: time) -> int:
    return (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)
