from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.datetime_utils import combine, minutes_between
from app.core.errors import NotFoundError, SlotsAlreadyExistError, ValidationFailed
from app.models.fair import FairEvent, FairSlot


@dataclass(frozen=True)
class SlotWindow:
    start_at: datetime
    end_at: datetime


def validate_duration(duration_minutes: int) -> None:
    if duration_minutes not in settings.allowed_slot_durations:
        allowed = ", ".join(str(d) for d in settings.allowed_slot_durations)
        raise ValidationFailed("invalid_duration", f"Slot duration must be one of: {allowed} minutes.")


def validate_window(start_time: time, end_time: time) -> None:
    if end_time <= start_time:
        raise ValidationFailed("invalid_time_range", "The end time must be after the start time.")


def expected_slot_count(start_time: time, end_time: time, duration_minutes: int) -> int:
    if duration_minutes <= 0:
        return 0
    return max(minutes_between(start_time, end_time), 0) // duration_minutes


def generate_slot_windows(
    event_date: date,
    start_time: time,
    end_time: time,
    duration_minutes: int,
) -> list[SlotWindow]:
    """Tile [start, end) into back-to-back slots of ``duration_minutes``; a trailing partial slot is dropped."""
    validate_duration(duration_minutes)
    validate_window(start_time, end_time)

    step = timedelta(minutes=duration_minutes)
    window_end = combine(event_date, end_time)
    current = combine(event_date, start_time)
    windows: list[SlotWindow] = []
    while current + step <= window_end:
        windows.append(SlotWindow(start_at=current, end_at=current + step))
        current += step

    if not windows:
        raise ValidationFailed("no_slots_fit", "The slot duration is longer than the event window.")
    return windows


async def count_event_slots(session: AsyncSession, event_id: int) -> int:
    result = await session.execute(select(func.count(FairSlot.slot_id)).where(FairSlot.event_id == event_id))
    return int(result.scalar() or 0)


async def create_slots_for_event(
    session: AsyncSession,
    event: FairEvent,
    *,
    confirm_duplicates: bool = False,
) -> list[FairSlot]:
    """Insert the event's tiling. Existing slots are never replaced; a second run appends only when confirmed."""
    windows = generate_slot_windows(
        event.event_date,
        event.start_time,
        event.end_time,
        event.slot_duration_minutes,
    )
    existing = await count_event_slots(session, event.event_id)
    if existing and not confirm_duplicates:
        raise SlotsAlreadyExistError(
            message=f"The event already has {existing} slots. Confirm to append {len(windows)} more."
        )

    slots = [FairSlot(event_id=event.event_id, start_at=w.start_at, end_at=w.end_at) for w in windows]
    session.add_all(slots)
    await session.flush()
    return slots


async def get_slot(session: AsyncSession, slot_id: int) -> FairSlot:
    slot = await session.get(FairSlot, slot_id)
    if not slot:
        raise NotFoundError("slot_not_found", "Slot not found.")
    return slot


async def list_event_slots(session: AsyncSession, event_id: int) -> list[FairSlot]:
    rows = await session.execute(
        select(FairSlot).where(FairSlot.event_id == event_id).order_by(FairSlot.start_at.asc(), FairSlot.slot_id.asc())
    )
    return list(rows.scalars().all())


def update_slot_times(slot: FairSlot, start_at: datetime, end_at: datetime) -> FairSlot:
    if end_at <= start_at:
        raise ValidationFailed("invalid_time_range", "The end time must be after the start time.")
    slot.start_at = start_at.replace(tzinfo=None)
    slot.end_at = end_at.replace(tzinfo=None)
    return slot
