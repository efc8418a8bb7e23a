from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.models.fair import FairEvent, FairSlot, FairSlotAllocation
from app.schemas.events import EventCreate, EventUpdate
from app.services.allocations import active_booking_counts, list_event_allocations, remaining_capacity
from app.services.slot_generation import validate_duration, validate_window

logger = logging.getLogger("feriamatch.events")

STATUS_OPEN = "open"
STATUS_FULL = "full"
STATUS_PAST = "past"


def event_status(event_date: date, allocation_count: int, remaining_places: int, *, today: date | None = None) -> str:
    if event_date < (today or date.today()):
        return STATUS_PAST
    if allocation_count and remaining_places <= 0:
        return STATUS_FULL
    return STATUS_OPEN


async def get_event(session: AsyncSession, event_id: int) -> FairEvent:
    event = await session.get(FairEvent, event_id)
    if not event:
        raise NotFoundError("event_not_found", "Event not found.")
    return event


async def create_event(session: AsyncSession, payload: EventCreate) -> FairEvent:
    validate_duration(payload.slot_duration_minutes)
    validate_window(payload.start_time, payload.end_time)
    event = FairEvent(
        title=payload.title.strip(),
        description=payload.description,
        image_url=payload.image_url,
        event_date=payload.event_date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        slot_duration_minutes=payload.slot_duration_minutes,
    )
    session.add(event)
    await session.flush()
    logger.info("event_created", extra={"event_id": event.event_id, "event_date": str(event.event_date)})
    return event


def apply_event_update(event: FairEvent, payload: EventUpdate) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("title") is not None:
        changes["title"] = changes["title"].strip()
    for field, value in changes.items():
        setattr(event, field, value)
    return changes


async def _allocation_stats(session: AsyncSession, event_ids: list[int]) -> dict[int, tuple[int, int]]:
    """Per event: (allocation count, remaining booking places)."""
    if not event_ids:
        return {}
    rows = (
        await session.execute(
            select(FairSlot.event_id, FairSlotAllocation.allocation_id)
            .join(FairSlotAllocation, FairSlotAllocation.slot_id == FairSlot.slot_id)
            .where(FairSlot.event_id.in_(event_ids))
        )
    ).all()
    counts = await active_booking_counts(session, [allocation_id for _, allocation_id in rows])
    stats: dict[int, tuple[int, int]] = {}
    for event_id, allocation_id in rows:
        allocations, remaining = stats.get(event_id, (0, 0))
        stats[event_id] = (allocations + 1, remaining + remaining_capacity(counts.get(allocation_id, 0)))
    return stats


async def list_events(session: AsyncSession, *, on_date: date | None = None, today: date | None = None) -> list[dict]:
    stmt = select(FairEvent).order_by(FairEvent.event_date.asc(), FairEvent.start_time.asc())
    if on_date is not None:
        stmt = stmt.where(FairEvent.event_date == on_date)
    events = list((await session.execute(stmt)).scalars().all())
    ids = [event.event_id for event in events]

    slot_counts: dict[int, int] = {}
    if ids:
        rows = await session.execute(
            select(FairSlot.event_id, func.count(FairSlot.slot_id)).where(FairSlot.event_id.in_(ids)).group_by(FairSlot.event_id)
        )
        slot_counts = {event_id: int(count) for event_id, count in rows.all()}
    stats = await _allocation_stats(session, ids)

    items = []
    for event in events:
        allocations, remaining = stats.get(event.event_id, (0, 0))
        items.append(
            {
                "event_id": event.event_id,
                "title": event.title,
                "description": event.description,
                "image_url": event.image_url,
                "event_date": event.event_date,
                "start_time": event.start_time,
                "end_time": event.end_time,
                "slot_duration_minutes": event.slot_duration_minutes,
                "created_at": event.created_at,
                "status": event_status(event.event_date, allocations, remaining, today=today),
                "slot_count": slot_counts.get(event.event_id, 0),
                "remaining_places": remaining,
            }
        )
    return items


async def event_agenda(session: AsyncSession, event: FairEvent, slots: list[FairSlot]) -> dict:
    by_slot: dict[int, list[FairSlotAllocation]] = {slot.slot_id: [] for slot in slots}
    for allocation, slot in await list_event_allocations(session, event.event_id):
        by_slot.setdefault(slot.slot_id, []).append(allocation)

    return {
        "event_id": event.event_id,
        "title": event.title,
        "slots": [
            {
                "slot_id": slot.slot_id,
                "event_id": slot.event_id,
                "start_at": slot.start_at,
                "end_at": slot.end_at,
                "allocations": by_slot.get(slot.slot_id, []),
            }
            for slot in slots
        ],
        "slots_with_companies": sum(1 for allocations in by_slot.values() if allocations),
        "total_allocations": sum(len(allocations) for allocations in by_slot.values()),
    }
