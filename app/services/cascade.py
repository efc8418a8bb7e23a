from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.models.fair import FairBooking, FairEvent, FairSlot, FairSlotAllocation

logger = logging.getLogger("feriamatch.cascade")


@dataclass
class CascadeResult:
    event_id: int
    bookings_deleted: int = 0
    allocations_deleted: int = 0
    slots_deleted: int = 0
    event_deleted: bool = False

    def as_dict(self) -> dict:
        return asdict(self)


async def _delete_under_slots(session: AsyncSession, slot_ids: list[int], result: CascadeResult) -> None:
    if not slot_ids:
        return
    allocation_ids = list(
        (
            await session.execute(
                select(FairSlotAllocation.allocation_id).where(FairSlotAllocation.slot_id.in_(slot_ids))
            )
        ).scalars()
    )
    if allocation_ids:
        deleted = await session.execute(delete(FairBooking).where(FairBooking.allocation_id.in_(allocation_ids)))
        result.bookings_deleted += int(deleted.rowcount or 0)
        deleted = await session.execute(
            delete(FairSlotAllocation).where(FairSlotAllocation.allocation_id.in_(allocation_ids))
        )
        result.allocations_deleted += int(deleted.rowcount or 0)
    deleted = await session.execute(delete(FairSlot).where(FairSlot.slot_id.in_(slot_ids)))
    result.slots_deleted += int(deleted.rowcount or 0)


async def _run(session: AsyncSession, result: CascadeResult, slot_ids: list[int], *, drop_event: bool) -> CascadeResult:
    try:
        await _delete_under_slots(session, slot_ids, result)
        if drop_event:
            deleted = await session.execute(delete(FairEvent).where(FairEvent.event_id == result.event_id))
            result.event_deleted = bool(deleted.rowcount)
        await session.commit()
    except Exception:
        await session.rollback()
        logger.exception("cascade_delete_failed", extra={"event_id": result.event_id})
        raise
    # Bulk deletes bypass the identity map.
    session.expunge_all()
    logger.info("cascade_delete_completed", extra=result.as_dict())
    return result


async def _event_slot_ids(session: AsyncSession, event_id: int) -> list[int]:
    return list((await session.execute(select(FairSlot.slot_id).where(FairSlot.event_id == event_id))).scalars())


async def delete_event_cascade(session: AsyncSession, event_id: int) -> CascadeResult:
    """Delete bookings, allocations, slots and the event itself in one transaction."""
    if not await session.get(FairEvent, event_id):
        raise NotFoundError("event_not_found", "Event not found.")
    slot_ids = await _event_slot_ids(session, event_id)
    return await _run(session, CascadeResult(event_id=event_id), slot_ids, drop_event=True)


async def delete_event_slots(session: AsyncSession, event_id: int) -> CascadeResult:
    """Delete every slot of the event with its allocations and bookings; the event row stays."""
    if not await session.get(FairEvent, event_id):
        raise NotFoundError("event_not_found", "Event not found.")
    slot_ids = await _event_slot_ids(session, event_id)
    return await _run(session, CascadeResult(event_id=event_id), slot_ids, drop_event=False)


async def delete_slot_cascade(session: AsyncSession, slot_id: int) -> CascadeResult:
    slot = await session.get(FairSlot, slot_id)
    if not slot:
        raise NotFoundError("slot_not_found", "Slot not found.")
    return await _run(session, CascadeResult(event_id=slot.event_id), [slot_id], drop_event=False)
