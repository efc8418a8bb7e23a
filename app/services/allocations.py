from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.booking_status import ACTIVE_STATUSES
from app.core.config import settings
from app.core.datetime_utils import hhmm, parse_hhmm
from app.core.errors import ConflictError, NotFoundError, ValidationFailed
from app.core.roles import Role
from app.models.fair import FairBooking, FairSlot, FairSlotAllocation
from app.models.profile import UserProfile

logger = logging.getLogger("feriamatch.allocations")


@dataclass(frozen=True)
class AllocationFields:
    company_name: str
    interviewer_name: str | None = None
    sector: str | None = None
    stand_number: str | None = None


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def time_options(slots: Iterable[FairSlot]) -> list[str]:
    """Distinct HH:MM boundaries offered as range start/end choices."""
    times: set[str] = set()
    for slot in slots:
        times.add(hhmm(slot.start_at))
        times.add(hhmm(slot.end_at))
    return sorted(times)


def select_slots_in_range(
    slots: Sequence[FairSlot],
    range_start: str,
    range_end: str,
    *,
    exclude_slot_ids: Iterable[int] = (),
) -> list[FairSlot]:
    """Slots starting at or after ``range_start`` and ending at or before ``range_end`` (HH:MM wall clock)."""
    try:
        start = parse_hhmm(range_start)
        end = parse_hhmm(range_end)
    except ValueError as exc:
        raise ValidationFailed("invalid_time_range", "Times must use the HH:MM format.") from exc
    if end <= start:
        raise ValidationFailed("invalid_time_range", "The end time must be after the start time.")

    excluded = set(exclude_slot_ids)
    return [
        slot
        for slot in slots
        if slot.slot_id not in excluded and hhmm(slot.start_at) >= start and hhmm(slot.end_at) <= end
    ]


def _require_company(company_name: str | None) -> str:
    cleaned = _clean(company_name)
    if not cleaned:
        raise ValidationFailed("company_name_required", "The company name is required.")
    return cleaned


def _require_interviewer(interviewer_name: str | None) -> str:
    cleaned = _clean(interviewer_name)
    if not cleaned:
        raise ValidationFailed("interviewer_name_required", "The interviewer name is required.")
    return cleaned


async def get_allocation(session: AsyncSession, allocation_id: int) -> FairSlotAllocation:
    allocation = await session.get(FairSlotAllocation, allocation_id)
    if not allocation:
        raise NotFoundError("allocation_not_found", "Allocation not found.")
    return allocation


async def company_slot_ids(session: AsyncSession, company_name: str, *, event_id: int | None = None) -> set[int]:
    stmt = select(FairSlotAllocation.slot_id).where(FairSlotAllocation.company_name == company_name)
    if event_id is not None:
        stmt = stmt.join(FairSlot, FairSlot.slot_id == FairSlotAllocation.slot_id).where(FairSlot.event_id == event_id)
    rows = await session.execute(stmt)
    return {row[0] for row in rows.all()}


def _build_allocations(slots: Sequence[FairSlot], fields: AllocationFields) -> list[FairSlotAllocation]:
    return [
        FairSlotAllocation(
            slot_id=slot.slot_id,
            company_name=fields.company_name,
            interviewer_name=fields.interviewer_name,
            sector=fields.sector,
            stand_number=fields.stand_number,
        )
        for slot in slots
    ]


async def claim_slot_for_company(
    session: AsyncSession,
    *,
    slot: FairSlot,
    company_name: str | None,
    interviewer_name: str | None,
    sector: str | None = None,
) -> FairSlotAllocation:
    fields = AllocationFields(
        company_name=_require_company(company_name),
        interviewer_name=_require_interviewer(interviewer_name),
        sector=_clean(sector),
    )
    claimed = await company_slot_ids(session, fields.company_name, event_id=slot.event_id)
    if slot.slot_id in claimed:
        raise ConflictError("already_claimed", "Your company already has this slot.")

    [allocation] = _build_allocations([slot], fields)
    session.add(allocation)
    await session.flush()
    logger.info(
        "allocation_claimed",
        extra={"company_name": fields.company_name, "slot_id": slot.slot_id, "allocation_id": allocation.allocation_id},
    )
    return allocation


async def claim_range_for_company(
    session: AsyncSession,
    *,
    event_slots: Sequence[FairSlot],
    event_id: int,
    company_name: str | None,
    interviewer_name: str | None,
    range_start: str,
    range_end: str,
    sector: str | None = None,
) -> list[FairSlotAllocation]:
    company = _require_company(company_name)
    already = await company_slot_ids(session, company, event_id=event_id)
    matching = select_slots_in_range(event_slots, range_start, range_end, exclude_slot_ids=already)
    if not matching:
        raise ValidationFailed("no_matching_slots", "There are no available slots in the selected range.")
    fields = AllocationFields(
        company_name=company,
        interviewer_name=_require_interviewer(interviewer_name),
        sector=_clean(sector),
    )

    allocations = _build_allocations(matching, fields)
    session.add_all(allocations)
    await session.flush()
    logger.info(
        "allocation_range_claimed",
        extra={"company_name": company, "event_id": event_id, "count": len(allocations)},
    )
    return allocations


async def assign_company(
    session: AsyncSession,
    *,
    slot: FairSlot,
    company_name: str | None,
    sector: str | None = None,
    interviewer_name: str | None = None,
    stand_number: str | None = None,
) -> FairSlotAllocation:
    fields = AllocationFields(
        company_name=_require_company(company_name),
        interviewer_name=_clean(interviewer_name),
        sector=_clean(sector),
        stand_number=_clean(stand_number),
    )
    [allocation] = _build_allocations([slot], fields)
    session.add(allocation)
    await session.flush()
    return allocation


async def bulk_assign_company(
    session: AsyncSession,
    *,
    event_slots: Sequence[FairSlot],
    company_name: str | None,
    range_start: str,
    range_end: str,
    sector: str | None = None,
    interviewer_name: str | None = None,
    stand_number: str | None = None,
) -> list[FairSlotAllocation]:
    # Admin authority: slots held by any company, this one included, stay eligible.
    matching = select_slots_in_range(event_slots, range_start, range_end)
    if not matching:
        raise ValidationFailed("no_matching_slots", "No slots match the selected range.")
    fields = AllocationFields(
        company_name=_require_company(company_name),
        interviewer_name=_clean(interviewer_name),
        sector=_clean(sector),
        stand_number=_clean(stand_number),
    )

    allocations = _build_allocations(matching, fields)
    session.add_all(allocations)
    await session.flush()
    return allocations


def update_stand_number(allocation: FairSlotAllocation, stand_number: str | None) -> FairSlotAllocation:
    allocation.stand_number = _clean(stand_number)
    return allocation


async def delete_allocation(session: AsyncSession, allocation: FairSlotAllocation) -> int:
    """Remove an allocation and the bookings made against it; returns the number of bookings removed."""
    result = await session.execute(delete(FairBooking).where(FairBooking.allocation_id == allocation.allocation_id))
    await session.delete(allocation)
    await session.flush()
    return int(result.rowcount or 0)


async def active_booking_counts(session: AsyncSession, allocation_ids: Iterable[int]) -> dict[int, int]:
    ids = list(allocation_ids)
    if not ids:
        return {}
    rows = await session.execute(
        select(FairBooking.allocation_id, func.count(FairBooking.booking_id))
        .where(FairBooking.allocation_id.in_(ids), FairBooking.status.in_(ACTIVE_STATUSES))
        .group_by(FairBooking.allocation_id)
    )
    counts = {allocation_id: int(count) for allocation_id, count in rows.all()}
    return {allocation_id: counts.get(allocation_id, 0) for allocation_id in ids}


def remaining_capacity(active_bookings: int, capacity: int | None = None) -> int:
    limit = settings.booking_capacity if capacity is None else capacity
    return max(limit - active_bookings, 0)


async def list_event_allocations(session: AsyncSession, event_id: int) -> list[tuple[FairSlotAllocation, FairSlot]]:
    rows = await session.execute(
        select(FairSlotAllocation, FairSlot)
        .join(FairSlot, FairSlot.slot_id == FairSlotAllocation.slot_id)
        .where(FairSlot.event_id == event_id)
        .order_by(FairSlot.start_at.asc(), FairSlotAllocation.allocation_id.asc())
    )
    return [(allocation, slot) for allocation, slot in rows.all()]


async def list_registered_companies(session: AsyncSession, search: str | None = None) -> list[UserProfile]:
    stmt = (
        select(UserProfile)
        .where(UserProfile.role == Role.RECRUITER.value, UserProfile.company_name.is_not(None))
        .order_by(UserProfile.company_name.asc())
    )
    profiles = (await session.execute(stmt)).scalars().all()
    term = (search or "").strip().lower()
    if not term:
        return list(profiles)
    return [
        p for p in profiles if term in (p.company_name or "").lower() or term in (p.email or "").lower()
    ]
