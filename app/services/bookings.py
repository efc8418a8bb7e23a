from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import booking_status
from app.core.config import settings
from app.core.errors import (
    AccessDenied,
    CapacityExceededError,
    DuplicateBookingError,
    InvalidStatusTransition,
    NotFoundError,
    ScheduleConflictError,
    ValidationFailed,
)
from app.core.roles import Role
from app.models.fair import FairBooking, FairEvent, FairSlot, FairSlotAllocation
from app.models.profile import UserProfile
from app.schemas.user import UserContext
from app.services.notifications import APPROVAL_TO_CANDIDATE, REQUEST_TO_COMPANY, notify

logger = logging.getLogger("feriamatch.booking")


@dataclass
class BookingTarget:
    allocation: FairSlotAllocation
    slot: FairSlot
    event: FairEvent


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open overlap: intervals that only touch at a boundary do not overlap."""
    return a_start < b_end and b_start < a_end


def find_overlapping(
    start_at: datetime,
    end_at: datetime,
    busy: list[tuple[int, datetime, datetime]],
) -> int | None:
    for booking_id, busy_start, busy_end in busy:
        if intervals_overlap(start_at, end_at, busy_start, busy_end):
            return booking_id
    return None


async def _load_target(session: AsyncSession, allocation_id: int, *, lock: bool = False) -> BookingTarget:
    stmt = (
        select(FairSlotAllocation, FairSlot, FairEvent)
        .join(FairSlot, FairSlot.slot_id == FairSlotAllocation.slot_id)
        .join(FairEvent, FairEvent.event_id == FairSlot.event_id)
        .where(FairSlotAllocation.allocation_id == allocation_id)
    )
    if lock:
        stmt = stmt.with_for_update(of=FairSlotAllocation)
    row = (await session.execute(stmt)).first()
    if not row:
        raise NotFoundError("allocation_not_found", "Allocation not found.")
    allocation, slot, event = row
    return BookingTarget(allocation=allocation, slot=slot, event=event)


async def count_active_bookings(session: AsyncSession, allocation_id: int) -> int:
    result = await session.execute(
        select(func.count(FairBooking.booking_id)).where(
            FairBooking.allocation_id == allocation_id,
            FairBooking.status.in_(booking_status.ACTIVE_STATUSES),
        )
    )
    return int(result.scalar() or 0)


async def candidate_busy_intervals(session: AsyncSession, candidate_user_id: str) -> list[tuple[int, datetime, datetime]]:
    rows = await session.execute(
        select(FairBooking.booking_id, FairSlot.start_at, FairSlot.end_at)
        .join(FairSlotAllocation, FairSlotAllocation.allocation_id == FairBooking.allocation_id)
        .join(FairSlot, FairSlot.slot_id == FairSlotAllocation.slot_id)
        .where(
            FairBooking.candidate_user_id == candidate_user_id,
            FairBooking.status.in_(booking_status.ACTIVE_STATUSES),
        )
    )
    return [(booking_id, start_at, end_at) for booking_id, start_at, end_at in rows.all()]


async def _existing_booking_id(session: AsyncSession, candidate_user_id: str, allocation_id: int) -> int | None:
    result = await session.execute(
        select(FairBooking.booking_id).where(
            FairBooking.candidate_user_id == candidate_user_id,
            FairBooking.allocation_id == allocation_id,
        )
    )
    return result.scalar()


async def _profile(session: AsyncSession, user_id: str) -> UserProfile | None:
    return (await session.execute(select(UserProfile).where(UserProfile.user_id == user_id).limit(1))).scalars().first()


async def _company_contact_email(session: AsyncSession, company_name: str) -> str | None:
    row = (
        await session.execute(
            select(UserProfile.email)
            .where(UserProfile.role == Role.RECRUITER.value, UserProfile.company_name == company_name)
            .order_by(UserProfile.profile_id.asc())
            .limit(1)
        )
    ).first()
    return row[0] if row else None


def _slot_labels(target: BookingTarget) -> tuple[str, str]:
    date_label = target.event.event_date.strftime("%d/%m/%Y")
    time_label = f"{target.slot.start_at:%H:%M} - {target.slot.end_at:%H:%M}"
    return date_label, time_label


async def _notify_company(
    session: AsyncSession, target: BookingTarget, candidate: UserContext, booking_id: int
) -> dict | None:
    company_email = await _company_contact_email(session, target.allocation.company_name)
    if not company_email:
        logger.info("booking_company_contact_missing", extra={"company_name": target.allocation.company_name})
        return None
    profile = await _profile(session, candidate.user_id)
    date_label, time_label = _slot_labels(target)
    return await notify(
        session,
        notification_type=REQUEST_TO_COMPANY,
        payload={
            "recipient_email": company_email,
            "company_name": target.allocation.company_name,
            "candidate_name": (profile.full_name if profile else None) or candidate.full_name or candidate.email,
            "candidate_email": candidate.email,
            "date": date_label,
            "time": time_label,
            "cv_url": profile.cv_url if profile else None,
        },
        actor=candidate,
        related_booking_id=booking_id,
    )


async def _notify_candidate(
    session: AsyncSession, target: BookingTarget, booking: FairBooking, actor: UserContext
) -> dict | None:
    profile = await _profile(session, booking.candidate_user_id)
    date_label, time_label = _slot_labels(target)
    return await notify(
        session,
        notification_type=APPROVAL_TO_CANDIDATE,
        payload={
            "recipient_email": profile.email if profile else booking.candidate_user_id,
            "candidate_name": (profile.full_name if profile else None) or booking.candidate_user_id,
            "company_name": target.allocation.company_name,
            "date": date_label,
            "time": time_label,
        },
        actor=actor,
        related_booking_id=booking.booking_id,
    )


async def _after_commit(session: AsyncSession, booking: FairBooking, side_effect) -> None:
    """Run a post-commit notification; a storage failure here never undoes the committed booking."""
    # Detached so a rollback below cannot expire what the caller returns.
    session.expunge(booking)
    try:
        await side_effect
    except SQLAlchemyError:
        await session.rollback()
        logger.exception("booking_notification_lookup_failed", extra={"booking_id": booking.booking_id})


async def request_booking(
    session: AsyncSession,
    *,
    candidate: UserContext,
    allocation_id: int,
) -> FairBooking:
    """Create a pending booking after re-checking duplicate, capacity and overlap inside one transaction."""
    try:
        target = await _load_target(session, allocation_id, lock=True)

        if await _existing_booking_id(session, candidate.user_id, allocation_id) is not None:
            raise DuplicateBookingError()

        active = await count_active_bookings(session, allocation_id)
        if active >= settings.booking_capacity:
            raise CapacityExceededError()

        busy = await candidate_busy_intervals(session, candidate.user_id)
        conflict_id = find_overlapping(target.slot.start_at, target.slot.end_at, busy)
        if conflict_id is not None:
            logger.info(
                "booking_schedule_conflict",
                extra={"candidate": candidate.user_id, "allocation_id": allocation_id, "conflict": conflict_id},
            )
            raise ScheduleConflictError()

        booking = FairBooking(
            candidate_user_id=candidate.user_id,
            allocation_id=allocation_id,
            status=booking_status.PENDING,
        )
        session.add(booking)
        await session.flush()
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        # The unique constraint on (candidate, allocation) closes the window between the lookup and the insert.
        raise DuplicateBookingError() from exc
    except Exception:
        await session.rollback()
        raise

    logger.info(
        "booking_requested",
        extra={"booking_id": booking.booking_id, "candidate": candidate.user_id, "allocation_id": allocation_id},
    )

    await _after_commit(session, booking, _notify_company(session, target, candidate, booking.booking_id))
    return booking


def _can_review(actor: UserContext, allocation: FairSlotAllocation) -> bool:
    if Role.ADMIN in actor.roles:
        return True
    if Role.RECRUITER not in actor.roles or not actor.company_name:
        return False
    return actor.company_name.strip() == allocation.company_name.strip()


async def review_booking(
    session: AsyncSession,
    *,
    actor: UserContext,
    booking_id: int,
    new_status: str,
) -> FairBooking:
    target_status = booking_status.normalize_status(new_status)
    if target_status not in booking_status.REVIEW_STATUSES:
        raise ValidationFailed("invalid_status", "Bookings can only be confirmed or rejected.")

    booking = await session.get(FairBooking, booking_id)
    if not booking:
        raise NotFoundError("booking_not_found", "Booking not found.")
    target = await _load_target(session, booking.allocation_id)
    if not _can_review(actor, target.allocation):
        raise AccessDenied()
    if not booking_status.can_transition(booking.status, target_status):
        raise InvalidStatusTransition(
            message=f"A {booking.status} booking cannot become {target_status}.",
        )

    from_status = booking.status
    booking.status = target_status
    await session.commit()
    logger.info(
        "booking_reviewed",
        extra={"booking_id": booking_id, "from_status": from_status, "to_status": target_status, "actor": actor.user_id},
    )

    if target_status == booking_status.CONFIRMED:
        await _after_commit(session, booking, _notify_candidate(session, target, booking, actor))
    return booking


async def cancel_booking(session: AsyncSession, *, candidate: UserContext, booking_id: int) -> None:
    booking = await session.get(FairBooking, booking_id)
    if not booking or booking.candidate_user_id != candidate.user_id:
        raise NotFoundError("booking_not_found", "Booking not found.")
    if not booking_status.is_active_status(booking.status):
        raise InvalidStatusTransition(message="Only pending or confirmed bookings can be cancelled.")
    await session.delete(booking)
    await session.commit()
    logger.info("booking_cancelled", extra={"booking_id": booking_id, "candidate": candidate.user_id})


async def list_candidate_bookings(session: AsyncSession, candidate_user_id: str):
    rows = await session.execute(
        select(FairBooking, FairSlotAllocation, FairSlot, FairEvent)
        .join(FairSlotAllocation, FairSlotAllocation.allocation_id == FairBooking.allocation_id)
        .join(FairSlot, FairSlot.slot_id == FairSlotAllocation.slot_id)
        .join(FairEvent, FairEvent.event_id == FairSlot.event_id)
        .where(FairBooking.candidate_user_id == candidate_user_id)
        .order_by(FairSlot.start_at.asc())
    )
    return rows.all()


async def list_company_bookings(
    session: AsyncSession,
    company_name: str | None,
    *,
    event_id: int | None = None,
    status_filter: str | None = None,
):
    stmt = (
        select(FairBooking, FairSlotAllocation, FairSlot, FairEvent, UserProfile)
        .join(FairSlotAllocation, FairSlotAllocation.allocation_id == FairBooking.allocation_id)
        .join(FairSlot, FairSlot.slot_id == FairSlotAllocation.slot_id)
        .join(FairEvent, FairEvent.event_id == FairSlot.event_id)
        .outerjoin(UserProfile, UserProfile.user_id == FairBooking.candidate_user_id)
        .order_by(FairSlot.start_at.asc(), FairBooking.booking_id.asc())
    )
    if company_name is not None:
        stmt = stmt.where(FairSlotAllocation.company_name == company_name)
    if event_id is not None:
        stmt = stmt.where(FairEvent.event_id == event_id)
    normalized = booking_status.normalize_status(status_filter)
    if normalized and not booking_status.is_known_status(normalized):
        raise ValidationFailed("invalid_status", "Unknown booking status.")
    if normalized:
        stmt = stmt.where(FairBooking.status == normalized)
    return (await session.execute(stmt)).all()


def candidate_booking_item(row) -> dict:
    booking, allocation, slot, event = row
    return {
        "booking_id": booking.booking_id,
        "status": booking.status,
        "created_at": booking.created_at,
        "allocation_id": allocation.allocation_id,
        "company_name": allocation.company_name,
        "sector": allocation.sector,
        "interviewer_name": allocation.interviewer_name,
        "stand_number": allocation.stand_number,
        "slot_id": slot.slot_id,
        "start_at": slot.start_at,
        "end_at": slot.end_at,
        "event_id": event.event_id,
        "event_title": event.title,
        "event_date": event.event_date,
    }


def company_booking_item(row) -> dict:
    booking, allocation, slot, event, profile = row
    return {
        "booking_id": booking.booking_id,
        "status": booking.status,
        "created_at": booking.created_at,
        "allocation_id": allocation.allocation_id,
        "company_name": allocation.company_name,
        "slot_id": slot.slot_id,
        "start_at": slot.start_at,
        "end_at": slot.end_at,
        "event_id": event.event_id,
        "event_title": event.title,
        "candidate_user_id": booking.candidate_user_id,
        "candidate_name": profile.full_name if profile else None,
        "candidate_email": profile.email if profile else None,
        "candidate_phone": profile.phone if profile else None,
        "candidate_linkedin_url": profile.linkedin_url if profile else None,
        "candidate_cv_url": profile.cv_url if profile else None,
    }
