from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.roles import Role
from app.db.session import get_session
from app.rbac import require_candidate, require_company_or_admin
from app.request_context import get_request_context
from app.schemas.bookings import BookingCreate, BookingOut, BookingReview, CandidateBookingItem, CompanyBookingItem
from app.schemas.user import UserContext
from app.services.audit_service import write_audit_log
from app.services.bookings import (
    cancel_booking,
    candidate_booking_item,
    company_booking_item,
    list_candidate_bookings,
    list_company_bookings,
    request_booking,
    review_booking,
)

router = APIRouter(prefix="/bookings", tags=["bookings"])


def company_scope(user: UserContext) -> str | None:
    """Admins see every company; recruiters only their own."""
    if Role.ADMIN in user.roles:
        return None
    return (user.company_name or "").strip()


@router.post("", response_model=BookingOut)
async def create_booking(
    payload: BookingCreate,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_candidate()),
):
    return await request_booking(session, candidate=user, allocation_id=payload.allocation_id)


@router.get("/mine", response_model=list[CandidateBookingItem])
async def my_bookings(
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_candidate()),
):
    rows = await list_candidate_bookings(session, user.user_id)
    return [candidate_booking_item(row) for row in rows]


@router.get("/company", response_model=list[CompanyBookingItem])
async def company_bookings(
    event_id: int | None = None,
    status: str | None = None,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_company_or_admin()),
):
    scope = company_scope(user)
    if scope == "":
        return []
    rows = await list_company_bookings(session, scope, event_id=event_id, status_filter=status)
    return [company_booking_item(row) for row in rows]


@router.patch("/{booking_id}/review", response_model=BookingOut)
async def review(
    booking_id: int,
    payload: BookingReview,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_company_or_admin()),
):
    booking = await review_booking(session, actor=user, booking_id=booking_id, new_status=payload.status)
    await write_audit_log(
        session,
        actor=user,
        action="BOOKING_REVIEW",
        entity_type="fair_booking",
        entity_id=booking_id,
        after={"status": booking.status},
        context=get_request_context(request),
    )
    await session.commit()
    return booking


@router.delete("/{booking_id}")
async def cancel(
    booking_id: int,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_candidate()),
):
    await cancel_booking(session, candidate=user, booking_id=booking_id)
    return {"booking_id": booking_id, "cancelled": True}
