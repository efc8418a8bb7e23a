from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_session
from app.models.fair import FairBooking, FairEvent, FairSlot
from app.models.profile import UserProfile
from app.rbac import require_admin, require_company_or_admin
from app.routers.bookings import company_scope
from app.schemas.reports import DashboardCounts
from app.schemas.user import UserContext
from app.services.allocations import active_booking_counts, list_event_allocations
from app.services.bookings import company_booking_item, list_company_bookings
from app.services.csv_export import CsvColumn, csv_bytes_with_bom, filename_date, generate_csv
from app.services.events import get_event

router = APIRouter(prefix="/reports", tags=["reports"])

ALLOCATION_COLUMNS = [
    CsvColumn("Event", lambda r: r["event"]),
    CsvColumn("Date", lambda r: r["date"]),
    CsvColumn("Start", lambda r: r["start"]),
    CsvColumn("End", lambda r: r["end"]),
    CsvColumn("Company", lambda r: r["company_name"]),
    CsvColumn("Sector", lambda r: r["sector"]),
    CsvColumn("Interviewer", lambda r: r["interviewer_name"]),
    CsvColumn("Stand", lambda r: r["stand_number"]),
    CsvColumn("Active bookings", lambda r: r["active_bookings"]),
]

BOOKING_COLUMNS = [
    CsvColumn("Candidate", lambda r: r["candidate_name"] or r["candidate_user_id"]),
    CsvColumn("Email", lambda r: r["candidate_email"]),
    CsvColumn("Phone", lambda r: r["candidate_phone"]),
    CsvColumn("Company", lambda r: r["company_name"]),
    CsvColumn("Date", lambda r: r["start_at"].date()),
    CsvColumn("Start", lambda r: r["start_at"].strftime("%H:%M")),
    CsvColumn("End", lambda r: r["end_at"].strftime("%H:%M")),
    CsvColumn("Status", lambda r: r["status"]),
    CsvColumn("Requested at", lambda r: r["created_at"]),
]


def _csv_response(text: str, filename: str) -> StreamingResponse:
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return StreamingResponse(iter([csv_bytes_with_bom(text)]), media_type="text/csv; charset=utf-8", headers=headers)


@router.get("/events/{event_id}/allocations.csv")
async def export_event_allocations(
    event_id: int,
    session: AsyncSession = Depends(get_session),
    actor: UserContext = Depends(require_admin()),
):
    event = await get_event(session, event_id)
    rows = await list_event_allocations(session, event_id)
    counts = await active_booking_counts(session, [allocation.allocation_id for allocation, _ in rows])
    records = [
        {
            "event": event.title,
            "date": event.event_date,
            "start": slot.start_at.strftime("%H:%M"),
            "end": slot.end_at.strftime("%H:%M"),
            "company_name": allocation.company_name,
            "sector": allocation.sector,
            "interviewer_name": allocation.interviewer_name,
            "stand_number": allocation.stand_number,
            "active_bookings": counts.get(allocation.allocation_id, 0),
        }
        for allocation, slot in rows
    ]
    text = generate_csv(records, ALLOCATION_COLUMNS)
    return _csv_response(text, f"allocations_event_{event_id}_{filename_date()}.csv")


@router.get("/bookings.csv")
async def export_bookings(
    event_id: int | None = None,
    status: str | None = None,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_company_or_admin()),
):
    scope = company_scope(user)
    rows = [] if scope == "" else await list_company_bookings(session, scope, event_id=event_id, status_filter=status)
    text = generate_csv([company_booking_item(row) for row in rows], BOOKING_COLUMNS)
    return _csv_response(text, f"bookings_{filename_date()}.csv")


@router.get("/dashboard", response_model=DashboardCounts)
async def dashboard(
    session: AsyncSession = Depends(get_session),
    actor: UserContext = Depends(require_admin()),
):
    async def count(column) -> int:
        return int((await session.execute(select(func.count(column)))).scalar() or 0)

    return DashboardCounts(
        events=await count(FairEvent.event_id),
        slots=await count(FairSlot.slot_id),
        bookings=await count(FairBooking.booking_id),
        users=await count(UserProfile.profile_id),
    )
