from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.session import get_session
from app.rbac import require_admin, require_recruiter, require_viewer
from app.request_context import get_request_context
from app.schemas.allocations import (
    AdminAllocationCreate,
    AdminBulkAssign,
    AllocationAvailability,
    AllocationOut,
    BulkAllocationOut,
    CompanyRangeClaim,
    CompanySlotClaim,
    StandUpdate,
)
from app.schemas.profile import RegisteredCompany
from app.schemas.user import UserContext
from app.services.allocations import (
    active_booking_counts,
    assign_company,
    bulk_assign_company,
    claim_range_for_company,
    claim_slot_for_company,
    delete_allocation,
    get_allocation,
    list_event_allocations,
    list_registered_companies,
    remaining_capacity,
    update_stand_number,
)
from app.services.audit_service import write_audit_log
from app.services.events import get_event
from app.services.slot_generation import get_slot, list_event_slots

router = APIRouter(tags=["allocations"])


def _bulk_out(allocations) -> BulkAllocationOut:
    return BulkAllocationOut(
        created=len(allocations),
        slot_ids=[allocation.slot_id for allocation in allocations],
        allocations=[AllocationOut.model_validate(allocation) for allocation in allocations],
    )


@router.post("/slots/{slot_id}/claim", response_model=AllocationOut)
async def claim_slot(
    slot_id: int,
    payload: CompanySlotClaim,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_recruiter()),
):
    slot = await get_slot(session, slot_id)
    allocation = await claim_slot_for_company(
        session,
        slot=slot,
        company_name=user.company_name,
        interviewer_name=payload.interviewer_name,
        sector=payload.sector,
    )
    await write_audit_log(
        session,
        actor=user,
        action="ALLOCATION_CLAIM",
        entity_type="fair_slot_allocation",
        entity_id=allocation.allocation_id,
        after={"slot_id": slot_id, "company_name": allocation.company_name},
        context=get_request_context(request),
    )
    await session.commit()
    return allocation


@router.post("/events/{event_id}/claims", response_model=BulkAllocationOut)
async def claim_range(
    event_id: int,
    payload: CompanyRangeClaim,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_recruiter()),
):
    await get_event(session, event_id)
    slots = await list_event_slots(session, event_id)
    allocations = await claim_range_for_company(
        session,
        event_slots=slots,
        event_id=event_id,
        company_name=user.company_name,
        interviewer_name=payload.interviewer_name,
        range_start=payload.range_start,
        range_end=payload.range_end,
        sector=payload.sector,
    )
    await write_audit_log(
        session,
        actor=user,
        action="ALLOCATION_CLAIM_RANGE",
        entity_type="fair_event",
        entity_id=event_id,
        after={"company_name": user.company_name, "slot_ids": [a.slot_id for a in allocations]},
        context=get_request_context(request),
    )
    await session.commit()
    return _bulk_out(allocations)


@router.post("/slots/{slot_id}/allocations", response_model=AllocationOut)
async def add_company_to_slot(
    slot_id: int,
    payload: AdminAllocationCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    actor: UserContext = Depends(require_admin()),
):
    slot = await get_slot(session, slot_id)
    allocation = await assign_company(
        session,
        slot=slot,
        company_name=payload.company_name,
        sector=payload.sector,
        interviewer_name=payload.interviewer_name,
        stand_number=payload.stand_number,
    )
    await write_audit_log(
        session,
        actor=actor,
        action="ALLOCATION_ASSIGN",
        entity_type="fair_slot_allocation",
        entity_id=allocation.allocation_id,
        after=payload.model_dump(),
        context=get_request_context(request),
    )
    await session.commit()
    return allocation


@router.post("/events/{event_id}/allocations/bulk", response_model=BulkAllocationOut)
async def bulk_assign(
    event_id: int,
    payload: AdminBulkAssign,
    request: Request,
    session: AsyncSession = Depends(get_session),
    actor: UserContext = Depends(require_admin()),
):
    await get_event(session, event_id)
    slots = await list_event_slots(session, event_id)
    allocations = await bulk_assign_company(
        session,
        event_slots=slots,
        company_name=payload.company_name,
        range_start=payload.range_start,
        range_end=payload.range_end,
        sector=payload.sector,
        interviewer_name=payload.interviewer_name,
        stand_number=payload.stand_number,
    )
    await write_audit_log(
        session,
        actor=actor,
        action="ALLOCATION_BULK_ASSIGN",
        entity_type="fair_event",
        entity_id=event_id,
        after={"company_name": payload.company_name, "slot_ids": [a.slot_id for a in allocations]},
        context=get_request_context(request),
    )
    await session.commit()
    return _bulk_out(allocations)


@router.patch("/allocations/{allocation_id}/stand", response_model=AllocationOut)
async def set_stand_number(
    allocation_id: int,
    payload: StandUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    actor: UserContext = Depends(require_admin()),
):
    allocation = await get_allocation(session, allocation_id)
    before = {"stand_number": allocation.stand_number}
    update_stand_number(allocation, payload.stand_number)
    await write_audit_log(
        session,
        actor=actor,
        action="ALLOCATION_STAND_UPDATE",
        entity_type="fair_slot_allocation",
        entity_id=allocation_id,
        before=before,
        after={"stand_number": allocation.stand_number},
        context=get_request_context(request),
    )
    await session.commit()
    return allocation


@router.delete("/allocations/{allocation_id}")
async def remove_allocation(
    allocation_id: int,
    request: Request,
    session: AsyncSession = Depends(get_session),
    actor: UserContext = Depends(require_admin()),
):
    allocation = await get_allocation(session, allocation_id)
    before = {"slot_id": allocation.slot_id, "company_name": allocation.company_name}
    bookings_deleted = await delete_allocation(session, allocation)
    await write_audit_log(
        session,
        actor=actor,
        action="ALLOCATION_DELETE",
        entity_type="fair_slot_allocation",
        entity_id=allocation_id,
        before=before,
        after={"bookings_deleted": bookings_deleted},
        context=get_request_context(request),
    )
    await session.commit()
    return {"allocation_id": allocation_id, "bookings_deleted": bookings_deleted}


@router.get("/events/{event_id}/allocations", response_model=list[AllocationAvailability])
async def list_availability(
    event_id: int,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_viewer()),
):
    await get_event(session, event_id)
    rows = await list_event_allocations(session, event_id)
    counts = await active_booking_counts(session, [allocation.allocation_id for allocation, _ in rows])
    items: list[AllocationAvailability] = []
    for allocation, slot in rows:
        active = counts.get(allocation.allocation_id, 0)
        remaining = remaining_capacity(active)
        items.append(
            AllocationAvailability(
                allocation_id=allocation.allocation_id,
                slot_id=allocation.slot_id,
                company_name=allocation.company_name,
                sector=allocation.sector,
                interviewer_name=allocation.interviewer_name,
                stand_number=allocation.stand_number,
                created_at=allocation.created_at,
                start_at=slot.start_at,
                end_at=slot.end_at,
                active_bookings=active,
                capacity=settings.booking_capacity,
                remaining=remaining,
                is_full=remaining == 0,
            )
        )
    return items


@router.get("/companies", response_model=list[RegisteredCompany])
async def registered_companies(
    q: str | None = None,
    session: AsyncSession = Depends(get_session),
    actor: UserContext = Depends(require_admin()),
):
    profiles = await list_registered_companies(session, q)
    return [
        RegisteredCompany(user_id=p.user_id, email=p.email, company_name=p.company_name, sector=p.sector)
        for p in profiles
    ]
