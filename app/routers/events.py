from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ValidationFailed
from app.db.session import get_session
from app.rbac import require_admin, require_recruiter, require_viewer
from app.request_context import get_request_context
from app.schemas.events import CascadeDeleteOut, EventCreate, EventListItem, EventOut, EventUpdate
from app.schemas.slots import CompanyEventSlotsOut, EventAgendaOut, SlotOut
from app.schemas.user import UserContext
from app.services.allocations import company_slot_ids, time_options
from app.services.audit_service import write_audit_log
from app.services.cascade import delete_event_cascade
from app.services.events import apply_event_update, create_event, event_agenda, get_event, list_events
from app.services.slot_generation import list_event_slots

router = APIRouter(prefix="/events", tags=["events"])


@router.get("", response_model=list[EventListItem])
async def list_fair_events(
    event_date: date | None = None,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_viewer()),
):
    return await list_events(session, on_date=event_date)


@router.post("", response_model=EventOut)
async def create_fair_event(
    payload: EventCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    actor: UserContext = Depends(require_admin()),
):
    event = await create_event(session, payload)
    await write_audit_log(
        session,
        actor=actor,
        action="EVENT_CREATE",
        entity_type="fair_event",
        entity_id=event.event_id,
        after=payload.model_dump(mode="json"),
        context=get_request_context(request),
    )
    await session.commit()
    return event


@router.get("/{event_id}", response_model=EventOut)
async def get_fair_event(
    event_id: int,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_viewer()),
):
    return await get_event(session, event_id)


@router.patch("/{event_id}", response_model=EventOut)
async def update_fair_event(
    event_id: int,
    payload: EventUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    actor: UserContext = Depends(require_admin()),
):
    event = await get_event(session, event_id)
    if "title" in payload.model_fields_set and payload.title is None:
        raise ValidationFailed("title_required", "The title is required.")
    before = {"title": event.title, "description": event.description, "image_url": event.image_url}
    changes = apply_event_update(event, payload)
    await write_audit_log(
        session,
        actor=actor,
        action="EVENT_UPDATE",
        entity_type="fair_event",
        entity_id=event.event_id,
        before=before,
        after=changes,
        context=get_request_context(request),
    )
    await session.commit()
    return event


@router.delete("/{event_id}", response_model=CascadeDeleteOut)
async def delete_fair_event(
    event_id: int,
    request: Request,
    session: AsyncSession = Depends(get_session),
    actor: UserContext = Depends(require_admin()),
):
    result = await delete_event_cascade(session, event_id)
    await write_audit_log(
        session,
        actor=actor,
        action="EVENT_DELETE",
        entity_type="fair_event",
        entity_id=event_id,
        after=result.as_dict(),
        context=get_request_context(request),
    )
    await session.commit()
    return result.as_dict()


@router.get("/{event_id}/agenda", response_model=EventAgendaOut)
async def get_event_agenda(
    event_id: int,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_viewer()),
):
    event = await get_event(session, event_id)
    slots = await list_event_slots(session, event_id)
    return await event_agenda(session, event, slots)


@router.get("/{event_id}/company-view", response_model=CompanyEventSlotsOut)
async def get_company_view(
    event_id: int,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_recruiter()),
):
    await get_event(session, event_id)
    slots = await list_event_slots(session, event_id)
    claimed = await company_slot_ids(session, user.company_name, event_id=event_id) if user.company_name else set()
    return CompanyEventSlotsOut(
        event_id=event_id,
        slots=[SlotOut.model_validate(slot) for slot in slots],
        claimed_slot_ids=sorted(claimed),
        time_options=time_options(slots),
    )
