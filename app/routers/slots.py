from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_session
from app.rbac import require_admin, require_viewer
from app.request_context import get_request_context
from app.schemas.events import CascadeDeleteOut
from app.schemas.slots import SlotGenerateOut, SlotGenerateRequest, SlotOut, SlotUpdate
from app.schemas.user import UserContext
from app.services.audit_service import write_audit_log
from app.services.cascade import delete_event_slots, delete_slot_cascade
from app.services.events import get_event
from app.services.slot_generation import (
    count_event_slots,
    create_slots_for_event,
    get_slot,
    list_event_slots,
    update_slot_times,
)

router = APIRouter(tags=["slots"])


@router.get("/events/{event_id}/slots", response_model=list[SlotOut])
async def list_slots(
    event_id: int,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(require_viewer()),
):
    await get_event(session, event_id)
    return await list_event_slots(session, event_id)


@router.post("/events/{event_id}/slots/generate", response_model=SlotGenerateOut)
async def generate_slots(
    event_id: int,
    request: Request,
    payload: SlotGenerateRequest | None = None,
    session: AsyncSession = Depends(get_session),
    actor: UserContext = Depends(require_admin()),
):
    confirm = bool(payload and payload.confirm_duplicates)
    event = await get_event(session, event_id)
    appended = await count_event_slots(session, event_id) > 0
    slots = await create_slots_for_event(session, event, confirm_duplicates=confirm)
    await write_audit_log(
        session,
        actor=actor,
        action="SLOTS_GENERATE",
        entity_type="fair_event",
        entity_id=event_id,
        after={"created": len(slots), "appended": appended},
        context=get_request_context(request),
    )
    await session.commit()
    return SlotGenerateOut(
        event_id=event_id,
        created=len(slots),
        appended=appended,
        slots=[SlotOut.model_validate(slot) for slot in slots],
    )


@router.delete("/events/{event_id}/slots", response_model=CascadeDeleteOut)
async def delete_all_slots(
    event_id: int,
    request: Request,
    session: AsyncSession = Depends(get_session),
    actor: UserContext = Depends(require_admin()),
):
    result = await delete_event_slots(session, event_id)
    await write_audit_log(
        session,
        actor=actor,
        action="SLOTS_DELETE_ALL",
        entity_type="fair_event",
        entity_id=event_id,
        after=result.as_dict(),
        context=get_request_context(request),
    )
    await session.commit()
    return result.as_dict()


@router.patch("/slots/{slot_id}", response_model=SlotOut)
async def update_slot(
    slot_id: int,
    payload: SlotUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    actor: UserContext = Depends(require_admin()),
):
    slot = await get_slot(session, slot_id)
    before = {"start_at": slot.start_at.isoformat(), "end_at": slot.end_at.isoformat()}
    update_slot_times(slot, payload.start_at, payload.end_at)
    await write_audit_log(
        session,
        actor=actor,
        action="SLOT_UPDATE",
        entity_type="fair_slot",
        entity_id=slot_id,
        before=before,
        after={"start_at": slot.start_at.isoformat(), "end_at": slot.end_at.isoformat()},
        context=get_request_context(request),
    )
    await session.commit()
    return slot


@router.delete("/slots/{slot_id}", response_model=CascadeDeleteOut)
async def delete_slot(
    slot_id: int,
    request: Request,
    session: AsyncSession = Depends(get_session),
    actor: UserContext = Depends(require_admin()),
):
    result = await delete_slot_cascade(session, slot_id)
    await write_audit_log(
        session,
        actor=actor,
        action="SLOT_DELETE",
        entity_type="fair_slot",
        entity_id=slot_id,
        after=result.as_dict(),
        context=get_request_context(request),
    )
    await session.commit()
    return result.as_dict()
