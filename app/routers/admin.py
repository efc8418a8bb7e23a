from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ValidationFailed
from app.db.session import get_session
from app.models.profile import UserProfile
from app.rbac import require_admin
from app.request_context import get_request_context
from app.schemas.profile import ProfileOut, ProfileRoleUpdate
from app.schemas.user import UserContext
from app.services.audit_service import write_audit_log
from app.services.profiles import get_profile_by_id, list_profiles

router = APIRouter(prefix="/admin", tags=["admin"])


def _prevent_self_change(actor: UserContext, profile: UserProfile) -> None:
    if profile.user_id == actor.user_id:
        raise ValidationFailed("cannot_modify_self", "Administrators cannot change or delete their own account.")


@router.get("/users", response_model=list[ProfileOut])
async def list_users(
    q: str | None = None,
    session: AsyncSession = Depends(get_session),
    actor: UserContext = Depends(require_admin()),
):
    return await list_profiles(session, q)


@router.patch("/users/{profile_id}", response_model=ProfileOut)
async def update_user_role(
    profile_id: int,
    payload: ProfileRoleUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    actor: UserContext = Depends(require_admin()),
):
    profile = await get_profile_by_id(session, profile_id)
    _prevent_self_change(actor, profile)
    before = {"role": profile.role}
    profile.role = payload.role.value
    await write_audit_log(
        session,
        actor=actor,
        action="USER_ROLE_CHANGE",
        entity_type="fair_user_profile",
        entity_id=profile_id,
        before=before,
        after={"role": profile.role},
        context=get_request_context(request),
    )
    await session.commit()
    return profile


@router.delete("/users/{profile_id}")
async def delete_user(
    profile_id: int,
    request: Request,
    session: AsyncSession = Depends(get_session),
    actor: UserContext = Depends(require_admin()),
):
    profile = await get_profile_by_id(session, profile_id)
    _prevent_self_change(actor, profile)
    before = {"user_id": profile.user_id, "email": profile.email, "role": profile.role}
    await session.delete(profile)
    await write_audit_log(
        session,
        actor=actor,
        action="USER_DELETE",
        entity_type="fair_user_profile",
        entity_id=profile_id,
        before=before,
        context=get_request_context(request),
    )
    await session.commit()
    return {"profile_id": profile_id, "deleted": True}
