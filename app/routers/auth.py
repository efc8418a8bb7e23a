from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.errors import AccessDenied
from app.db.session import get_session
from app.request_context import get_request_context
from app.schemas.profile import CandidateOnboarding, CompanyOnboarding, ProfileOut
from app.schemas.user import UserContext
from app.services.audit_service import write_audit_log
from app.services.profiles import get_profile, save_candidate_profile, save_company_profile

router = APIRouter(prefix="/auth", tags=["auth"])


def _require_identity(user: UserContext) -> UserContext:
    if user.is_demo:
        raise AccessDenied("demo_read_only", "Demo mode is read-only.")
    return user


@router.get("/me", response_model=UserContext)
async def me(user: UserContext = Depends(get_current_user)):
    return user


@router.get("/profile", response_model=ProfileOut | None)
async def my_profile(
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(get_current_user),
):
    if user.is_demo:
        return None
    return await get_profile(session, user.user_id)


@router.put("/onboarding/candidate", response_model=ProfileOut)
async def onboard_candidate(
    payload: CandidateOnboarding,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(get_current_user),
):
    _require_identity(user)
    profile = await save_candidate_profile(session, user, payload)
    await write_audit_log(
        session,
        actor=user,
        action="PROFILE_ONBOARD",
        entity_type="fair_user_profile",
        entity_id=profile.profile_id,
        after={"role": profile.role},
        context=get_request_context(request),
    )
    await session.commit()
    return profile


@router.put("/onboarding/company", response_model=ProfileOut)
async def onboard_company(
    payload: CompanyOnboarding,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: UserContext = Depends(get_current_user),
):
    _require_identity(user)
    profile = await save_company_profile(session, user, payload)
    await write_audit_log(
        session,
        actor=user,
        action="PROFILE_ONBOARD",
        entity_type="fair_user_profile",
        entity_id=profile.profile_id,
        after={"role": profile.role, "company_name": profile.company_name},
        context=get_request_context(request),
    )
    await session.commit()
    return profile
