from __future__ import annotations

import logging

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.core.roles import Role
from app.models.profile import UserProfile
from app.schemas.profile import CandidateOnboarding, CompanyOnboarding
from app.schemas.user import UserContext

logger = logging.getLogger("feriamatch.profiles")


async def get_profile(session: AsyncSession, user_id: str) -> UserProfile | None:
    return (await session.execute(select(UserProfile).where(UserProfile.user_id == user_id).limit(1))).scalars().first()


async def _get_or_create(session: AsyncSession, user: UserContext) -> UserProfile:
    profile = await get_profile(session, user.user_id)
    if profile is None:
        profile = UserProfile(user_id=user.user_id, email=user.email)
        session.add(profile)
    return profile


async def save_candidate_profile(session: AsyncSession, user: UserContext, payload: CandidateOnboarding) -> UserProfile:
    profile = await _get_or_create(session, user)
    profile.role = Role.CANDIDATE.value
    profile.full_name = f"{payload.first_name.strip()} {payload.last_name.strip()}"
    profile.phone = payload.phone.strip()
    profile.linkedin_url = str(payload.linkedin_url) if payload.linkedin_url else None
    profile.cv_url = payload.cv_url
    profile.onboarding_completed = True
    await session.flush()
    logger.info("profile_onboarded", extra={"user_id": user.user_id, "role": profile.role})
    return profile


async def save_company_profile(session: AsyncSession, user: UserContext, payload: CompanyOnboarding) -> UserProfile:
    profile = await _get_or_create(session, user)
    profile.role = Role.RECRUITER.value
    profile.full_name = profile.full_name or user.full_name
    profile.company_name = payload.company_name
    profile.sector = payload.sector
    profile.website = str(payload.website) if payload.website else None
    profile.onboarding_completed = True
    await session.flush()
    logger.info("profile_onboarded", extra={"user_id": user.user_id, "role": profile.role})
    return profile


async def list_profiles(session: AsyncSession, q: str | None = None) -> list[UserProfile]:
    stmt = select(UserProfile)
    if q:
        like = f"%{q.strip()}%"
        stmt = stmt.where(
            or_(
                UserProfile.email.like(like),
                UserProfile.full_name.like(like),
                UserProfile.company_name.like(like),
                UserProfile.role.like(like),
            )
        )
    return list((await session.execute(stmt.order_by(UserProfile.email.asc()))).scalars().all())


async def get_profile_by_id(session: AsyncSession, profile_id: int) -> UserProfile:
    profile = await session.get(UserProfile, profile_id)
    if not profile:
        raise NotFoundError("user_not_found", "User not found.")
    return profile
