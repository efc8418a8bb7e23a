from __future__ import annotations

import json
from typing import Iterable, Optional

from fastapi import Depends, HTTPException, Request, status
import urllib3
from google.auth.transport.urllib3 import Request as GoogleAuthRequest
from google.oauth2 import id_token as google_id_token
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.paths import resolve_repo_path
from app.core.roles import Role, has_required_role, parse_role
from app.db.session import get_session
from app.models.profile import UserProfile
from app.schemas.user import UserContext

DEMO_HEADER = "x-demo-mode"
DEMO_USER_ID = "demo"
DEMO_EMAIL = "demo@example.com"


async def get_current_user(request: Request, session: AsyncSession = Depends(get_session)) -> UserContext:
    bearer = _read_bearer_token(request)
    if bearer:
        token_info = _verify_google_id_token(bearer)
        email = str(token_info.get("email", "")).lower()
        if not email:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token (missing email)")
        user_id = str(token_info.get("sub") or email)
        profile = await _load_profile(session, user_id)
        roles = _roles_from_profile(profile, email)
        return UserContext(
            user_id=user_id,
            email=email,
            roles=roles,
            full_name=(profile.full_name if profile else None) or token_info.get("name") or _derive_name_from_email(email),
            company_name=profile.company_name if profile else None,
        )

    email = (request.headers.get("x-user-email") or "").strip().lower()
    if not email or settings.auth_mode == "google":
        if _demo_requested(request):
            return UserContext(user_id=DEMO_USER_ID, email=DEMO_EMAIL, roles=[], full_name="Demo", is_demo=True)
        detail = "Missing bearer token" if settings.auth_mode == "google" else "Missing identity"
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)

    profile = await _load_profile(session, email)
    roles: list[Role] = []
    for raw in (request.headers.get("x-user-roles") or "").split(","):
        role = parse_role(raw)
        if role and role not in roles:
            roles.append(role)
    if not roles:
        roles = _roles_from_profile(profile, email)

    company_name = profile.company_name if profile else None
    # Company override header is a local development aid only.
    if settings.environment != "production":
        company_name = request.headers.get("x-user-company") or company_name

    return UserContext(
        user_id=email,
        email=email,
        roles=roles,
        full_name=request.headers.get("x-user-name")
        or (profile.full_name if profile else None)
        or _derive_name_from_email(email),
        company_name=company_name,
    )


async def _load_profile(session: AsyncSession, user_id: str) -> UserProfile | None:
    try:
        return (
            await session.execute(select(UserProfile).where(UserProfile.user_id == user_id).limit(1))
        ).scalars().first()
    except SQLAlchemyError as exc:
        detail = "Profile lookup failed"
        if settings.environment != "production":
            detail = f"Profile lookup failed: {exc}"
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)


def _roles_from_profile(profile: UserProfile | None, email: str) -> list[Role]:
    if settings.admin_email and email == settings.admin_email.strip().lower():
        return [Role.ADMIN]
    role = parse_role(profile.role if profile else None)
    return [role] if role else [Role.CANDIDATE]


def _demo_requested(request: Request) -> bool:
    if not settings.allow_demo_mode:
        return False
    return (request.headers.get(DEMO_HEADER) or "").strip().lower() in {"1", "true", "yes"}


def _read_bearer_token(request: Request) -> Optional[str]:
    auth = request.headers.get("authorization") or ""
    prefix = "bearer "
    if auth.lower().startswith(prefix):
        return auth[len(prefix) :].strip()
    return None


def _load_oauth_client_id() -> Optional[str]:
    if settings.google_client_id:
        return settings.google_client_id
    path = resolve_repo_path(settings.google_oauth_secrets_path)
    if not path.exists():
        return None
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict) and "web" in data and isinstance(data["web"], dict):
        return data["web"].get("client_id")
    if isinstance(data, dict) and "installed" in data and isinstance(data["installed"], dict):
        return data["installed"].get("client_id")
    return None


def _verify_google_id_token(token: str) -> dict:
    client_id = _load_oauth_client_id()
    if not client_id:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Missing Google OAuth client_id")
    try:
        req = GoogleAuthRequest(urllib3.PoolManager())
        return google_id_token.verify_oauth2_token(
            token,
            req,
            audience=client_id,
            clock_skew_in_seconds=int(settings.google_clock_skew_seconds),
        )
    except Exception as exc:
        detail = "Invalid Google token"
        if settings.environment != "production":
            detail = f"Invalid Google token: {exc}"
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _derive_name_from_email(email: str) -> str:
    local = email.split("@", 1)[0].strip()
    if not local:
        return email
    parts = [p for p in local.replace("_", ".").split(".") if p]
    if not parts:
        return local
    return " ".join(p[:1].upper() + p[1:] for p in parts)


def authorize(user: UserContext, required: Iterable[Role], *, allow_demo: bool = False) -> bool:
    if user.is_demo:
        return allow_demo
    if not required:
        return True
    return has_required_role(user.roles, required)


def require_roles(required: Iterable[Role]):
    required = list(required)

    async def dependency(user: UserContext = Depends(get_current_user)) -> UserContext:
        if not authorize(user, required):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user

    return dependency


def allow_viewer():
    async def dependency(user: UserContext = Depends(get_current_user)) -> UserContext:
        if not authorize(user, [], allow_demo=True):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user

    return dependency
