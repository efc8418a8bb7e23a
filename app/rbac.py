from __future__ import annotations

from app.core.auth import allow_viewer, require_roles
from app.core.roles import Role


def require_admin():
    return require_roles([Role.ADMIN])


def require_recruiter():
    return require_roles([Role.RECRUITER])


def require_company_or_admin():
    return require_roles([Role.RECRUITER, Role.ADMIN])


def require_candidate():
    return require_roles([Role.CANDIDATE])


def require_viewer():
    return allow_viewer()
