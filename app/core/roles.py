from __future__ import annotations

from enum import Enum
from typing import Iterable


class Role(str, Enum):
    ADMIN = "admin"
    RECRUITER = "recruiter"
    CANDIDATE = "candidate"


def parse_role(raw: str | None) -> Role | None:
    if raw is None:
        return None
    normalized = raw.strip().lower()
    if not normalized:
        return None
    try:
        return Role(normalized)
    except ValueError:
        return None


def has_required_role(user_roles: Iterable[Role], required: Iterable[Role]) -> bool:
    user_role_set = {Role(r) for r in user_roles}
    return any(Role(role) in user_role_set for role in required)
