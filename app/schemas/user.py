from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, EmailStr

from app.core.roles import Role


class UserContext(BaseModel):
    user_id: str
    email: EmailStr
    roles: List[Role]
    full_name: Optional[str] = None
    company_name: Optional[str] = None
    # Set per request from the X-Demo-Mode header; never grants a role.
    is_demo: bool = False
