from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, HttpUrl, field_validator

from app.core.roles import Role


class CandidateOnboarding(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone: str = Field(min_length=9, max_length=20)
    linkedin_url: HttpUrl | None = None
    cv_url: str | None = Field(default=None, max_length=2048)

    @field_validator("linkedin_url", mode="before")
    @classmethod
    def blank_url_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class CompanyOnboarding(BaseModel):
    company_name: str = Field(min_length=2, max_length=200)
    sector: str = Field(min_length=2, max_length=50)
    website: HttpUrl | None = None

    @field_validator("company_name", "sector")
    @classmethod
    def strip_text(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 2:
            raise ValueError("too_short")
        return value

    @field_validator("website", mode="before")
    @classmethod
    def blank_url_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ProfileOut(BaseModel):
    profile_id: int
    user_id: str
    email: EmailStr
    role: Role | None
    full_name: str | None
    phone: str | None
    linkedin_url: str | None
    cv_url: str | None
    company_name: str | None
    sector: str | None
    website: str | None
    onboarding_completed: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ProfileRoleUpdate(BaseModel):
    role: Role


class RegisteredCompany(BaseModel):
    user_id: str
    email: EmailStr
    company_name: str
    sector: str | None = None
