from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class TimeRange(BaseModel):
    range_start: str = Field(min_length=4, max_length=8, description="HH:MM")
    range_end: str = Field(min_length=4, max_length=8, description="HH:MM")


class CompanySlotClaim(BaseModel):
    interviewer_name: str = Field(default="", max_length=200)
    sector: str | None = Field(default=None, max_length=100)

    @field_validator("sector")
    @classmethod
    def clean_sector(cls, value: str | None) -> str | None:
        return _blank_to_none(value)


class CompanyRangeClaim(CompanySlotClaim, TimeRange):
    pass


class AdminAllocationCreate(BaseModel):
    company_name: str = Field(default="", max_length=200)
    sector: str | None = Field(default=None, max_length=100)
    interviewer_name: str | None = Field(default=None, max_length=200)
    stand_number: str | None = Field(default=None, max_length=50)

    @field_validator("sector", "interviewer_name", "stand_number")
    @classmethod
    def clean_optional(cls, value: str | None) -> str | None:
        return _blank_to_none(value)


class AdminBulkAssign(AdminAllocationCreate, TimeRange):
    pass


class StandUpdate(BaseModel):
    stand_number: str | None = Field(default=None, max_length=50)


class AllocationOut(BaseModel):
    allocation_id: int
    slot_id: int
    company_name: str
    sector: str | None
    interviewer_name: str | None
    stand_number: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class AllocationAvailability(AllocationOut):
    start_at: datetime
    end_at: datetime
    active_bookings: int
    capacity: int
    remaining: int
    is_full: bool


class BulkAllocationOut(BaseModel):
    created: int
    slot_ids: list[int]
    allocations: list[AllocationOut]
