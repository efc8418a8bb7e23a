from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field


class BookingCreate(BaseModel):
    allocation_id: int = Field(ge=1)


class BookingReview(BaseModel):
    status: Literal["confirmed", "rejected"]


class BookingOut(BaseModel):
    booking_id: int
    candidate_user_id: str
    allocation_id: int
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class CandidateBookingItem(BaseModel):
    booking_id: int
    status: str
    created_at: datetime
    allocation_id: int
    company_name: str
    sector: str | None
    interviewer_name: str | None
    stand_number: str | None
    slot_id: int
    start_at: datetime
    end_at: datetime
    event_id: int
    event_title: str
    event_date: date


class CompanyBookingItem(BaseModel):
    booking_id: int
    status: str
    created_at: datetime
    allocation_id: int
    company_name: str
    slot_id: int
    start_at: datetime
    end_at: datetime
    event_id: int
    event_title: str
    candidate_user_id: str
    candidate_name: str | None
    candidate_email: str | None
    candidate_phone: str | None
    candidate_linkedin_url: str | None
    candidate_cv_url: str | None
