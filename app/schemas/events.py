from __future__ import annotations

from datetime import date, datetime, time
from typing import Literal

from pydantic import BaseModel, Field, model_validator


class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    image_url: str | None = Field(default=None, max_length=1024)
    event_date: date
    start_time: time = time(9, 0)
    end_time: time = time(18, 0)
    slot_duration_minutes: int = Field(default=30, ge=15, le=60)

    @model_validator(mode="after")
    def end_after_start(self) -> "EventCreate":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class EventUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    image_url: str | None = Field(default=None, max_length=1024)


class EventOut(BaseModel):
    event_id: int
    title: str
    description: str | None
    image_url: str | None
    event_date: date
    start_time: time
    end_time: time
    slot_duration_minutes: int
    created_at: datetime

    class Config:
        from_attributes = True


class EventListItem(EventOut):
    status: Literal["open", "full", "past"]
    slot_count: int = 0
    remaining_places: int = 0


class CascadeDeleteOut(BaseModel):
    event_id: int
    bookings_deleted: int
    allocations_deleted: int
    slots_deleted: int
    event_deleted: bool
