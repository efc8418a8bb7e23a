from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, model_validator

from app.schemas.allocations import AllocationOut


class SlotGenerateRequest(BaseModel):
    confirm_duplicates: bool = False


class SlotUpdate(BaseModel):
    start_at: datetime
    end_at: datetime

    @model_validator(mode="after")
    def end_after_start(self) -> "SlotUpdate":
        if self.end_at <= self.start_at:
            raise ValueError("end_at must be after start_at")
        return self


class SlotOut(BaseModel):
    slot_id: int
    event_id: int
    start_at: datetime
    end_at: datetime

    class Config:
        from_attributes = True


class SlotGenerateOut(BaseModel):
    event_id: int
    created: int
    appended: bool
    slots: list[SlotOut]


class SlotWithAllocations(SlotOut):
    allocations: list[AllocationOut] = []


class EventAgendaOut(BaseModel):
    event_id: int
    title: str
    slots: list[SlotWithAllocations]
    slots_with_companies: int
    total_allocations: int


class CompanyEventSlotsOut(BaseModel):
    event_id: int
    slots: list[SlotOut]
    claimed_slot_ids: list[int]
    time_options: list[str]
