from __future__ import annotations

from pydantic import BaseModel


class DashboardCounts(BaseModel):
    events: int
    slots: int
    bookings: int
    users: int
