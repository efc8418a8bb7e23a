from __future__ import annotations

from datetime import date, datetime, time

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, Text, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.booking_status import PENDING
from app.db.base import Base


class FairEvent(Base):
    __tablename__ = "fair_event"

    event_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    image_url: Mapped[str | None] = mapped_column(String(1024))
    event_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    slot_duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    slots: Mapped[list[FairSlot]] = relationship("FairSlot", back_populates="event", order_by="FairSlot.start_at")


class FairSlot(Base):
    __tablename__ = "fair_slot"

    slot_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("fair_event.event_id"), nullable=False, index=True)
    start_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    event: Mapped[FairEvent] = relationship("FairEvent", back_populates="slots")
    allocations: Mapped[list[FairSlotAllocation]] = relationship(
        "FairSlotAllocation", back_populates="slot", order_by="FairSlotAllocation.allocation_id"
    )


class FairSlotAllocation(Base):
    """A company's claim on a slot. Several companies may share the same slot."""

    __tablename__ = "fair_slot_allocation"

    allocation_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slot_id: Mapped[int] = mapped_column(ForeignKey("fair_slot.slot_id"), nullable=False, index=True)
    company_name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    sector: Mapped[str | None] = mapped_column(String(100))
    interviewer_name: Mapped[str | None] = mapped_column(String(200))
    stand_number: Mapped[str | None] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    slot: Mapped[FairSlot] = relationship("FairSlot", back_populates="allocations")


class FairBooking(Base):
    __tablename__ = "fair_booking"
    __table_args__ = (
        UniqueConstraint("candidate_user_id", "allocation_id", name="uq_booking_candidate_allocation"),
    )

    booking_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    candidate_user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    allocation_id: Mapped[int] = mapped_column(
        ForeignKey("fair_slot_allocation.allocation_id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PENDING, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    allocation: Mapped[FairSlotAllocation] = relationship("FairSlotAllocation")
