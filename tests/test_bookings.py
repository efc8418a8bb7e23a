from datetime import datetime

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.core import booking_status
from app.core.errors import (
    AccessDenied,
    CapacityExceededError,
    DuplicateBookingError,
    InvalidStatusTransition,
    NotFoundError,
    ScheduleConflictError,
    ValidationFailed,
)
from app.core.roles import Role
from app.models.audit import FairAuditLog
from app.models.fair import FairBooking, FairSlotAllocation
from app.schemas.user import UserContext
from app.services import bookings as bookings_service
from app.services.bookings import (
    cancel_booking,
    find_overlapping,
    intervals_overlap,
    request_booking,
    review_booking,
)


def _user(email: str, role: Role, company: str | None = None) -> UserContext:
    return UserContext(user_id=email, email=email, roles=[role], company_name=company)


ANA = _user("ana@example.com", Role.CANDIDATE)
LUIS = _user("luis@example.com", Role.CANDIDATE)
EVA = _user("eva@example.com", Role.CANDIDATE)
ACME_HR = _user("hr@acme.example.com", Role.RECRUITER, "Acme")
GLOBEX_HR = _user("hr@globex.example.com", Role.RECRUITER, "Globex")


def _at(hhmm: str) -> datetime:
    return datetime.fromisoformat(f"2030-05-20T{hhmm}")


def test_touching_intervals_do_not_overlap():
    assert intervals_overlap(_at("09:00"), _at("09:30"), _at("09:30"), _at("10:00")) is False
    assert intervals_overlap(_at("09:30"), _at("10:00"), _at("09:00"), _at("09:30")) is False


def test_partial_and_nested_intervals_overlap():
    assert intervals_overlap(_at("09:00"), _at("09:30"), _at("09:15"), _at("09:45")) is True
    assert intervals_overlap(_at("09:00"), _at("10:00"), _at("09:15"), _at("09:30")) is True


def test_find_overlapping_returns_first_conflict():
    busy = [(7, _at("08:00"), _at("08:30")), (9, _at("09:00"), _at("09:30"))]
    assert find_overlapping(_at("09:15"), _at("09:45"), busy) == 9
    assert find_overlapping(_at("08:30"), _at("09:00"), busy) is None


async def test_third_request_hits_capacity(db_session, fair):
    allocation = fair["allocations"][0]
    await request_booking(db_session, candidate=ANA, allocation_id=allocation.allocation_id)
    await request_booking(db_session, candidate=LUIS, allocation_id=allocation.allocation_id)
    with pytest.raises(CapacityExceededError) as exc:
        await request_booking(db_session, candidate=EVA, allocation_id=allocation.allocation_id)
    assert exc.value.code == "allocation_full"


async def test_rejected_bookings_free_capacity(db_session, fair):
    allocation = fair["allocations"][0]
    first = await request_booking(db_session, candidate=ANA, allocation_id=allocation.allocation_id)
    await request_booking(db_session, candidate=LUIS, allocation_id=allocation.allocation_id)
    await review_booking(db_session, actor=ACME_HR, booking_id=first.booking_id, new_status="rejected")
    booking = await request_booking(db_session, candidate=EVA, allocation_id=allocation.allocation_id)
    assert booking.status == booking_status.PENDING


async def test_second_request_to_same_allocation_is_duplicate(db_session, fair):
    allocation = fair["allocations"][0]
    await request_booking(db_session, candidate=ANA, allocation_id=allocation.allocation_id)
    with pytest.raises(DuplicateBookingError) as exc:
        await request_booking(db_session, candidate=ANA, allocation_id=allocation.allocation_id)
    assert exc.value.detail["code"] == "duplicate_booking"


async def test_overlapping_slot_with_another_company_conflicts(db_session, fair):
    acme_first, _, globex_first = fair["allocations"]
    await request_booking(db_session, candidate=ANA, allocation_id=acme_first.allocation_id)
    with pytest.raises(ScheduleConflictError):
        await request_booking(db_session, candidate=ANA, allocation_id=globex_first.allocation_id)


async def test_adjacent_slot_is_allowed(db_session, fair):
    acme_first, acme_second, _ = fair["allocations"]
    await request_booking(db_session, candidate=ANA, allocation_id=acme_first.allocation_id)
    booking = await request_booking(db_session, candidate=ANA, allocation_id=acme_second.allocation_id)
    assert booking.booking_id is not None


async def test_unknown_allocation_is_not_found(db_session, fair):
    with pytest.raises(NotFoundError):
        await request_booking(db_session, candidate=ANA, allocation_id=9999)


async def test_request_notifies_company_contact(db_session, fair):
    booking = await request_booking(db_session, candidate=ANA, allocation_id=fair["allocations"][0].allocation_id)
    rows = (
        await db_session.execute(select(FairAuditLog).where(FairAuditLog.action == "NOTIFICATION"))
    ).scalars().all()
    assert len(rows) == 1
    assert rows[0].entity_id == str(booking.booking_id)
    assert rows[0].after_json["status"] == "skipped"


async def test_review_is_limited_to_owning_company(db_session, fair):
    booking = await request_booking(db_session, candidate=ANA, allocation_id=fair["allocations"][0].allocation_id)
    with pytest.raises(AccessDenied):
        await review_booking(db_session, actor=GLOBEX_HR, booking_id=booking.booking_id, new_status="confirmed")
    reviewed = await review_booking(db_session, actor=ACME_HR, booking_id=booking.booking_id, new_status="confirmed")
    assert reviewed.status == booking_status.CONFIRMED


async def test_reviewed_booking_cannot_change_again(db_session, fair):
    booking = await request_booking(db_session, candidate=ANA, allocation_id=fair["allocations"][0].allocation_id)
    await review_booking(db_session, actor=ACME_HR, booking_id=booking.booking_id, new_status="rejected")
    with pytest.raises(InvalidStatusTransition):
        await review_booking(db_session, actor=ACME_HR, booking_id=booking.booking_id, new_status="confirmed")


async def test_review_rejects_pending_as_target(db_session, fair):
    booking = await request_booking(db_session, candidate=ANA, allocation_id=fair["allocations"][0].allocation_id)
    with pytest.raises(ValidationFailed):
        await review_booking(db_session, actor=ACME_HR, booking_id=booking.booking_id, new_status="pending")


async def test_cancel_removes_booking_and_hides_others(db_session, fair):
    booking = await request_booking(db_session, candidate=ANA, allocation_id=fair["allocations"][0].allocation_id)
    with pytest.raises(NotFoundError):
        await cancel_booking(db_session, candidate=LUIS, booking_id=booking.booking_id)

    await cancel_booking(db_session, candidate=ANA, booking_id=booking.booking_id)
    assert await db_session.get(FairBooking, booking.booking_id) is None
    with pytest.raises(NotFoundError):
        await review_booking(db_session, actor=ACME_HR, booking_id=booking.booking_id, new_status="confirmed")


async def test_cancel_frees_the_time_for_another_company(db_session, fair):
    acme_first, _, globex_first = fair["allocations"]
    booking = await request_booking(db_session, candidate=ANA, allocation_id=acme_first.allocation_id)
    await cancel_booking(db_session, candidate=ANA, booking_id=booking.booking_id)
    moved = await request_booking(db_session, candidate=ANA, allocation_id=globex_first.allocation_id)
    allocation = await db_session.get(FairSlotAllocation, moved.allocation_id)
    assert allocation.company_name == "Globex"


async def test_unique_constraint_catches_duplicate_missed_by_lookup(db_session, fair, monkeypatch):
    allocation = fair["allocations"][0]
    await request_booking(db_session, candidate=ANA, allocation_id=allocation.allocation_id)

    async def no_existing(session, candidate_user_id, allocation_id):
        return None

    async def not_busy(session, candidate_user_id):
        return []

    monkeypatch.setattr(bookings_service, "_existing_booking_id", no_existing)
    monkeypatch.setattr(bookings_service, "candidate_busy_intervals", not_busy)
    with pytest.raises(DuplicateBookingError):
        await request_booking(db_session, candidate=ANA, allocation_id=allocation.allocation_id)

    rows = (await db_session.execute(select(FairBooking))).scalars().all()
    assert len(rows) == 1


def _storage_failure(*args, **kwargs):
    raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))


async def test_contact_lookup_failure_keeps_created_booking(db_session, fair, monkeypatch):
    async def failing_lookup(session, company_name):
        _storage_failure()

    monkeypatch.setattr(bookings_service, "_company_contact_email", failing_lookup)
    booking = await request_booking(db_session, candidate=ANA, allocation_id=fair["allocations"][0].allocation_id)

    assert booking.status == booking_status.PENDING
    stored = await db_session.get(FairBooking, booking.booking_id)
    assert stored is not None
    notifications = (
        await db_session.execute(select(FairAuditLog).where(FairAuditLog.action == "NOTIFICATION"))
    ).scalars().all()
    assert notifications == []


async def test_profile_lookup_failure_keeps_confirmation(db_session, fair, monkeypatch):
    booking = await request_booking(db_session, candidate=ANA, allocation_id=fair["allocations"][0].allocation_id)

    async def failing_profile(session, user_id):
        _storage_failure()

    monkeypatch.setattr(bookings_service, "_profile", failing_profile)
    reviewed = await review_booking(db_session, actor=ACME_HR, booking_id=booking.booking_id, new_status="confirmed")

    assert reviewed.status == booking_status.CONFIRMED
    stored = await db_session.get(FairBooking, booking.booking_id)
    assert stored.status == booking_status.CONFIRMED
