from datetime import datetime

import pytest

from app.core.errors import ConflictError, ValidationFailed
from app.models.fair import FairSlot
from app.services.allocations import (
    bulk_assign_company,
    claim_range_for_company,
    claim_slot_for_company,
    company_slot_ids,
    remaining_capacity,
    select_slots_in_range,
    time_options,
)


def _slot(slot_id: int, start: str, end: str) -> FairSlot:
    day = "2030-05-20"
    return FairSlot(
        slot_id=slot_id,
        event_id=1,
        start_at=datetime.fromisoformat(f"{day}T{start}"),
        end_at=datetime.fromisoformat(f"{day}T{end}"),
    )


SLOTS = [_slot(1, "09:00", "09:30"), _slot(2, "09:30", "10:00"), _slot(3, "10:00", "10:30")]


def test_range_keeps_slots_fully_inside():
    matched = select_slots_in_range(SLOTS, "09:00", "10:00")
    assert [s.slot_id for s in matched] == [1, 2]


def test_range_accepts_unpadded_hours():
    matched = select_slots_in_range(SLOTS, "9:30", "10:30")
    assert [s.slot_id for s in matched] == [2, 3]


def test_range_excludes_given_slots():
    matched = select_slots_in_range(SLOTS, "09:00", "10:30", exclude_slot_ids={2})
    assert [s.slot_id for s in matched] == [1, 3]


def test_range_must_be_ordered():
    with pytest.raises(ValidationFailed):
        select_slots_in_range(SLOTS, "10:00", "09:00")


def test_range_must_be_hhmm():
    with pytest.raises(ValidationFailed):
        select_slots_in_range(SLOTS, "nine", "10:00")


def test_time_options_are_sorted_boundaries():
    assert time_options(SLOTS) == ["09:00", "09:30", "10:00", "10:30"]


def test_remaining_capacity_never_negative():
    assert remaining_capacity(0, 2) == 2
    assert remaining_capacity(2, 2) == 0
    assert remaining_capacity(5, 2) == 0


async def test_claim_requires_interviewer(db_session, fair):
    with pytest.raises(ValidationFailed) as exc:
        await claim_slot_for_company(
            db_session, slot=fair["slots"][2], company_name="Acme", interviewer_name="   "
        )
    assert exc.value.code == "interviewer_name_required"


async def test_company_cannot_claim_same_slot_twice(db_session, fair):
    with pytest.raises(ConflictError):
        await claim_slot_for_company(
            db_session, slot=fair["slots"][0], company_name="Acme", interviewer_name="Marta"
        )


async def test_range_claim_skips_slots_already_held(db_session, fair):
    event = fair["event"]
    created = await claim_range_for_company(
        db_session,
        event_slots=fair["slots"],
        event_id=event.event_id,
        company_name="Acme",
        interviewer_name="Marta",
        range_start="09:00",
        range_end="10:30",
    )
    assert [a.slot_id for a in created] == [fair["slots"][2].slot_id]
    held = await company_slot_ids(db_session, "Acme", event_id=event.event_id)
    assert held == {s.slot_id for s in fair["slots"][:3]}


async def test_range_claim_with_nothing_left_fails(db_session, fair):
    with pytest.raises(ValidationFailed) as exc:
        await claim_range_for_company(
            db_session,
            event_slots=fair["slots"],
            event_id=fair["event"].event_id,
            company_name="Acme",
            interviewer_name="Marta",
            range_start="09:00",
            range_end="10:00",
        )
    assert exc.value.code == "no_matching_slots"


async def test_admin_bulk_assign_does_not_exclude_held_slots(db_session, fair):
    created = await bulk_assign_company(
        db_session,
        event_slots=fair["slots"],
        company_name="Acme",
        range_start="09:00",
        range_end="10:00",
        stand_number="B4",
    )
    assert [a.slot_id for a in created] == [s.slot_id for s in fair["slots"][:2]]
    assert all(a.stand_number == "B4" for a in created)
