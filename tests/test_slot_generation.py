from datetime import date, datetime, time

import pytest

from app.core.errors import SlotsAlreadyExistError, ValidationFailed
from app.models.fair import FairEvent, FairSlot
from app.services.slot_generation import (
    count_event_slots,
    create_slots_for_event,
    expected_slot_count,
    generate_slot_windows,
    update_slot_times,
)

DAY = date(2030, 5, 20)


def test_partial_trailing_slot_is_dropped():
    windows = generate_slot_windows(DAY, time(9, 0), time(10, 10), 30)
    assert [(w.start_at.time(), w.end_at.time()) for w in windows] == [
        (time(9, 0), time(9, 30)),
        (time(9, 30), time(10, 0)),
    ]


def test_slots_tile_the_window_back_to_back():
    windows = generate_slot_windows(DAY, time(9, 0), time(18, 0), 60)
    assert len(windows) == 9
    assert all(a.end_at == b.start_at for a, b in zip(windows, windows[1:]))
    assert windows[-1].end_at == datetime(2030, 5, 20, 18, 0)


def test_expected_count_matches_generation():
    assert expected_slot_count(time(9, 0), time(10, 10), 30) == 2
    assert expected_slot_count(time(9, 0), time(9, 10), 15) == 0


def test_window_shorter_than_duration_has_no_slots():
    with pytest.raises(ValidationFailed) as exc:
        generate_slot_windows(DAY, time(9, 0), time(9, 10), 15)
    assert exc.value.code == "no_slots_fit"


def test_duration_outside_allowed_set_is_rejected():
    with pytest.raises(ValidationFailed) as exc:
        generate_slot_windows(DAY, time(9, 0), time(12, 0), 45)
    assert exc.value.code == "invalid_duration"


def test_end_before_start_is_rejected():
    with pytest.raises(ValidationFailed):
        generate_slot_windows(DAY, time(12, 0), time(9, 0), 30)


def test_update_slot_times_requires_positive_length():
    event = FairEvent(title="x", event_date=DAY, start_time=time(9), end_time=time(10), slot_duration_minutes=30)
    slot = FairSlot(event=event, start_at=datetime(2030, 5, 20, 9), end_at=datetime(2030, 5, 20, 9, 30))
    with pytest.raises(ValidationFailed):
        update_slot_times(slot, datetime(2030, 5, 20, 10), datetime(2030, 5, 20, 10))


async def test_regeneration_requires_confirmation(db_session):
    event = FairEvent(
        title="Fair",
        event_date=DAY,
        start_time=time(9, 0),
        end_time=time(10, 0),
        slot_duration_minutes=30,
    )
    db_session.add(event)
    await db_session.flush()

    first = await create_slots_for_event(db_session, event)
    assert len(first) == 2

    with pytest.raises(SlotsAlreadyExistError):
        await create_slots_for_event(db_session, event)
    assert await count_event_slots(db_session, event.event_id) == 2

    await create_slots_for_event(db_session, event, confirm_duplicates=True)
    assert await count_event_slots(db_session, event.event_id) == 4
