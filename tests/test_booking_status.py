from app.core.booking_status import (
    CONFIRMED,
    PENDING,
    REJECTED,
    can_transition,
    is_active_status,
    is_known_status,
)


def test_new_bookings_start_pending():
    assert can_transition(None, PENDING) is True
    assert can_transition(None, CONFIRMED) is False


def test_pending_is_reviewed_once():
    assert can_transition(PENDING, CONFIRMED) is True
    assert can_transition(PENDING, REJECTED) is True
    assert can_transition(CONFIRMED, REJECTED) is False
    assert can_transition(REJECTED, PENDING) is False


def test_status_values_are_normalized():
    assert can_transition(" Pending ", "CONFIRMED") is True
    assert is_active_status("Confirmed") is True
    assert is_active_status(REJECTED) is False


def test_unknown_statuses():
    assert is_known_status("cancelled") is False
    assert can_transition(PENDING, "cancelled") is False
