from __future__ import annotations

PENDING = "pending"
CONFIRMED = "confirmed"
REJECTED = "rejected"

# Statuses that hold a place in an allocation and block the candidate's agenda.
ACTIVE_STATUSES: frozenset[str] = frozenset({PENDING, CONFIRMED})

REVIEW_STATUSES: frozenset[str] = frozenset({CONFIRMED, REJECTED})


# A booking is created pending and reviewed exactly once.
STATUS_GRAPH: dict[str, frozenset[str]] = {
    PENDING: frozenset({CONFIRMED, REJECTED}),
    CONFIRMED: frozenset(),
    REJECTED: frozenset(),
}


def normalize_status(raw: str | None) -> str | None:
    if raw is None:
        return None
    normalized = raw.strip().lower()
    return normalized or None


def is_known_status(value: str | None) -> bool:
    return normalize_status(value) in STATUS_GRAPH


def is_active_status(value: str | None) -> bool:
    return normalize_status(value) in ACTIVE_STATUSES


def can_transition(from_status: str | None, to_status: str | None) -> bool:
    from_normalized = normalize_status(from_status)
    to_normalized = normalize_status(to_status)

    if to_normalized is None or to_normalized not in STATUS_GRAPH:
        return False

    # New rows always start pending.
    if from_normalized is None:
        return to_normalized == PENDING

    if from_normalized not in STATUS_GRAPH:
        return False

    return to_normalized in STATUS_GRAPH[from_normalized]
