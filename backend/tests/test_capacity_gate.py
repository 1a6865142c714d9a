from backend.registration_service.capacity_gate import (
    ALLOW,
    CAPACITY_REACHED,
    DUPLICATE_EMAIL,
    RosterSnapshot,
    decide,
)

EVENT = {"event_id": 1, "max_capacity": 2}


def test_allows_when_seats_remain():
    decision = decide(EVENT, "a@example.com", RosterSnapshot(attendee_count=1))
    assert decision == ALLOW
    assert decision.allowed
    assert decision.reason is None


def test_rejects_when_full():
    decision = decide(EVENT, "c@example.com", RosterSnapshot(attendee_count=2))
    assert not decision.allowed
    assert decision.reason == CAPACITY_REACHED


def test_rejects_when_over_capacity():
    # Capacity may have been lowered out of band; still reject.
    decision = decide(EVENT, "c@example.com", RosterSnapshot(attendee_count=5))
    assert decision.reason == CAPACITY_REACHED


def test_rejects_duplicate_email():
    snapshot = RosterSnapshot(attendee_count=1, registered_emails=frozenset({"a@example.com"}))
    decision = decide(EVENT, "a@example.com", snapshot)
    assert not decision.allowed
    assert decision.reason == DUPLICATE_EMAIL


def test_duplicate_email_takes_precedence_over_full_event():
    snapshot = RosterSnapshot(attendee_count=2, registered_emails=frozenset({"a@example.com"}))
    decision = decide(EVENT, "a@example.com", snapshot)
    assert decision.reason == DUPLICATE_EMAIL


def test_other_registered_emails_do_not_block():
    snapshot = RosterSnapshot(attendee_count=1, registered_emails=frozenset({"b@example.com"}))
    assert decide(EVENT, "a@example.com", snapshot) == ALLOW


def test_capacity_one_event():
    event = {"event_id": 9, "max_capacity": 1}
    assert decide(event, "x@example.com", RosterSnapshot(0)).allowed
    assert decide(event, "y@example.com", RosterSnapshot(1)).reason == CAPACITY_REACHED
