"""
Capacity gate: decides whether a registration for an event may proceed.

The gate is a pure function. It never touches the database; the caller reads
a fresh RosterSnapshot (under the event row lock) and passes it in.

Precedence is fixed: a duplicate email is reported before a full event, so a
caller re-submitting an existing registration sees "already registered" even
when the event has since filled up.
"""

from typing import Any, FrozenSet, Mapping, NamedTuple, Optional

DUPLICATE_EMAIL = "duplicate_email"
CAPACITY_REACHED = "capacity_reached"


class RosterSnapshot(NamedTuple):
    """Attendee state of one event, read inside the registering transaction."""

    attendee_count: int
    # Emails already registered; the workflow only loads those matching the
    # candidate, so this is usually empty or a single entry.
    registered_emails: FrozenSet[str] = frozenset()


class Decision(NamedTuple):
    allowed: bool
    reason: Optional[str] = None


ALLOW = Decision(True)


def reject(reason: str) -> Decision:
    return Decision(False, reason)


def decide(event: Mapping[str, Any], candidate_email: str, snapshot: RosterSnapshot) -> Decision:
    """
    Decide whether ``candidate_email`` may register for ``event``.

    Args:
        event: event row; only ``max_capacity`` is read. Must exist.
        candidate_email: normalised (stripped, lower-cased) email.
        snapshot: current attendee count and registered emails.

    Returns:
        Decision: ALLOW, or a rejection with DUPLICATE_EMAIL / CAPACITY_REACHED.
    """
    if candidate_email in snapshot.registered_emails:
        return reject(DUPLICATE_EMAIL)
    if snapshot.attendee_count >= event["max_capacity"]:
        return reject(CAPACITY_REACHED)
    return ALLOW
