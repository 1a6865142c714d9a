"""
Attendee registration workflow and the other attendee operations.

Every function takes an open connection and runs inside the caller's
transaction (``with get_db() as conn``), so commit/rollback stays with the
route.

Registrations for one event are serialised by locking the event row
(``SELECT ... FOR UPDATE``) before the attendee snapshot is read. The
``uq_attendees_event_email`` unique constraint remains the source of truth
for duplicates; the snapshot check only gives the friendlier error earlier.
"""

import logging
import math
from typing import Any, Dict, Mapping

import psycopg2.errors

from backend.common.errors import CapacityExceededError, ConflictError, NotFoundError
from backend.registration_service.capacity_gate import (
    CAPACITY_REACHED,
    DUPLICATE_EMAIL,
    RosterSnapshot,
    decide,
)

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL_MESSAGE = "This email is already registered for this event."
CAPACITY_MESSAGE = "Event capacity has been reached. Registration closed."
EVENT_NOT_FOUND_MESSAGE = "Event not found."
ATTENDEE_NOT_FOUND_MESSAGE = "Attendee not found."

ATTENDEE_COLUMNS = "attendee_id, event_id, name, email, created_at, updated_at"


def serialize_attendee(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Convert an attendee row to JSON-safe values."""
    attendee = dict(row)
    for key in ("created_at", "updated_at"):
        if attendee.get(key) is not None and hasattr(attendee[key], "isoformat"):
            attendee[key] = attendee[key].isoformat()
    return attendee


def lock_event(cur, event_id: int) -> Mapping[str, Any]:
    """
    Fetch the event row and hold a row lock on it until the transaction ends.

    Raises:
        NotFoundError: if the event does not exist.
    """
    cur.execute(
        "SELECT event_id, max_capacity FROM events WHERE event_id = %s FOR UPDATE;",
        (event_id,),
    )
    event = cur.fetchone()
    if not event:
        raise NotFoundError(EVENT_NOT_FOUND_MESSAGE)
    return event


def read_snapshot(cur, event_id: int, email: str) -> RosterSnapshot:
    cur.execute(
        """
        SELECT COUNT(*) AS attendee_count,
               COUNT(*) FILTER (WHERE email = %s) AS email_matches
        FROM attendees
        WHERE event_id = %s;
        """,
        (email, event_id),
    )
    row = cur.fetchone()
    emails = frozenset([email]) if row["email_matches"] else frozenset()
    return RosterSnapshot(attendee_count=row["attendee_count"], registered_emails=emails)


def register_attendee(conn, event_id: int, name: str, email: str) -> Dict[str, Any]:
    """
    Register ``name``/``email`` for an event.

    Steps: lock the event, read a fresh snapshot, ask the capacity gate,
    insert. Nothing is written on rejection.

    Returns:
        dict: the created attendee.

    Raises:
        NotFoundError: event does not exist.
        ConflictError: email already registered for this event.
        CapacityExceededError: event is full.
    """
    with conn.cursor() as cur:
        event = lock_event(cur, event_id)
        snapshot = read_snapshot(cur, event_id, email)

        decision = decide(event, email, snapshot)
        if decision.reason == DUPLICATE_EMAIL:
            raise ConflictError(DUPLICATE_EMAIL_MESSAGE)
        if decision.reason == CAPACITY_REACHED:
            raise CapacityExceededError(CAPACITY_MESSAGE)

        try:
            cur.execute(
                f"""
                INSERT INTO attendees (event_id, name, email)
                VALUES (%s, %s, %s)
                RETURNING {ATTENDEE_COLUMNS};
                """,
                (event_id, name, email),
            )
        except psycopg2.errors.UniqueViolation:
            # Lost a race with a concurrent registration of the same email.
            raise ConflictError(DUPLICATE_EMAIL_MESSAGE)
        attendee = cur.fetchone()

    logger.info(
        f"Registered attendee {attendee['attendee_id']} for event {event_id} "
        f"({snapshot.attendee_count + 1}/{event['max_capacity']})"
    )
    return serialize_attendee(attendee)


def list_attendees(conn, event_id: int, page: int = 1, per_page: int = 10) -> Dict[str, Any]:
    """
    Return one page of an event's attendees, oldest registration first.

    Returns:
        dict: {data, total, current_page, per_page, last_page}
    """
    with conn.cursor() as cur:
        cur.execute("SELECT event_id FROM events WHERE event_id = %s;", (event_id,))
        if not cur.fetchone():
            raise NotFoundError(EVENT_NOT_FOUND_MESSAGE)

        cur.execute("SELECT COUNT(*) AS total FROM attendees WHERE event_id = %s;", (event_id,))
        total = cur.fetchone()["total"]

        cur.execute(
            f"""
            SELECT {ATTENDEE_COLUMNS}
            FROM attendees
            WHERE event_id = %s
            ORDER BY attendee_id
            LIMIT %s OFFSET %s;
            """,
            (event_id, per_page, (page - 1) * per_page),
        )
        rows = [serialize_attendee(r) for r in cur.fetchall()]

    return {
        "data": rows,
        "total": total,
        "current_page": page,
        "per_page": per_page,
        "last_page": max(1, math.ceil(total / per_page)),
    }


def update_attendee(conn, event_id: int, attendee_id: int, fields: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Update an attendee's name and/or email.

    A new email is checked against the other attendees of the same event.

    Raises:
        NotFoundError: no such attendee for this event.
        ConflictError: email taken by another attendee of the event.
    """
    with conn.cursor() as cur:
        cur.execute(
            f"SELECT {ATTENDEE_COLUMNS} FROM attendees WHERE event_id = %s AND attendee_id = %s FOR UPDATE;",
            (event_id, attendee_id),
        )
        attendee = cur.fetchone()
        if not attendee:
            raise NotFoundError(ATTENDEE_NOT_FOUND_MESSAGE)

        if not fields:
            return serialize_attendee(attendee)

        if "email" in fields:
            cur.execute(
                """
                SELECT 1 FROM attendees
                WHERE event_id = %s AND email = %s AND attendee_id != %s;
                """,
                (event_id, fields["email"], attendee_id),
            )
            if cur.fetchone():
                raise ConflictError(DUPLICATE_EMAIL_MESSAGE)

        set_clause = ", ".join(f"{k} = %s" for k in fields)
        set_clause += ", updated_at = CURRENT_TIMESTAMP"
        values = list(fields.values()) + [attendee_id]

        try:
            cur.execute(
                f"UPDATE attendees SET {set_clause} WHERE attendee_id = %s RETURNING {ATTENDEE_COLUMNS};",
                values,
            )
        except psycopg2.errors.UniqueViolation:
            raise ConflictError(DUPLICATE_EMAIL_MESSAGE)
        updated = cur.fetchone()

    return serialize_attendee(updated)


def delete_attendee(conn, event_id: int, attendee_id: int) -> None:
    with conn.cursor() as cur:
        cur.execute(
            "DELETE FROM attendees WHERE event_id = %s AND attendee_id = %s;",
            (event_id, attendee_id),
        )
        if cur.rowcount == 0:
            raise NotFoundError(ATTENDEE_NOT_FOUND_MESSAGE)
