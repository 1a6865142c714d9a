"""
Events service routes: create, list, read, update and delete events.

Routes (mounted at the application root):
- POST   /events
- GET    /events            upcoming events, soonest first
- GET    /events/<id>
- PUT    /events/<id>       partial update
- DELETE /events/<id>       refused while the event has attendees
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Tuple

import psycopg2.errors
from flask import Blueprint, Response, jsonify, request

from backend.common.errors import ConflictError, NotFoundError, ValidationError
from backend.common.validation import PG_INT_MAX, validate
from backend.database.db_connection import get_db

events_bp = Blueprint("events", __name__)
logger = logging.getLogger(__name__)

EVENT_RULES = {
    "name": ["required", "string", "max:255"],
    "location": ["required", "string", "max:255"],
    "start_time": ["required", "datetime"],
    "end_time": ["required", "datetime", "after:start_time"],
    "max_capacity": ["required", "integer", "min:1", f"max:{PG_INT_MAX}"],
}

EVENT_COLUMNS = "event_id, name, location, start_time, end_time, max_capacity, created_at, updated_at"

EVENT_SELECT = """
    SELECT e.event_id, e.name, e.location, e.start_time, e.end_time, e.max_capacity,
           e.created_at, e.updated_at,
           (SELECT COUNT(*) FROM attendees a WHERE a.event_id = e.event_id) AS attendee_count
    FROM events e
"""

EVENT_NOT_FOUND_MESSAGE = "Event not found."
EVENT_HAS_ATTENDEES_MESSAGE = "Event still has registered attendees. Remove them before deleting the event."


def serialize_event(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Convert an event row to JSON-safe values (datetimes as ISO-8601)."""
    event = dict(row)
    for key in ("start_time", "end_time", "created_at", "updated_at"):
        if isinstance(event.get(key), datetime):
            event[key] = event[key].isoformat()
    return event


# --- REQUEST LOGGING ---
@events_bp.before_request
def before_request() -> None:
    logger.info(f"[Events] Incoming {request.method} {request.path}")


@events_bp.after_request
def after_request(response: Response) -> Response:
    logger.info(f"[Events] Response {response.status}")
    return response


# --- CREATE ---
@events_bp.route("/events", methods=["POST"])
def create_event() -> Tuple[Response, int]:
    """
    Create an event.

    Expects JSON:
        { name, location, start_time, end_time, max_capacity }

    Validations:
    - every field required
    - end_time strictly after start_time
    - max_capacity integer between 1 and 2147483647 (INTEGER column)

    Returns:
        201: The created event.
        422: Validation failed.
    """
    data = validate(request.get_json(silent=True), EVENT_RULES)

    sql = f"""
        INSERT INTO events (name, location, start_time, end_time, max_capacity)
        VALUES (%s, %s, %s, %s, %s)
        RETURNING {EVENT_COLUMNS};
    """

    with get_db() as conn:
        with conn.cursor() as cur:
            cur.execute(sql, (
                data["name"], data["location"],
                data["start_time"], data["end_time"],
                data["max_capacity"],
            ))
            event = cur.fetchone()

    logger.info(f"Created event {event['event_id']} ({event['name']})")
    return jsonify(serialize_event(event)), 201


# --- LIST ---
@events_bp.route("/events", methods=["GET"])
def list_events() -> Tuple[Response, int]:
    """
    List upcoming events (start_time now or later) ordered by start_time.

    Each event carries its current attendee_count.
    """
    sql = EVENT_SELECT + "WHERE e.start_time >= %s ORDER BY e.start_time ASC, e.event_id ASC;"

    with get_db() as conn:
        with conn.cursor() as cur:
            cur.execute(sql, (datetime.now(timezone.utc),))
            rows = [serialize_event(r) for r in cur.fetchall()]

    return jsonify(rows), 200


# --- GET ONE ---
@events_bp.route("/events/<int:event_id>", methods=["GET"])
def get_event(event_id: int) -> Tuple[Response, int]:
    sql = EVENT_SELECT + "WHERE e.event_id = %s;"

    with get_db() as conn:
        with conn.cursor() as cur:
            cur.execute(sql, (event_id,))
            event = cur.fetchone()

    if not event:
        raise NotFoundError(EVENT_NOT_FOUND_MESSAGE)
    return jsonify(serialize_event(event)), 200


# --- UPDATE ---
@events_bp.route("/events/<int:event_id>", methods=["PUT"])
def update_event(event_id: int) -> Tuple[Response, int]:
    """
    Partially update an event. Any field except the id may change.

    The final start/end pair (sent values merged over stored ones) must keep
    end_time after start_time, and max_capacity may not drop below the number
    of attendees already registered.

    Returns:
        200: Updated event.
        404: Event not found.
        422: Validation failed.
    """
    fields = validate(request.get_json(silent=True), EVENT_RULES, partial=True)

    with get_db() as conn:
        with conn.cursor() as cur:
            # Lock the row so a concurrent registration cannot slip in while
            # max_capacity is being lowered.
            cur.execute(
                f"SELECT {EVENT_COLUMNS} FROM events WHERE event_id = %s FOR UPDATE;",
                (event_id,),
            )
            current = cur.fetchone()
            if not current:
                raise NotFoundError(EVENT_NOT_FOUND_MESSAGE)

            if not fields:
                return jsonify(serialize_event(current)), 200

            final_start = fields.get("start_time", current["start_time"])
            final_end = fields.get("end_time", current["end_time"])
            if final_end <= final_start:
                raise ValidationError({"end_time": ["The end time field must be a date after start time."]})

            if "max_capacity" in fields:
                cur.execute("SELECT COUNT(*) AS attendee_count FROM attendees WHERE event_id = %s;", (event_id,))
                registered = cur.fetchone()["attendee_count"]
                if fields["max_capacity"] < registered:
                    raise ValidationError({"max_capacity": [
                        f"The max capacity field must be at least the current attendee count ({registered})."
                    ]})

            set_clause = ", ".join(f"{k} = %s" for k in fields)
            set_clause += ", updated_at = CURRENT_TIMESTAMP"
            values = list(fields.values()) + [event_id]

            cur.execute(
                f"UPDATE events SET {set_clause} WHERE event_id = %s RETURNING {EVENT_COLUMNS};",
                values,
            )
            event = cur.fetchone()

    return jsonify(serialize_event(event)), 200


# --- DELETE ---
@events_bp.route("/events/<int:event_id>", methods=["DELETE"])
def delete_event(event_id: int) -> Tuple[Response, int]:
    """
    Delete an event.

    Deletion is blocked while attendees are registered; they have to be
    removed first.

    Returns:
        200: { message }
        404: Event not found.
        409: Event still has attendees.
    """
    with get_db() as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT event_id FROM events WHERE event_id = %s FOR UPDATE;", (event_id,))
            if not cur.fetchone():
                raise NotFoundError(EVENT_NOT_FOUND_MESSAGE)

            cur.execute("SELECT COUNT(*) AS attendee_count FROM attendees WHERE event_id = %s;", (event_id,))
            if cur.fetchone()["attendee_count"] > 0:
                raise ConflictError(EVENT_HAS_ATTENDEES_MESSAGE)

            try:
                cur.execute("DELETE FROM events WHERE event_id = %s;", (event_id,))
            except psycopg2.errors.ForeignKeyViolation:
                raise ConflictError(EVENT_HAS_ATTENDEES_MESSAGE)

    logger.info(f"Deleted event {event_id}")
    return jsonify({"message": "Event deleted successfully"}), 200
