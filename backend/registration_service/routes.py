"""
Registration service routes: register attendees for an event and manage the
attendee list.

Routes (mounted at the application root):
- POST   /events/<event_id>/register
- GET    /events/<event_id>/attendees?per_page=N&page=P
- PUT    /events/<event_id>/attendees/<attendee_id>
- DELETE /events/<event_id>/attendees/<attendee_id>

Registration is anonymous. Business-rule failures are raised as
backend.common.errors exceptions and rendered by the app's error handlers.
"""

import logging
from typing import Any, Dict, Tuple

from flask import Blueprint, Response, jsonify, request

from backend.common.errors import ValidationError
from backend.common.validation import PG_INT_MAX, validate
from backend.database.db_connection import get_db
from backend.registration_service import workflow

registration_bp = Blueprint("registration", __name__)
logger = logging.getLogger(__name__)

ATTENDEE_RULES = {
    "name": ["required", "string", "max:255"],
    "email": ["required", "email", "max:255"],
}

DEFAULT_PER_PAGE = 10
MAX_PER_PAGE = 100


# --- REQUEST LOGGING ---
@registration_bp.before_request
def before_request() -> None:
    logger.info(f"[Registration] Incoming {request.method} {request.path}")


@registration_bp.after_request
def after_request(response: Response) -> Response:
    logger.info(f"[Registration] Response {response.status}")
    return response


def _query_int(name: str, default: int, minimum: int, maximum: int = None) -> int:
    """Read an integer query parameter, raising ValidationError if bad or out of range."""
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError({name: [f"The {name.replace('_', ' ')} field must be an integer."]})
    if value < minimum or (maximum is not None and value > maximum):
        bounds = f"between {minimum} and {maximum}" if maximum is not None else f"at least {minimum}"
        raise ValidationError({name: [f"The {name.replace('_', ' ')} field must be {bounds}."]})
    return value


# --- REGISTER ATTENDEE ---
@registration_bp.route("/events/<int:event_id>/register", methods=["POST"])
def register(event_id: int) -> Tuple[Response, int]:
    """
    Register an attendee for an event.

    Expects JSON:
        { "name": str, "email": str }

    Returns:
        201: { message, attendee }
        400: Event capacity reached.
        404: Event not found.
        409: Email already registered for this event.
        422: Validation failed.
    """
    data = validate(request.get_json(silent=True), ATTENDEE_RULES)

    with get_db() as conn:
        attendee = workflow.register_attendee(conn, event_id, data["name"], data["email"])

    return jsonify({"message": "Attendee registered successfully", "attendee": attendee}), 201


# --- LIST ATTENDEES ---
@registration_bp.route("/events/<int:event_id>/attendees", methods=["GET"])
def list_attendees(event_id: int) -> Tuple[Response, int]:
    """
    Paginated attendee list.

    Query params:
        per_page (int, >= 1, default 10, capped at 100)
        page (int, 1 to 2147483647, default 1)

    Returns:
        200: { data: [...], total, current_page, per_page, last_page }
        404: Event not found.
    """
    # Oversized pages are clamped rather than rejected.
    per_page = min(_query_int("per_page", DEFAULT_PER_PAGE, 1), MAX_PER_PAGE)
    page = _query_int("page", 1, 1, PG_INT_MAX)

    with get_db() as conn:
        result = workflow.list_attendees(conn, event_id, page=page, per_page=per_page)

    return jsonify(result), 200


# --- UPDATE ATTENDEE ---
@registration_bp.route("/events/<int:event_id>/attendees/<int:attendee_id>", methods=["PUT"])
def update_attendee(event_id: int, attendee_id: int) -> Tuple[Response, int]:
    """
    Update an attendee's name and/or email.

    Returns:
        200: Updated attendee.
        404: Attendee not found for this event.
        409: Email already registered for this event.
        422: Validation failed.
    """
    fields: Dict[str, Any] = validate(request.get_json(silent=True), ATTENDEE_RULES, partial=True)

    with get_db() as conn:
        attendee = workflow.update_attendee(conn, event_id, attendee_id, fields)

    return jsonify(attendee), 200


# --- DELETE ATTENDEE ---
@registration_bp.route("/events/<int:event_id>/attendees/<int:attendee_id>", methods=["DELETE"])
def delete_attendee(event_id: int, attendee_id: int) -> Tuple[Response, int]:
    with get_db() as conn:
        workflow.delete_attendee(conn, event_id, attendee_id)

    return jsonify({"message": "Attendee deleted successfully"}), 200
