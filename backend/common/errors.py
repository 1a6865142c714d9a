"""
Error taxonomy shared by every service, plus the Flask handlers that turn
those errors into JSON responses.

Usage:
    from backend.common.errors import NotFoundError

    # In a route or service function:
    if not event:
        raise NotFoundError("Event not found.")

    # Once, in the application factory:
    register_error_handlers(app)

Every error body has a ``message`` key. Validation failures also carry an
``errors`` mapping of field name to a list of messages.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from flask import Flask, Response, jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code: int = 500
    message: str = "Something went wrong"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.__class__.message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message}


class ValidationError(APIError):
    """Malformed or missing input (422). Field detail goes back to the caller."""

    status_code = 422
    message = "Validation failed"

    def __init__(self, errors: Dict[str, List[str]], message: Optional[str] = None) -> None:
        super().__init__(message)
        self.errors = errors

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "errors": self.errors}


class NotFoundError(APIError):
    status_code = 404
    message = "Resource not found"


class ConflictError(APIError):
    status_code = 409
    message = "Conflict"


class CapacityExceededError(APIError):
    status_code = 400
    message = "Event capacity has been reached. Registration closed."


class InvalidOtpError(APIError):
    status_code = 400
    message = "Invalid OTP"


class UnauthenticatedError(APIError):
    status_code = 401
    message = "Unauthenticated"


class UnverifiedError(APIError):
    status_code = 403
    message = "Email not verified. Please verify your email first."


class InternalError(APIError):
    status_code = 500
    message = "Something went wrong"


def error_response(err: APIError) -> Tuple[Response, int]:
    return jsonify(err.to_dict()), err.status_code


def register_error_handlers(app: Flask) -> None:
    """
    Install JSON error handlers on the app.

    APIError subclasses are rendered as-is. Werkzeug HTTP errors (unknown
    route, wrong method) keep their status. Anything else is logged with its
    traceback and masked as a 500; the exception text is only included when
    the app runs in debug mode.
    """

    @app.errorhandler(APIError)
    def handle_api_error(err: APIError) -> Tuple[Response, int]:
        if err.status_code >= 500:
            logger.error(f"{type(err).__name__}: {err.message}")
        return error_response(err)

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException) -> Tuple[Response, int]:
        return jsonify({"message": err.description}), err.code

    @app.errorhandler(Exception)
    def handle_unexpected(err: Exception) -> Tuple[Response, int]:
        logger.exception("Unhandled error while processing request")
        body: Dict[str, Any] = {"message": InternalError.message}
        if app.debug:
            body["error"] = str(err)
        return jsonify(body), 500
