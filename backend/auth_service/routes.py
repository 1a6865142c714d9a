"""
Authentication service route handlers.

Provides routes for:
- Account registration (issues an OTP through the delivery channel)
- OTP verification
- Login / logout
- Profile retrieval (/me)

Session token logic lives in `auth_service.utils`, OTP handling in
`auth_service.otp`.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Tuple

import psycopg2.errors
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from flask import Blueprint, Response, jsonify, request

from backend.auth_service.otp import deliver_otp, generate_otp, otp_expired, otp_matches
from backend.auth_service.utils import (
    create_token,
    revoke_session,
    store_session,
    verify_token_from_request,
)
from backend.common.errors import (
    ConflictError,
    InvalidOtpError,
    NotFoundError,
    UnauthenticatedError,
    UnverifiedError,
)
from backend.common.validation import validate
from backend.database.db_connection import get_db

auth_bp = Blueprint("auth", __name__)
ph = PasswordHasher()
logger = logging.getLogger(__name__)

REGISTER_RULES = {
    "first_name": ["required", "string", "max:255"],
    "last_name": ["required", "string", "max:255"],
    "email": ["required", "email", "max:255"],
    "password": ["required", "password", "min:6", "confirmed"],
}

VERIFY_RULES = {
    "email": ["required", "email"],
    "otp": ["required", "digits:6"],
}

LOGIN_RULES = {
    "email": ["required", "email"],
    "password": ["required", "password"],
}

PUBLIC_USER_FIELDS = ("user_id", "first_name", "last_name", "email")
PROFILE_COLUMNS = "user_id, first_name, last_name, email, is_verified, email_verified_at, created_at, updated_at"


def public_user(row: Mapping[str, Any], fields=PUBLIC_USER_FIELDS) -> Dict[str, Any]:
    row = dict(row)
    user = {k: row[k] for k in fields if k in row}
    for key, value in user.items():
        if isinstance(value, datetime):
            user[key] = value.isoformat()
    return user


# --- REQUEST LOGGING ---
@auth_bp.before_request
def before_request() -> None:
    """
    Log every incoming request method and path to the authentication service.
    Headers are left out since they carry bearer tokens.
    """
    logger.info(f"[Auth] Incoming {request.method} {request.path}")


@auth_bp.after_request
def after_request(response: Response) -> Response:
    logger.info(f"[Auth] Response {response.status}")
    return response


# --- REGISTER ---
@auth_bp.route("/register", methods=["POST"])
def register() -> Tuple[Response, int]:
    """
    Register a new, unverified account and dispatch its OTP.

    Expects a JSON body with:
    - first_name (str), last_name (str)
    - email (str): unique
    - password (str): minimum 6 characters
    - password_confirmation (str): must equal password

    Returns:
        201: { message, user } (the OTP is not part of the response)
        409: Email already registered.
        422: Validation failed.
    """
    data = validate(request.get_json(silent=True), REGISTER_RULES)

    pw_hash = ph.hash(data["password"])
    otp, otp_expires_at = generate_otp()

    sql = f"""
        INSERT INTO users (first_name, last_name, email, password_hash, otp, otp_expires_at)
        VALUES (%s, %s, %s, %s, %s, %s)
        RETURNING {PROFILE_COLUMNS};
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (
                    data["first_name"], data["last_name"], data["email"],
                    pw_hash, otp, otp_expires_at,
                ))
                user = cur.fetchone()
    except psycopg2.errors.UniqueViolation:
        raise ConflictError("The email has already been taken.")

    deliver_otp(user["email"], otp)

    return jsonify({
        "message": "User registered successfully, OTP sent",
        "user": public_user(user),
    }), 201


# --- VERIFY OTP ---
@auth_bp.route("/verify-otp", methods=["POST"])
def verify_otp() -> Tuple[Response, int]:
    """
    Verify an account's email with the OTP it was sent.

    Expects JSON:
        { "email": str, "otp": "6 digits" }

    Returns:
        200: { message, user }
        400: Invalid or expired OTP.
        404: User not found.
        422: Validation failed.
    """
    data = validate(request.get_json(silent=True), VERIFY_RULES)

    with get_db() as conn:
        with conn.cursor() as cur:
            cur.execute(
                "SELECT user_id, first_name, last_name, email, otp, otp_expires_at "
                "FROM users WHERE email = %s FOR UPDATE;",
                (data["email"],),
            )
            user = cur.fetchone()
            if not user:
                raise NotFoundError("User not found")

            if not otp_matches(user["otp"], data["otp"]):
                raise InvalidOtpError("Invalid OTP")
            if otp_expired(user["otp_expires_at"]):
                raise InvalidOtpError("OTP has expired")

            cur.execute(
                """
                UPDATE users
                SET is_verified = TRUE, otp = NULL, otp_expires_at = NULL,
                    email_verified_at = %s, updated_at = CURRENT_TIMESTAMP
                WHERE user_id = %s;
                """,
                (datetime.now(timezone.utc), user["user_id"]),
            )

    logger.info(f"[Auth] User {user['user_id']} verified")
    return jsonify({"message": "OTP verified successfully", "user": public_user(user)}), 200


# --- LOGIN ---
@auth_bp.route("/login", methods=["POST"])
def login() -> Tuple[Response, int]:
    """
    Authenticate a verified user and return a session token.

    Expects a JSON body with:
    - email (str)
    - password (str)

    Returns:
        200: { message, token, user }
        401: Invalid credentials (wrong password or unknown email).
        403: Email not verified.
        422: Validation failed.
    """
    data = validate(request.get_json(silent=True), LOGIN_RULES)

    with get_db() as conn:
        with conn.cursor() as cur:
            cur.execute(
                "SELECT user_id, first_name, last_name, email, password_hash, is_verified "
                "FROM users WHERE email = %s;",
                (data["email"],),
            )
            user = cur.fetchone()

        if not user:
            raise UnauthenticatedError("Invalid credentials")

        # Verify password against hash
        try:
            ph.verify(user["password_hash"], data["password"])
        except (VerificationError, InvalidHashError):
            raise UnauthenticatedError("Invalid credentials")

        if not user["is_verified"]:
            raise UnverifiedError()

        token, jti, expires_at = create_token(user["user_id"])
        store_session(conn, jti, user["user_id"], expires_at)

    return jsonify({
        "message": "Login successful",
        "token": token,
        "user": public_user(user),
    }), 200


# --- LOGOUT ---
@auth_bp.route("/logout", methods=["POST"])
def logout() -> Tuple[Response, int]:
    """
    Revoke the session token used for this request.

    Requires Authorization header: Bearer <token>
    """
    user_id, jti, err, code = verify_token_from_request()
    if err:
        return err, code

    revoke_session(jti)
    logger.info(f"[Auth] User {user_id} logged out")
    return jsonify({"message": "Logged out successfully"}), 200


# --- GET CURRENT USER ---
@auth_bp.route("/me", methods=["GET"])
def me() -> Tuple[Response, int]:
    """
    Retrieve the current user's profile.

    Requires Authorization header: Bearer <token>

    Returns:
        200: { user }
        401: Authentication failure.
        404: User not found in DB (edge case).
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    with get_db() as conn:
        with conn.cursor() as cur:
            cur.execute(f"SELECT {PROFILE_COLUMNS} FROM users WHERE user_id = %s;", (user_id,))
            user = cur.fetchone()

    if not user:
        raise NotFoundError("User not found")

    return jsonify({"user": public_user(user, PROFILE_COLUMNS.split(", "))}), 200
