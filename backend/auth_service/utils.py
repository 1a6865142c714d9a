"""
Shared authentication helpers.
Provides session token creation, verification and revocation.

Tokens are HS256 JWTs. Each one carries a unique ``jti`` that is stored in
the ``session_tokens`` table at login; logout deletes that row, so a token
is only accepted while its row exists and the JWT itself has not expired.
"""

import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import jwt
from dotenv import load_dotenv
from flask import Response, jsonify, request

from backend.database.db_connection import get_db

# Load .env only once here
load_dotenv()

# Load secrets & configs
JWT_SECRET = os.getenv("JWT_SECRET")
if not JWT_SECRET:
    raise RuntimeError("JWT_SECRET is missing. Set it in .env")

TOKEN_EXPIRATION_MINUTES = int(os.getenv("TOKEN_EXPIRATION_MINUTES", 1440))  # Default 24 hours


# --- JWT CREATION ---
def create_token(user_id: int) -> Tuple[str, str, datetime]:
    """
    Generates a new JWT for a given user.

    Args:
        user_id (int): The unique ID of the user.

    Returns:
        tuple: (encoded token, jti, expiry)
    """
    now = datetime.now(timezone.utc)
    jti = uuid.uuid4().hex
    expires_at = now + timedelta(minutes=TOKEN_EXPIRATION_MINUTES)

    payload = {
        # PyJWT requires "sub" to be a string
        "sub": str(user_id),
        "jti": jti,
        "exp": expires_at,
        "iat": now,
    }

    return jwt.encode(payload, JWT_SECRET, algorithm="HS256"), jti, expires_at


def decode_token(token: str) -> dict:
    """
    Decode and validate a JWT's signature and expiry.

    Raises:
        jwt.ExpiredSignatureError, jwt.InvalidTokenError
    """
    return jwt.decode(token, JWT_SECRET, algorithms=["HS256"], options={"require": ["sub", "jti", "exp"]})


# --- SESSION STORE ---
def store_session(conn, jti: str, user_id: int, expires_at: datetime) -> None:
    with conn.cursor() as cur:
        cur.execute(
            "INSERT INTO session_tokens (jti, user_id, expires_at) VALUES (%s, %s, %s);",
            (jti, user_id, expires_at),
        )


def is_session_active(jti: str, user_id: int) -> bool:
    """True while the session row for ``jti`` exists and has not expired."""
    with get_db() as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT 1 FROM session_tokens
                WHERE jti = %s AND user_id = %s AND expires_at > CURRENT_TIMESTAMP;
                """,
                (jti, user_id),
            )
            return cur.fetchone() is not None


def revoke_session(jti: str) -> None:
    with get_db() as conn:
        with conn.cursor() as cur:
            cur.execute("DELETE FROM session_tokens WHERE jti = %s;", (jti,))


# --- JWT VALIDATION ---
def verify_token_from_request() -> Tuple[Optional[int], Optional[str], Optional[Response], Optional[int]]:
    """
    Verify the bearer token in the Authorization header.

    Returns:
        tuple: (user_id, jti, error_response, status_code)
               If successful, error_response and status_code are None.
               If failed, user_id and jti are None.
    """
    auth = request.headers.get("Authorization", "")

    if not auth.startswith("Bearer "):
        return None, None, jsonify({"message": "Unauthenticated."}), 401

    token = auth.split(" ", 1)[1].strip()

    try:
        payload = decode_token(token)
        user_id = int(payload["sub"])
    except jwt.ExpiredSignatureError:
        return None, None, jsonify({"message": "Token expired."}), 401
    except (jwt.InvalidTokenError, ValueError):
        return None, None, jsonify({"message": "Invalid token."}), 401

    jti = payload["jti"]
    if not is_session_active(jti, user_id):
        return None, None, jsonify({"message": "Token has been revoked."}), 401

    return user_id, jti, None, None
