"""
One-time passcodes for email verification.

Codes are six random digits with a fixed validity window. They are handed to
deliver_otp() and never returned from the API.
"""

import hmac
import logging
import os
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

OTP_LENGTH = 6
OTP_EXPIRATION_MINUTES = int(os.getenv("OTP_EXPIRATION_MINUTES", 10))


def generate_otp(now: Optional[datetime] = None) -> Tuple[str, datetime]:
    """
    Create a new code and its expiry.

    Returns:
        tuple: (six-digit string, expiry datetime in UTC)
    """
    now = now or datetime.now(timezone.utc)
    code = f"{secrets.randbelow(10 ** OTP_LENGTH):0{OTP_LENGTH}d}"
    return code, now + timedelta(minutes=OTP_EXPIRATION_MINUTES)


def otp_matches(stored: Optional[str], submitted: str) -> bool:
    if not stored:
        return False
    return hmac.compare_digest(stored.encode(), submitted.encode())


def otp_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if expires_at is None:
        return True
    return expires_at < (now or datetime.now(timezone.utc))


def deliver_otp(email: str, code: str) -> None:
    """
    Hand a code to the delivery channel.

    There is no mail transport wired in, so only the dispatch is logged.
    The code itself never reaches the logs.
    """
    logger.info(f"[Auth] OTP dispatched to {email}")
