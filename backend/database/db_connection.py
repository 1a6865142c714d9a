"""
PostgreSQL connection helper.
Provides get_db() for use by services.
"""

import os
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg2
from psycopg2.extras import DictCursor
from dotenv import load_dotenv

# Load .env variables from the project root
load_dotenv()

logger = logging.getLogger(__name__)

# Get the database URL from environment variable
DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set. Please set the environment variable.")


def connect(dsn: Optional[str] = None):
    """
    Open a raw psycopg2 connection with dictionary-based row access.

    Raises:
        psycopg2.Error: If connection fails.
    """
    try:
        conn = psycopg2.connect(dsn or DATABASE_URL)
        # Rows come back as dicts, e.g. {"event_id": 1, "name": "..."}
        conn.cursor_factory = DictCursor
        return conn
    except psycopg2.Error as e:
        logger.error(f"Error connecting to database: {e}")
        raise


@contextmanager
def get_db(dsn: Optional[str] = None) -> Iterator["psycopg2.extensions.connection"]:
    """
    Yields a connection wrapped in a single transaction.

    Commits when the block exits cleanly, rolls back when it raises, and
    always closes the connection afterwards.

    Usage:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(...)
    """
    conn = connect(dsn)
    try:
        with conn:
            yield conn
    finally:
        conn.close()
