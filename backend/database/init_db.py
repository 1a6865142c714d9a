"""
Apply schema.sql and check that the schema is in place.

Run once against a fresh database (it is idempotent, so re-running is fine):

    python -m backend.database.init_db

The script creates every table, then performs a quick insert / read back /
cleanup cycle on events and attendees so a broken foreign key or missing
unique constraint shows up immediately.
"""

import os
import sys
import logging
from datetime import datetime, timedelta, timezone

import psycopg2.errors

from backend.database.db_connection import get_db

logger = logging.getLogger(__name__)

SCHEMA_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "schema.sql")
TABLES = ["users", "session_tokens", "events", "attendees"]


def apply_schema(conn) -> None:
    """Execute schema.sql inside the caller's transaction."""
    with open(SCHEMA_PATH, "r", encoding="utf-8") as fh:
        ddl = fh.read()
    with conn.cursor() as cur:
        cur.execute(ddl)


def missing_tables(conn) -> list:
    """Return the names of required tables that do not exist."""
    missing = []
    with conn.cursor() as cur:
        for table in TABLES:
            cur.execute("SELECT to_regclass(%s);", (table,))
            if not cur.fetchone()[0]:
                missing.append(table)
    return missing


def smoke_test(conn) -> None:
    """
    Insert an event plus one attendee, confirm the duplicate-email constraint
    fires, then roll everything back.
    """
    start = datetime.now(timezone.utc) + timedelta(days=7)
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO events (name, location, start_time, end_time, max_capacity)
            VALUES ('Schema Check', 'Nowhere', %s, %s, 1)
            RETURNING event_id;
            """,
            (start, start + timedelta(hours=1)),
        )
        event_id = cur.fetchone()[0]
        cur.execute(
            "INSERT INTO attendees (event_id, name, email) VALUES (%s, 'A', 'a@example.com');",
            (event_id,),
        )
        cur.execute("SAVEPOINT dup_check;")
        try:
            cur.execute(
                "INSERT INTO attendees (event_id, name, email) VALUES (%s, 'B', 'a@example.com');",
                (event_id,),
            )
        except psycopg2.errors.UniqueViolation:
            cur.execute("ROLLBACK TO SAVEPOINT dup_check;")
        else:
            raise RuntimeError("uq_attendees_event_email is not enforced")


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(asctime)s - %(message)s")
    with get_db() as conn:
        apply_schema(conn)
        logger.info("Schema applied.")

        missing = missing_tables(conn)
        if missing:
            logger.error(f"Missing tables after applying schema: {', '.join(missing)}")
            return 1

    # Separate transaction so the smoke data never gets committed.
    with get_db() as conn:
        try:
            smoke_test(conn)
        finally:
            conn.rollback()
    logger.info("Database check PASSED.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
