"""
database.py - Database access layer for the broken-link sweeper.

This module encapsulates all direct interactions with PostgreSQL: schema
management, batched reads of post revisions, revision deletion, the job queue
used for search reindexing, and the persisted sweeper state.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple

import psycopg2
from psycopg2.extras import RealDictCursor, Json

from config import Config

logger = logging.getLogger(__name__)

config = Config()

DATABASE_URL = (
    f"postgresql://{config.DB_USER}:{config.DB_PASSWORD}"
    f"@{config.DB_HOST}:{config.DB_PORT}/{config.DB_NAME}"
)

FULL_SWEEP_STATE_KEY = "cleanup_broken_links.last_full_sweep"


@contextmanager
def _connection():
    """Context manager that yields a PostgreSQL connection."""
    conn = psycopg2.connect(DATABASE_URL)
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def _cursor(*, commit: bool = False, dict_cursor: bool = False):
    """
    Context manager that yields a cursor and automatically handles commits/rollbacks.
    """
    cursor_factory = RealDictCursor if dict_cursor else None
    with _connection() as conn:
        cur = conn.cursor(cursor_factory=cursor_factory)
        try:
            yield cur
            if commit:
                conn.commit()
        except Exception:
            conn.rollback()
            logger.exception("Database error")
            raise
        finally:
            cur.close()


def create_tables(reset: bool = False) -> None:
    """
    Creates the PostgreSQL schema the sweeper reads from and writes to.

    Topics, posts and revisions are owned by the forum itself; they are created
    here only so a fresh database (or a test instance) has something to sweep.

    Args:
        reset: When True, drops the sweeper's own tables (jobs, sweeper_state)
            before recreating them.
    """
    with _cursor(commit=True) as cur:
        if reset:
            logger.warning("Resetting sweeper tables.")
            cur.execute("DROP TABLE IF EXISTS jobs, sweeper_state CASCADE;")

        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS topics (
                id         SERIAL PRIMARY KEY,
                title      TEXT,
                created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
            );
            """
        )

        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS posts (
                id         SERIAL PRIMARY KEY,
                topic_id   INT REFERENCES topics(id) ON DELETE SET NULL,
                raw        TEXT,
                created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
            );
            """
        )

        # modifications is TEXT so both JSON and YAML encodings survive as written.
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS post_revisions (
                id            SERIAL PRIMARY KEY,
                post_id       INT REFERENCES posts(id) ON DELETE SET NULL,
                modifications TEXT,
                created_at    TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
            );
            """
        )

        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS jobs (
                job_id      SERIAL PRIMARY KEY,
                name        VARCHAR(100) NOT NULL,
                payload     JSONB NOT NULL DEFAULT '{}'::jsonb,
                enqueued_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
            );
            """
        )

        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS sweeper_state (
                key        VARCHAR(255) PRIMARY KEY,
                value      TIMESTAMP WITH TIME ZONE NOT NULL,
                updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
            );
            """
        )

        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_post_revisions_created_at ON post_revisions (created_at, id);"
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_jobs_name ON jobs (name, enqueued_at);"
        )


def fetch_revision_batch(
    after_id: int,
    limit: int,
    window: Optional[Tuple[datetime, datetime]] = None,
) -> List[Dict[str, Any]]:
    """
    Returns up to ``limit`` revisions with ``id > after_id``, ordered by id.

    When ``window`` is given only revisions whose ``created_at`` falls inside
    the inclusive ``(start, end)`` range are returned.
    """
    query = "SELECT id, post_id, modifications, created_at FROM post_revisions WHERE id > %s"
    params: List[Any] = [after_id]
    if window is not None:
        query += " AND created_at BETWEEN %s AND %s"
        params.extend(window)
    query += " ORDER BY id LIMIT %s;"
    params.append(limit)

    with _cursor(dict_cursor=True) as cur:
        cur.execute(query, params)
        return cur.fetchall()


def iter_revision_batches(
    batch_size: int,
    window: Optional[Tuple[datetime, datetime]] = None,
) -> Iterator[List[Dict[str, Any]]]:
    """Yields successive revision batches using keyset pagination on id."""
    last_id = 0
    while True:
        batch = fetch_revision_batch(last_id, batch_size, window)
        if not batch:
            return
        yield batch
        last_id = batch[-1]["id"]


def get_revision_topic_id(revision_id: int) -> Optional[int]:
    """Resolves the topic owning a revision, or None when the post or topic is gone."""
    with _cursor(dict_cursor=True) as cur:
        cur.execute(
            """
            SELECT p.topic_id
            FROM post_revisions pr
            JOIN posts p ON p.id = pr.post_id
            WHERE pr.id = %s;
            """,
            (revision_id,),
        )
        row = cur.fetchone()
    return row["topic_id"] if row else None


def delete_revision(revision_id: int) -> bool:
    """Deletes a revision. Returns False when it was already gone."""
    with _cursor(commit=True) as cur:
        cur.execute("DELETE FROM post_revisions WHERE id = %s;", (revision_id,))
        return cur.rowcount > 0


def enqueue_job(name: str, payload: Dict[str, Any]) -> int:
    """Adds a job for the background worker and returns its id."""
    with _cursor(commit=True) as cur:
        cur.execute(
            """
            INSERT INTO jobs (name, payload)
            VALUES (%s, %s)
            RETURNING job_id;
            """,
            (name, Json(payload)),
        )
        return cur.fetchone()[0]


def enqueue_reindex(topic_id: int) -> int:
    """Schedules a search reindex of a topic."""
    return enqueue_job(config.REINDEX_JOB_NAME, {"topic_id": topic_id})


def get_last_full_sweep() -> Optional[datetime]:
    """Returns when the first full sweep completed, or None if it never has."""
    with _cursor() as cur:
        cur.execute(
            "SELECT value FROM sweeper_state WHERE key = %s;",
            (FULL_SWEEP_STATE_KEY,),
        )
        row = cur.fetchone()
    return row[0] if row else None


def mark_full_sweep_completed(completed_at: datetime) -> None:
    """Records that a full sweep has completed."""
    with _cursor(commit=True) as cur:
        cur.execute(
            """
            INSERT INTO sweeper_state (key, value)
            VALUES (%s, %s)
            ON CONFLICT (key) DO UPDATE SET
                value      = EXCLUDED.value,
                updated_at = CURRENT_TIMESTAMP;
            """,
            (FULL_SWEEP_STATE_KEY, completed_at),
        )


def clear_full_sweep_marker() -> None:
    """Forgets the full sweep so the next run scans every revision again."""
    with _cursor(commit=True) as cur:
        cur.execute("DELETE FROM sweeper_state WHERE key = %s;", (FULL_SWEEP_STATE_KEY,))


if __name__ == "__main__":
    create_tables()
    print("Database tables for the broken-link sweeper created successfully.")
