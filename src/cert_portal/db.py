"""Database initialization, connection management and transactions."""
import logging
import sqlite3
import time
from pathlib import Path
from typing import Callable, TypeVar

from cert_portal.config import DEFAULT_DB_PATH, get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRY_DELAY = 0.05

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    email TEXT,
    is_admin INTEGER DEFAULT 0,
    track_ids TEXT DEFAULT '[]'
);

CREATE TABLE IF NOT EXISTS courses (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    quiz_length INTEGER
);

CREATE TABLE IF NOT EXISTS tracks (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    required_courses TEXT DEFAULT '[]'
);

CREATE TABLE IF NOT EXISTS questions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    course_id TEXT NOT NULL REFERENCES courses(id),
    text TEXT NOT NULL,
    option_a TEXT NOT NULL,
    option_b TEXT NOT NULL,
    option_c TEXT NOT NULL,
    option_d TEXT NOT NULL,
    correct_answer INTEGER NOT NULL CHECK (correct_answer BETWEEN 0 AND 3)
);

CREATE TABLE IF NOT EXISTS user_course_data (
    user_id TEXT NOT NULL REFERENCES users(id),
    course_id TEXT NOT NULL REFERENCES courses(id),
    status TEXT DEFAULT 'not-started',
    due_date TEXT,
    completed_date TEXT,
    attempt_count INTEGER DEFAULT 0,
    fail_count INTEGER DEFAULT 0,
    PRIMARY KEY (user_id, course_id)
);

CREATE TABLE IF NOT EXISTS activity_logs (
    user_id TEXT PRIMARY KEY REFERENCES users(id),
    logins INTEGER DEFAULT 0,
    last_login TEXT,
    total_training_time INTEGER DEFAULT 0,
    attempts INTEGER DEFAULT 0,
    passes INTEGER DEFAULT 0,
    fails INTEGER DEFAULT 0,
    pass_rate INTEGER DEFAULT 0
);
"""


class PersistenceFailure(Exception):
    """A transaction could not be applied to the store."""


def get_connection(db_path: str = DEFAULT_DB_PATH, timeout: float = 5.0) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    conn = sqlite3.connect(db_path, timeout=timeout)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()


def _is_busy(error: sqlite3.OperationalError) -> bool:
    message = str(error).lower()
    return "locked" in message or "busy" in message


def run_transaction(
    db_path: str,
    fn: Callable[[sqlite3.Connection], T],
    retries: int | None = None,
    timeout: float = 5.0,
) -> T:
    """Apply fn inside one BEGIN IMMEDIATE transaction.

    The write lock is taken before fn reads anything, so a read-modify-write
    done by fn cannot lose an update made by another connection. Busy/locked
    errors are retried up to `retries` times; every other failure, and the
    last busy error, is raised as PersistenceFailure.
    """
    if retries is None:
        retries = get_settings().commit_retries
    last_error = None
    for attempt in range(1, retries + 1):
        conn = get_connection(db_path, timeout=timeout)
        try:
            conn.execute("BEGIN IMMEDIATE")
            result = fn(conn)
            conn.commit()
            return result
        except sqlite3.OperationalError as e:
            conn.rollback()
            if not _is_busy(e):
                raise PersistenceFailure(str(e)) from e
            last_error = e
            logger.warning("Transaction attempt %d/%d failed: %s", attempt, retries, e)
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceFailure(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        time.sleep(RETRY_DELAY * attempt)
    logger.error("Transaction gave up after %d attempts: %s", retries, last_error)
    raise PersistenceFailure(f"gave up after {retries} attempts: {last_error}") from last_error
