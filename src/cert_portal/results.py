"""Attempt registration and quiz result persistence."""
import logging
import random
import sqlite3
import time
from datetime import datetime
from typing import Callable, Optional, Sequence

from cert_portal.activity import percentage
from cert_portal.db import PersistenceFailure, get_connection, run_transaction
from cert_portal.models import COMPLETED, FAILED, Course, Question, UserCourseRecord
from cert_portal.session import QuizSession, start_session

logger = logging.getLogger(__name__)


def calc_pass_rate(passes: int, attempts: int) -> int:
    return percentage(passes, attempts)


def _ensure_activity_log(conn: sqlite3.Connection, user_id: str) -> sqlite3.Row:
    conn.execute("INSERT OR IGNORE INTO activity_logs (user_id) VALUES (?)", (user_id,))
    return conn.execute("SELECT * FROM activity_logs WHERE user_id = ?", (user_id,)).fetchone()


def register_attempt_start(db_path: str, user_id: str, course_id: str) -> bool:
    """Count a new quiz attempt for the user, whether or not it is ever finished."""

    def apply(conn):
        log = _ensure_activity_log(conn, user_id)
        conn.execute(
            "UPDATE activity_logs SET attempts = ? WHERE user_id = ?",
            ((log["attempts"] or 0) + 1, user_id),
        )
        # Only courses assigned to the user carry an attempt counter.
        conn.execute(
            "UPDATE user_course_data SET attempt_count = COALESCE(attempt_count, 0) + 1 "
            "WHERE user_id = ? AND course_id = ?",
            (user_id, course_id),
        )

    try:
        run_transaction(db_path, apply)
    except PersistenceFailure as e:
        logger.error("Failed to record attempt for %s on %s: %s", user_id, course_id, e)
        return False
    logger.info("Attempt started: user=%s course=%s", user_id, course_id)
    return True


def commit_result(
    db_path: str, user_id: str, course_id: str, session: QuizSession, now: Optional[float] = None,
) -> bool:
    """Persist a completed session's outcome to the course record and activity log.

    Failures are logged and recorded on session.persistence_error; the
    session itself stays completed either way.
    """
    if not session.is_completed:
        raise ValueError("only completed sessions can be committed")
    now = time.time() if now is None else now
    duration = max(0, round(now - session.started_at))
    passed = session.passed
    completed_date = datetime.fromtimestamp(now).isoformat() if passed else None

    def apply(conn):
        log = _ensure_activity_log(conn, user_id)
        passes = (log["passes"] or 0) + (1 if passed else 0)
        fails = (log["fails"] or 0) + (0 if passed else 1)
        conn.execute(
            """UPDATE activity_logs
            SET total_training_time = ?, passes = ?, fails = ?, pass_rate = ?
            WHERE user_id = ?""",
            (
                (log["total_training_time"] or 0) + duration,
                passes,
                fails,
                calc_pass_rate(passes, log["attempts"] or 0),
                user_id,
            ),
        )
        conn.execute(
            "INSERT OR IGNORE INTO user_course_data (user_id, course_id) VALUES (?, ?)",
            (user_id, course_id),
        )
        conn.execute(
            """UPDATE user_course_data
            SET status = ?, completed_date = ?, fail_count = COALESCE(fail_count, 0) + ?
            WHERE user_id = ? AND course_id = ?""",
            (COMPLETED if passed else FAILED, completed_date, 0 if passed else 1, user_id, course_id),
        )

    try:
        run_transaction(db_path, apply)
    except PersistenceFailure as e:
        logger.error("Failed to save quiz results for %s on %s: %s", user_id, course_id, e)
        session.persistence_error = str(e)
        return False
    logger.info(
        "Saved result: user=%s course=%s score=%s/%d passed=%s duration=%ds",
        user_id, course_id, session.score, session.total, passed, duration,
    )
    return True


def start_tracked_session(
    db_path: str,
    user_id: str,
    course: Course,
    pool: Sequence[Question],
    rng: Optional[random.Random] = None,
    clock: Callable[[], float] = time.time,
) -> Optional[QuizSession]:
    """Start a session whose start and completion are written to the store."""
    return start_session(
        course,
        pool,
        rng=rng,
        clock=clock,
        on_start=lambda s: register_attempt_start(db_path, user_id, course.id),
        on_complete=lambda s: commit_result(db_path, user_id, course.id, s, now=clock()),
    )


def get_user_course_record(db_path: str, user_id: str, course_id: str) -> Optional[UserCourseRecord]:
    conn = get_connection(db_path)
    row = conn.execute(
        "SELECT * FROM user_course_data WHERE user_id = ? AND course_id = ?", (user_id, course_id),
    ).fetchone()
    conn.close()
    return UserCourseRecord.from_row(row) if row else None


def get_user_course_records(db_path: str, user_id: str) -> dict[str, UserCourseRecord]:
    conn = get_connection(db_path)
    rows = conn.execute("SELECT * FROM user_course_data WHERE user_id = ?", (user_id,)).fetchall()
    conn.close()
    return {r["course_id"]: UserCourseRecord.from_row(r) for r in rows}
