"""Per-user activity logs and usage statistics."""
import logging
import math
from datetime import datetime
from typing import Optional

from cert_portal.db import PersistenceFailure, get_connection, run_transaction
from cert_portal.models import ActivityLog

logger = logging.getLogger(__name__)

USAGE_COLUMNS = (
    "name", "logins", "last_login", "attempts", "passes", "fails", "pass_rate", "total_training_time",
)


def percentage(part: int, whole: int) -> int:
    """Whole-number percentage of part in whole, halves rounded up. Zero for an empty whole."""
    if not whole:
        return 0
    return math.floor(part / whole * 100 + 0.5)


def format_time(seconds: Optional[int]) -> str:
    """Format a duration in seconds as HH:MM:SS."""
    if not seconds:
        return "00:00:00"
    seconds = int(seconds)
    return f"{seconds // 3600:02d}:{seconds % 3600 // 60:02d}:{seconds % 60:02d}"


def record_login(db_path: str, user_id: str, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now()

    def apply(conn):
        conn.execute("INSERT OR IGNORE INTO activity_logs (user_id) VALUES (?)", (user_id,))
        conn.execute(
            "UPDATE activity_logs SET logins = COALESCE(logins, 0) + 1, last_login = ? WHERE user_id = ?",
            (now.isoformat(), user_id),
        )

    try:
        run_transaction(db_path, apply)
    except PersistenceFailure as e:
        logger.error("Failed to update login stats for %s: %s", user_id, e)
        return False
    return True


def get_activity_log(db_path: str, user_id: str) -> Optional[ActivityLog]:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM activity_logs WHERE user_id = ?", (user_id,)).fetchone()
    conn.close()
    return ActivityLog.from_row(row) if row else None


def get_usage_stats(db_path: str, sort_key: str = "name", descending: bool = False) -> list[dict]:
    """One row of activity statistics per user, users without a log shown as zeros."""
    if sort_key not in USAGE_COLUMNS:
        raise ValueError(f"Unknown sort column: {sort_key}")
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT u.id as user_id, u.name,
            COALESCE(a.logins, 0) as logins, a.last_login,
            COALESCE(a.attempts, 0) as attempts, COALESCE(a.passes, 0) as passes,
            COALESCE(a.fails, 0) as fails, COALESCE(a.pass_rate, 0) as pass_rate,
            COALESCE(a.total_training_time, 0) as total_training_time
        FROM users u LEFT JOIN activity_logs a ON a.user_id = u.id"""
    ).fetchall()
    conn.close()
    stats = [dict(r) for r in rows]
    # Users that never logged in sort before everyone else.
    stats.sort(
        key=lambda s: (s[sort_key] is not None, s[sort_key] if s[sort_key] is not None else ""),
        reverse=descending,
    )
    return stats


def get_usage_summary(db_path: str) -> dict:
    """Portal-wide totals over every activity log."""
    conn = get_connection(db_path)
    row = conn.execute(
        """SELECT COUNT(*) as logs,
            COALESCE(SUM(total_training_time), 0) as total_training_time,
            COALESCE(SUM(attempts), 0) as total_attempts,
            COALESCE(SUM(passes), 0) as total_passes,
            COALESCE(SUM(fails), 0) as total_fails
        FROM activity_logs"""
    ).fetchone()
    conn.close()
    summary = dict(row)
    logs = summary.pop("logs")
    summary["avg_training_time"] = summary["total_training_time"] / logs if logs else 0
    return summary


def get_top_users(db_path: str, n: int = 3) -> list[dict]:
    """The n users with the most training time."""
    return get_usage_stats(db_path, sort_key="total_training_time", descending=True)[:n]
