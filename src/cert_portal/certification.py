"""Certification tracking: course status, re-issue, and the certification matrix."""
import json
import logging
from datetime import date, datetime
from typing import Optional

from cert_portal.activity import percentage
from cert_portal.db import get_connection, run_transaction
from cert_portal.models import COMPLETED, IN_PROGRESS, Track, User, UserCourseRecord

logger = logging.getLogger(__name__)

DUE_SOON_DAYS = 7

# Lower is worse; used to roll course statuses up into track and user statuses.
OVERDUE, WARNING, ON_TRACK, NOT_APPLICABLE = 1, 2, 3, 4
STATUS_LABELS = {OVERDUE: "Overdue", WARNING: "Warning", ON_TRACK: "On Track", NOT_APPLICABLE: "N/A"}


def get_course_status_info(
    record: Optional[UserCourseRecord], today: Optional[date] = None, due_soon_days: int = DUE_SOON_DAYS,
) -> tuple[str, str]:
    """Display text and color for a user's standing on one course."""
    today = today or date.today()
    if record is None:
        return "Not Assigned", "gray"
    if record.status == COMPLETED:
        if record.completed_date:
            try:
                completed = datetime.fromisoformat(record.completed_date)
            except ValueError:
                return "Completed", "green"
            return f"Completed: {completed.date().isoformat()}", "green"
        return "Completed", "green"
    if not record.due_date:
        return "Not Started", "gray"
    days_remaining = (date.fromisoformat(record.due_date) - today).days
    if days_remaining < 0:
        return "Overdue", "red"
    if days_remaining <= due_soon_days:
        return "Due Soon", "yellow"
    return "In Progress", "blue"


def _status_priority(record: Optional[UserCourseRecord], today: date, due_soon_days: int = DUE_SOON_DAYS) -> int:
    _, color = get_course_status_info(record, today, due_soon_days)
    if color == "red":
        return OVERDUE
    if color == "yellow":
        return WARNING
    return ON_TRACK


# --- Users and tracks ---

def add_user(db_path: str, user_id: str, name: str, email: str = "", is_admin: bool = False,
             track_ids: Optional[list[str]] = None) -> User:
    user = User(id=user_id, name=name, email=email, is_admin=is_admin, track_ids=track_ids or [])
    conn = get_connection(db_path)
    conn.execute(
        "INSERT INTO users (id, name, email, is_admin, track_ids) VALUES (?, ?, ?, ?, ?)",
        (user.id, user.name, user.email, int(user.is_admin), json.dumps(user.track_ids)),
    )
    conn.commit()
    conn.close()
    return user


def get_user(db_path: str, user_id: str) -> Optional[User]:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    conn.close()
    return User.from_row(row) if row else None


def list_users(db_path: str) -> list[User]:
    conn = get_connection(db_path)
    rows = conn.execute("SELECT * FROM users ORDER BY name").fetchall()
    conn.close()
    return [User.from_row(r) for r in rows]


def add_track(db_path: str, track_id: str, name: str, required_courses: list[str]) -> Track:
    conn = get_connection(db_path)
    conn.execute(
        "INSERT INTO tracks (id, name, required_courses) VALUES (?, ?, ?)",
        (track_id, name, json.dumps(required_courses)),
    )
    conn.commit()
    conn.close()
    return Track(id=track_id, name=name, required_courses=list(required_courses))


def list_tracks(db_path: str) -> list[Track]:
    conn = get_connection(db_path)
    rows = conn.execute("SELECT * FROM tracks ORDER BY name").fetchall()
    conn.close()
    return [Track.from_row(r) for r in rows]


def assign_course(db_path: str, user_id: str, course_id: str, due_date: Optional[str] = None) -> None:
    """Put a course on a user's list, leaving any existing progress alone."""
    conn = get_connection(db_path)
    conn.execute(
        "INSERT OR IGNORE INTO user_course_data (user_id, course_id, status, due_date) VALUES (?, ?, ?, ?)",
        (user_id, course_id, IN_PROGRESS, due_date),
    )
    conn.commit()
    conn.close()


# --- Re-issue and data clearing ---

def reissue_courses(db_path: str, user_id: str, course_ids: list[str], due_date: str) -> list[str]:
    """Restart tracking of the given courses for a user with a new due date."""
    date.fromisoformat(due_date)
    if not course_ids:
        return []

    def apply(conn):
        for course_id in course_ids:
            conn.execute(
                """INSERT INTO user_course_data
                    (user_id, course_id, status, completed_date, fail_count, attempt_count, due_date)
                VALUES (?, ?, ?, NULL, 0, 0, ?)
                ON CONFLICT(user_id, course_id) DO UPDATE SET
                    status = excluded.status, completed_date = NULL,
                    fail_count = 0, attempt_count = 0, due_date = excluded.due_date""",
                (user_id, course_id, IN_PROGRESS, due_date),
            )

    run_transaction(db_path, apply)
    logger.info("Re-issued %s to %s, due %s", ", ".join(course_ids), user_id, due_date)
    return list(course_ids)


def reissue_course(db_path: str, user_id: str, course_id: str, due_date: str) -> list[str]:
    return reissue_courses(db_path, user_id, [course_id], due_date)


def reissue_track(db_path: str, user_id: str, track_id: str, due_date: str) -> list[str]:
    """Re-issue every course a track requires. Unknown tracks re-issue nothing."""
    track = next((t for t in list_tracks(db_path) if t.id == track_id), None)
    if track is None:
        logger.warning("Cannot re-issue unknown track %s", track_id)
        return []
    return reissue_courses(db_path, user_id, track.required_courses, due_date)


def clear_user_data(db_path: str, user_id: str) -> None:
    """Delete all course records of a user, zero their statistics and unassign their tracks."""

    def apply(conn):
        conn.execute("DELETE FROM user_course_data WHERE user_id = ?", (user_id,))
        conn.execute("INSERT OR IGNORE INTO activity_logs (user_id) VALUES (?)", (user_id,))
        conn.execute(
            """UPDATE activity_logs SET attempts = 0, fails = 0, logins = 0, pass_rate = 0,
                passes = 0, total_training_time = 0
            WHERE user_id = ?""",
            (user_id,),
        )
        conn.execute("UPDATE users SET track_ids = '[]' WHERE id = ?", (user_id,))

    run_transaction(db_path, apply)
    logger.info("Cleared course data for %s", user_id)


# --- Certification matrix ---

def _all_course_records(db_path: str) -> dict[str, dict[str, UserCourseRecord]]:
    conn = get_connection(db_path)
    rows = conn.execute("SELECT * FROM user_course_data").fetchall()
    conn.close()
    records: dict[str, dict[str, UserCourseRecord]] = {}
    for row in rows:
        records.setdefault(row["user_id"], {})[row["course_id"]] = UserCourseRecord.from_row(row)
    return records


def get_certification_matrix(
    db_path: str, today: Optional[date] = None, due_soon_days: int = DUE_SOON_DAYS,
) -> list[dict]:
    """Track completion and overall standing for every user, worst standing first."""
    today = today or date.today()
    tracks = {t.id: t for t in list_tracks(db_path)}
    records = _all_course_records(db_path)
    matrix = []
    for user in list_users(db_path):
        user_courses = records.get(user.id, {})
        assigned = [tracks[tid] for tid in user.track_ids if tid in tracks]
        track_rows = []
        overall = ON_TRACK
        for track in assigned:
            required = track.required_courses
            completed = sum(1 for cid in required if cid in user_courses and user_courses[cid].status == COMPLETED)
            percent = percentage(completed, len(required)) if required else 100
            priority = min((_status_priority(user_courses.get(cid), today, due_soon_days) for cid in required), default=ON_TRACK)
            overall = min(overall, priority)
            track_rows.append({
                "track_id": track.id,
                "name": track.name,
                "completion": percent,
                "status": STATUS_LABELS[priority],
            })
        if not assigned:
            overall = NOT_APPLICABLE
        matrix.append({
            "user_id": user.id,
            "name": user.name,
            "tracks": track_rows,
            "avg_completion": percentage(sum(t["completion"] for t in track_rows), len(track_rows) * 100) if track_rows else None,
            "courses_passed": sum(1 for r in user_courses.values() if r.status == COMPLETED),
            "status": STATUS_LABELS[overall],
            "status_priority": overall,
        })
    matrix.sort(key=lambda m: (m["status_priority"], m["name"]))
    return matrix


def get_at_risk_users(
    db_path: str, today: Optional[date] = None, due_soon_days: int = DUE_SOON_DAYS,
) -> list[dict]:
    """Users with overdue or nearly due courses on their assigned tracks."""
    today = today or date.today()
    tracks = {t.id: t for t in list_tracks(db_path)}
    records = _all_course_records(db_path)
    at_risk = []
    for user in list_users(db_path):
        user_courses = records.get(user.id, {})
        flagged = []
        for tid in user.track_ids:
            if tid not in tracks:
                continue
            for cid in tracks[tid].required_courses:
                text, color = get_course_status_info(user_courses.get(cid), today, due_soon_days)
                if color in ("red", "yellow"):
                    flagged.append({"course_id": cid, "status": text})
        if flagged:
            at_risk.append({"user_id": user.id, "name": user.name, "courses": flagged})
    return at_risk


def get_course_failures(db_path: str) -> list[dict]:
    """Courses ranked by total failed attempts across all users."""
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT d.course_id, c.title, u.name, d.fail_count
        FROM user_course_data d
        JOIN courses c ON c.id = d.course_id
        JOIN users u ON u.id = d.user_id
        WHERE d.fail_count > 0
        ORDER BY u.name"""
    ).fetchall()
    conn.close()
    failures: dict[str, dict] = {}
    for row in rows:
        entry = failures.setdefault(
            row["course_id"],
            {"course_id": row["course_id"], "title": row["title"], "total_fails": 0, "users": []},
        )
        entry["total_fails"] += row["fail_count"]
        entry["users"].append({"name": row["name"], "count": row["fail_count"]})
    return sorted(failures.values(), key=lambda f: f["total_fails"], reverse=True)
