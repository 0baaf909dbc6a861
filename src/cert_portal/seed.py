"""Seed the database with demo courses, questions, tracks, and employees."""
import json
from datetime import date, timedelta
from pathlib import Path
from typing import Optional

from cert_portal.db import get_connection
from cert_portal.models import IN_PROGRESS, OPTION_COLUMNS

CONTENT_DIR = Path(__file__).parent / "content"


def _load_demo() -> dict:
    return json.loads((CONTENT_DIR / "demo.json").read_text())


def is_seeded(db_path: str) -> bool:
    """Check whether the database has already been seeded with courses."""
    conn = get_connection(db_path)
    count = conn.execute("SELECT COUNT(*) FROM courses").fetchone()[0]
    conn.close()
    return count > 0


def seed_courses(db_path: str) -> None:
    """Insert demo courses and their question pools."""
    data = _load_demo()
    conn = get_connection(db_path)
    for course in data["courses"]:
        conn.execute(
            "INSERT OR IGNORE INTO courses (id, title, quiz_length) VALUES (?, ?, ?)",
            (course["id"], course["title"], course["quiz_length"]),
        )
        for q in course["questions"]:
            conn.execute(
                f"INSERT INTO questions (course_id, text, {', '.join(OPTION_COLUMNS)}, correct_answer) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (course["id"], q["text"], *q["options"], q["correctAnswer"]),
            )
    conn.commit()
    conn.close()


def seed_tracks(db_path: str) -> None:
    data = _load_demo()
    conn = get_connection(db_path)
    for track in data["tracks"]:
        conn.execute(
            "INSERT OR IGNORE INTO tracks (id, name, required_courses) VALUES (?, ?, ?)",
            (track["id"], track["name"], json.dumps(track["required_courses"])),
        )
    conn.commit()
    conn.close()


def seed_users(db_path: str, today: Optional[date] = None) -> None:
    """Insert demo employees, their empty activity logs and course assignments."""
    today = today or date.today()
    data = _load_demo()
    conn = get_connection(db_path)
    for user in data["users"]:
        conn.execute(
            "INSERT OR IGNORE INTO users (id, name, email, is_admin, track_ids) VALUES (?, ?, ?, ?, ?)",
            (user["id"], user["name"], user["email"], int(user["is_admin"]), json.dumps(user["track_ids"])),
        )
        conn.execute("INSERT OR IGNORE INTO activity_logs (user_id) VALUES (?)", (user["id"],))
    for a in data["assignments"]:
        due = today + timedelta(days=a["due_in_days"])
        conn.execute(
            "INSERT OR IGNORE INTO user_course_data (user_id, course_id, status, due_date) VALUES (?, ?, ?, ?)",
            (a["user_id"], a["course_id"], IN_PROGRESS, due.isoformat()),
        )
    conn.commit()
    conn.close()


def seed_all(db_path: str, today: Optional[date] = None) -> None:
    """Run all seed functions in order."""
    if is_seeded(db_path):
        return
    seed_courses(db_path)
    seed_tracks(db_path)
    seed_users(db_path, today)
