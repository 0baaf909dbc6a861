from datetime import date, timedelta

from cert_portal.db import get_connection, init_db
from cert_portal.seed import is_seeded, seed_all, seed_courses, seed_tracks, seed_users


def test_seed_courses(tmp_db):
    init_db(tmp_db)
    seed_courses(tmp_db)
    conn = get_connection(tmp_db)
    assert conn.execute("SELECT COUNT(*) FROM courses").fetchone()[0] == 3
    assert conn.execute("SELECT COUNT(*) FROM questions").fetchone()[0] == 13
    conn.close()


def test_seeded_questions_have_valid_answers(tmp_db):
    init_db(tmp_db)
    seed_courses(tmp_db)
    conn = get_connection(tmp_db)
    bad = conn.execute("SELECT COUNT(*) FROM questions WHERE correct_answer NOT BETWEEN 0 AND 3").fetchone()[0]
    conn.close()
    assert bad == 0


def test_is_seeded(tmp_db):
    init_db(tmp_db)
    assert not is_seeded(tmp_db)
    seed_courses(tmp_db)
    assert is_seeded(tmp_db)


def test_seed_users_assignments_relative_to_today(tmp_db):
    init_db(tmp_db)
    seed_courses(tmp_db)
    seed_tracks(tmp_db)
    today = date(2026, 3, 10)
    seed_users(tmp_db, today)
    conn = get_connection(tmp_db)
    assert conn.execute("SELECT COUNT(*) FROM users").fetchone()[0] == 3
    assert conn.execute("SELECT COUNT(*) FROM activity_logs").fetchone()[0] == 3
    row = conn.execute(
        "SELECT due_date FROM user_course_data WHERE user_id = 'u-sam' AND course_id = 'safety-101'"
    ).fetchone()
    conn.close()
    assert row["due_date"] == (today - timedelta(days=2)).isoformat()


def test_seed_all_is_idempotent(tmp_db):
    init_db(tmp_db)
    seed_all(tmp_db)
    seed_all(tmp_db)
    conn = get_connection(tmp_db)
    assert conn.execute("SELECT COUNT(*) FROM questions").fetchone()[0] == 13
    assert conn.execute("SELECT COUNT(*) FROM tracks").fetchone()[0] == 2
    assert conn.execute("SELECT COUNT(*) FROM user_course_data").fetchone()[0] == 5
    conn.close()
