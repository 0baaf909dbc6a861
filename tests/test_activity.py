# tests/test_activity.py
from datetime import datetime

import pytest

from cert_portal.activity import (
    format_time, get_activity_log, get_top_users, get_usage_stats, get_usage_summary, percentage,
    record_login,
)
from cert_portal.certification import add_user
from cert_portal.db import get_connection, init_db


def test_format_time():
    assert format_time(0) == "00:00:00"
    assert format_time(None) == "00:00:00"
    assert format_time(59) == "00:00:59"
    assert format_time(3661) == "01:01:01"
    assert format_time(100 * 3600) == "100:00:00"


def test_percentage_rounds_half_up():
    assert percentage(1, 2) == 50
    assert percentage(1, 8) == 13
    assert percentage(1, 3) == 33
    assert percentage(5, 0) == 0


def test_record_login_creates_and_increments(tmp_db):
    init_db(tmp_db)
    add_user(tmp_db, "u1", "Pat")
    first = datetime(2026, 3, 1, 9, 0)
    second = datetime(2026, 3, 2, 9, 30)
    assert record_login(tmp_db, "u1", now=first) is True
    assert record_login(tmp_db, "u1", now=second) is True
    log = get_activity_log(tmp_db, "u1")
    assert log.logins == 2
    assert log.last_login == second.isoformat()
    assert log.attempts == 0


def test_record_login_unknown_user_fails_soft(tmp_db):
    init_db(tmp_db)
    assert record_login(tmp_db, "ghost") is False


def test_get_activity_log_missing(tmp_db):
    init_db(tmp_db)
    assert get_activity_log(tmp_db, "u1") is None


def _seed_stats(db_path):
    init_db(db_path)
    add_user(db_path, "u1", "Casey")
    add_user(db_path, "u2", "Avery")
    add_user(db_path, "u3", "Blake")
    conn = get_connection(db_path)
    conn.execute(
        "INSERT INTO activity_logs (user_id, logins, last_login, attempts, passes, fails, pass_rate, total_training_time) "
        "VALUES ('u1', 3, '2026-03-01T09:00:00', 4, 3, 1, 75, 600)"
    )
    conn.execute(
        "INSERT INTO activity_logs (user_id, logins, last_login, attempts, passes, fails, pass_rate, total_training_time) "
        "VALUES ('u2', 1, '2026-02-01T09:00:00', 2, 1, 1, 50, 120)"
    )
    conn.commit()
    conn.close()


def test_usage_stats_include_users_without_log(tmp_db):
    _seed_stats(tmp_db)
    stats = get_usage_stats(tmp_db)
    assert [s["name"] for s in stats] == ["Avery", "Blake", "Casey"]
    blake = stats[1]
    assert blake["logins"] == 0
    assert blake["last_login"] is None
    assert blake["pass_rate"] == 0
    assert blake["total_training_time"] == 0


def test_usage_stats_sort_descending(tmp_db):
    _seed_stats(tmp_db)
    stats = get_usage_stats(tmp_db, sort_key="pass_rate", descending=True)
    assert [s["user_id"] for s in stats] == ["u1", "u2", "u3"]


def test_usage_stats_sort_by_last_login_puts_never_first(tmp_db):
    _seed_stats(tmp_db)
    stats = get_usage_stats(tmp_db, sort_key="last_login")
    assert [s["user_id"] for s in stats] == ["u3", "u2", "u1"]


def test_usage_stats_rejects_unknown_column(tmp_db):
    init_db(tmp_db)
    with pytest.raises(ValueError):
        get_usage_stats(tmp_db, sort_key="email")


def test_usage_summary_totals(tmp_db):
    _seed_stats(tmp_db)
    summary = get_usage_summary(tmp_db)
    assert summary == {
        "total_training_time": 720,
        "total_attempts": 6,
        "total_passes": 4,
        "total_fails": 2,
        "avg_training_time": 360,
    }


def test_usage_summary_without_logs(tmp_db):
    init_db(tmp_db)
    summary = get_usage_summary(tmp_db)
    assert summary["avg_training_time"] == 0
    assert summary["total_attempts"] == 0


def test_top_users_by_training_time(tmp_db):
    _seed_stats(tmp_db)
    assert [u["user_id"] for u in get_top_users(tmp_db)] == ["u1", "u2", "u3"]
    assert [u["user_id"] for u in get_top_users(tmp_db, n=1)] == ["u1"]
