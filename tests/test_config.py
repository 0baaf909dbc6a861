"""Tests for settings loading."""
import pytest

from cert_portal.config import DEFAULT_DB_PATH, get_settings

ENV_VARS = (
    "CERT_PORTAL_DB", "CERT_PORTAL_LOG_LEVEL", "CERT_PORTAL_COMMIT_RETRIES",
    "CERT_PORTAL_POLL_INTERVAL", "CERT_PORTAL_DUE_SOON_DAYS",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    s = get_settings()
    assert s.db_path == DEFAULT_DB_PATH
    assert s.log_level == "INFO"
    assert s.commit_retries == 3
    assert s.poll_interval == 1.0
    assert s.due_soon_days == 7


def test_env_overrides(clean_env):
    clean_env.setenv("CERT_PORTAL_DB", "/tmp/other.db")
    clean_env.setenv("CERT_PORTAL_LOG_LEVEL", "debug")
    clean_env.setenv("CERT_PORTAL_COMMIT_RETRIES", "5")
    clean_env.setenv("CERT_PORTAL_POLL_INTERVAL", "0.5")
    s = get_settings()
    assert s.db_path == "/tmp/other.db"
    assert s.log_level == "DEBUG"
    assert s.commit_retries == 5
    assert s.poll_interval == 0.5


def test_commit_retries_at_least_one(clean_env):
    clean_env.setenv("CERT_PORTAL_COMMIT_RETRIES", "0")
    assert get_settings().commit_retries == 1


def test_invalid_integer(clean_env):
    clean_env.setenv("CERT_PORTAL_DUE_SOON_DAYS", "soon")
    with pytest.raises(ValueError):
        get_settings()


def test_settings_are_frozen(clean_env):
    s = get_settings()
    with pytest.raises(Exception):
        s.db_path = "x"
