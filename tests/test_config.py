import json
import logging

import pytest

import mutualaid.config as app_config
from mutualaid.api.dependencies import get_db
from mutualaid.config import Settings
from mutualaid.core.logging import configure_logging


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("database_url", "postgresql://db.example.com/mutualaid")
    monkeypatch.setenv("login_rate_limit", "3")

    settings = Settings()

    assert settings.database_url == "postgresql://db.example.com/mutualaid"
    assert settings.login_rate_limit == 3
    assert settings.is_sqlite is False


def test_default_settings_use_sqlite():
    settings = Settings(_env_file=None)
    assert settings.is_sqlite is True
    assert settings.jwt_algorithm == "HS256"


def test_json_logging_emits_structured_records(capsys):
    configure_logging("INFO", json_output=True)
    try:
        logging.getLogger("mutualaid.tests").info("member registered")
        line = capsys.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["message"] == "member registered"
        assert record["levelname"] == "INFO"
        assert record["name"] == "mutualaid.tests"
    finally:
        configure_logging("WARNING", json_output=False)


def test_sqlite_engine_creates_database_folder(tmp_path):
    from mutualaid.config import build_engine

    target = tmp_path / "nested" / "members.db"
    engine = build_engine(Settings(_env_file=None, database_url=f"sqlite:///{target}"))
    try:
        assert target.parent.is_dir()
        assert engine.url.database == str(target)
    finally:
        engine.dispose()


def test_request_session_rolls_back_on_error(monkeypatch):
    calls = []

    class RecordingSession:
        def rollback(self):
            calls.append("rollback")

        def close(self):
            calls.append("close")

    monkeypatch.setattr(app_config, "SessionLocal", RecordingSession)
    sessions = get_db()
    next(sessions)
    with pytest.raises(RuntimeError):
        sessions.throw(RuntimeError("flush failed"))
    assert calls == ["rollback", "close"]
