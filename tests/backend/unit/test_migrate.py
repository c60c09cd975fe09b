import logging
from pathlib import Path

import pytest

from quizroom.backend import migrate


class _FakeCursor:
    def __init__(self) -> None:
        self.executed: list[str] = []

    def execute(self, sql: str) -> None:
        self.executed.append(sql)

    def __enter__(self) -> "_FakeCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


class _FakeConnection:
    def __init__(self) -> None:
        self.cursor_instance = _FakeCursor()
        self.commits = 0

    def cursor(self) -> _FakeCursor:
        return self.cursor_instance

    def commit(self) -> None:
        self.commits += 1

    def __enter__(self) -> "_FakeConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


def test_migrate_requires_database_url(monkeypatch) -> None:
    monkeypatch.delenv("QUIZROOM_DATABASE_URL", raising=False)

    with pytest.raises(RuntimeError, match="QUIZROOM_DATABASE_URL"):
        migrate.main([])


def test_migrate_prefers_command_line_database_url(monkeypatch) -> None:
    monkeypatch.setenv("QUIZROOM_DATABASE_URL", "postgresql://from-env/quiz")
    applied: list = []
    monkeypatch.setattr(migrate, "apply_schema", lambda url, schema_path: applied.append((url, schema_path)))

    assert migrate.main(["--database-url", "postgresql://from-flag/quiz"]) == 0
    assert migrate.main([]) == 0

    assert applied == [
        ("postgresql://from-flag/quiz", migrate.SCHEMA_PATH),
        ("postgresql://from-env/quiz", migrate.SCHEMA_PATH),
    ]


def test_apply_schema_executes_schema_file_and_logs_path(caplog) -> None:
    connection = _FakeConnection()
    urls: list[str] = []

    def connect(url: str) -> _FakeConnection:
        urls.append(url)
        return connection

    with caplog.at_level(logging.INFO, logger="quizroom.backend.migrate"):
        migrate.apply_schema("postgresql://local/quiz", connect=connect)

    assert urls == ["postgresql://local/quiz"]
    assert connection.cursor_instance.executed == [migrate.SCHEMA_PATH.read_text(encoding="utf-8")]
    assert connection.commits == 1
    assert str(migrate.SCHEMA_PATH) in caplog.text


def test_schema_defines_rooms_table_and_change_notifications() -> None:
    schema = Path(migrate.__file__).with_name("db_schema.sql").read_text(encoding="utf-8")

    assert "CREATE TABLE IF NOT EXISTS rooms" in schema
    assert "version INTEGER NOT NULL" in schema
    assert "pg_notify('room_changes'" in schema
