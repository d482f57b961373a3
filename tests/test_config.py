"""Tests for configuration helpers."""
from situation_room.config import Config


def test_dsn_from_environment(monkeypatch):
    monkeypatch.setenv("POSTGRES_DSN", "postgresql://u:p@db:5432/rooms")
    assert Config.get_postgres_dsn() == "postgresql://u:p@db:5432/rooms"


def test_dsn_escapes_password(monkeypatch):
    monkeypatch.delenv("POSTGRES_DSN", raising=False)
    monkeypatch.setattr(Config, "DB_PASSWORD", "p@ss/word")
    monkeypatch.setattr(Config, "DB_USER", "svc")
    monkeypatch.setattr(Config, "DB_HOST", "db")
    monkeypatch.setattr(Config, "DB_PORT", "5432")
    monkeypatch.setattr(Config, "DB_NAME", "rooms")

    assert Config.get_postgres_dsn() == "postgresql://svc:p%40ss%2Fword@db:5432/rooms"


def test_dsn_without_password(monkeypatch):
    monkeypatch.delenv("POSTGRES_DSN", raising=False)
    monkeypatch.setattr(Config, "DB_PASSWORD", "")
    monkeypatch.setattr(Config, "DB_USER", "svc")
    monkeypatch.setattr(Config, "DB_HOST", "db")
    monkeypatch.setattr(Config, "DB_PORT", "5432")
    monkeypatch.setattr(Config, "DB_NAME", "rooms")

    assert Config.get_postgres_dsn() == "postgresql://svc@db:5432/rooms"
