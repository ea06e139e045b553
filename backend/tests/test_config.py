from __future__ import annotations

import pytest

from educonnect.config import Settings


def test_from_env_reads_values(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "s3cret")
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@localhost/edu")
    monkeypatch.setenv("JWT_EXPIRE_MINUTES", "15")
    monkeypatch.setenv("BCRYPT_ROUNDS", "10")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example.com, https://b.example.com")

    settings = Settings.from_env()
    assert settings.jwt_secret == "s3cret"
    assert settings.database_url == "postgresql://u:p@localhost/edu"
    assert settings.jwt_expire_minutes == 15
    assert settings.bcrypt_rounds == 10
    assert settings.log_level == "DEBUG"
    assert settings.cors_origins == ("https://a.example.com", "https://b.example.com")


def test_from_env_defaults(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "s3cret")
    for name in ("DATABASE_URL", "JWT_ALGORITHM", "JWT_EXPIRE_MINUTES", "BCRYPT_ROUNDS", "LOG_LEVEL", "CORS_ORIGINS"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()
    assert settings.database_url is None
    assert settings.jwt_algorithm == "HS256"
    assert settings.jwt_expire_minutes == 60
    assert settings.cors_origins == ("*",)


def test_from_env_requires_secret(monkeypatch):
    monkeypatch.delenv("JWT_SECRET", raising=False)
    with pytest.raises(RuntimeError):
        Settings.from_env()
