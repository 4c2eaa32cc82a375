"""Tests for reading settings from the environment."""

import pytest

from agenda.config import DEFAULT_DATABASE_URL, Settings, load_settings


def test_defaults():
    settings = Settings.from_environ({})
    assert settings.database_url == DEFAULT_DATABASE_URL
    assert settings.time_zone == "America/Sao_Paulo"
    assert settings.log_level == "INFO"
    assert settings.sql_echo is False
    assert settings.sync_url is None
    assert settings.default_window_days == 30


def test_overrides():
    settings = Settings.from_environ(
        {
            "AGENDA_DATABASE_URL": "postgresql+psycopg://agenda@db/agenda",
            "DATABASE_URL": "sqlite:///ignored.db",
            "AGENDA_TIME_ZONE": "Europe/Lisbon",
            "AGENDA_LOG_LEVEL": "debug",
            "AGENDA_SQL_ECHO": "yes",
            "AGENDA_SYNC_URL": "https://sync.example.com/hooks",
            "AGENDA_SYNC_TIMEOUT": "2.5",
            "AGENDA_SYNC_WORKERS": "4",
            "AGENDA_DEFAULT_WINDOW_DAYS": "7",
        }
    )
    assert settings.database_url == "postgresql+psycopg://agenda@db/agenda"
    assert settings.time_zone == "Europe/Lisbon"
    assert settings.log_level == "DEBUG"
    assert settings.sql_echo is True
    assert settings.sync_url == "https://sync.example.com/hooks"
    assert settings.sync_timeout == 2.5
    assert settings.sync_workers == 4
    assert settings.default_window_days == 7


def test_database_url_fallback():
    settings = Settings.from_environ({"DATABASE_URL": "sqlite:///fallback.db"})
    assert settings.database_url == "sqlite:///fallback.db"


@pytest.mark.parametrize(
    "environ",
    [
        {"AGENDA_TIME_ZONE": "Mars/Olympus_Mons"},
        {"AGENDA_SYNC_WORKERS": "many"},
        {"AGENDA_SYNC_WORKERS": "0"},
        {"AGENDA_SYNC_TIMEOUT": "-1"},
        {"AGENDA_DEFAULT_WINDOW_DAYS": "a week"},
    ],
)
def test_invalid_values(environ):
    with pytest.raises(ValueError):
        Settings.from_environ(environ)


def test_load_settings_reads_dotenv(tmp_path, monkeypatch):
    # setenv first so monkeypatch removes whatever load_dotenv writes
    for name in ("AGENDA_DATABASE_URL", "DATABASE_URL", "AGENDA_TIME_ZONE"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    dotenv = tmp_path / ".env"
    dotenv.write_text("AGENDA_TIME_ZONE=Asia/Tokyo\nAGENDA_DATABASE_URL=sqlite:///dotenv.db\n")

    settings = load_settings(str(dotenv))

    assert settings.time_zone == "Asia/Tokyo"
    assert settings.database_url == "sqlite:///dotenv.db"
