"""Development server entry point."""
import pytest

import run
from vibe_search.config import settings


@pytest.fixture
def uvicorn_calls(monkeypatch):
    calls = []
    monkeypatch.setattr(run.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
    return calls


def test_defaults_come_from_settings(uvicorn_calls, monkeypatch):
    monkeypatch.setattr(settings, "API_HOST", "0.0.0.0")
    monkeypatch.setattr(settings, "API_PORT", 9100)
    monkeypatch.setattr(settings, "APP_ENV", "production")
    monkeypatch.setattr(settings, "LOG_LEVEL", "INFO")

    run.main([])

    app, kwargs = uvicorn_calls[0]
    assert app == "vibe_search.main:app"
    assert kwargs == {"host": "0.0.0.0", "port": 9100, "reload": False, "log_level": "info"}


def test_reload_defaults_on_in_development(uvicorn_calls, monkeypatch):
    monkeypatch.setattr(settings, "APP_ENV", "development")

    run.main([])

    assert uvicorn_calls[0][1]["reload"] is True


def test_command_line_overrides(uvicorn_calls, monkeypatch):
    monkeypatch.setattr(settings, "APP_ENV", "development")

    run.main(["--no-reload", "--host", "10.0.0.5", "--port", "8081"])

    kwargs = uvicorn_calls[0][1]
    assert kwargs["host"] == "10.0.0.5"
    assert kwargs["port"] == 8081
    assert kwargs["reload"] is False
    assert "loop" not in kwargs
