"""Tests for settings loading."""
from pathlib import Path

import pytest

from scanner_bot.config import DEFAULT_MODEL, Settings
from scanner_bot.core.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep the developer's environment and .env out of these tests."""
    monkeypatch.chdir(tmp_path)
    for name in ("GEMINI_API_KEY", "GOOGLE_GENAI_USE_VERTEXAI", "DEBUG_RESPONSES", "MODEL_NAME", "CURRENCY_MARKER"):
        monkeypatch.delenv(name, raising=False)


def test_from_env_reads_api_key(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "  AIza-some-key  ")
    settings = Settings.from_env()

    assert settings.gemini_api_key == "AIza-some-key"
    assert settings.model_name == DEFAULT_MODEL
    assert settings.stability_threshold_seconds == 10.0
    assert settings.stability_poll_interval == 1.0
    assert settings.stability_max_wait == 300.0
    assert settings.currency_marker == "円"
    assert settings.api_client_kwargs == {"vertexai": False, "api_key": "AIza-some-key"}


def test_missing_api_key_is_configuration_error():
    with pytest.raises(ConfigurationError) as exc_info:
        Settings.from_env()
    assert exc_info.value.setting_name == "gemini_api_key"


def test_blank_api_key_is_configuration_error(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "   ")
    with pytest.raises(ConfigurationError):
        Settings.from_env()


def test_overrides_win_and_none_is_ignored(monkeypatch, tmp_path):
    monkeypatch.setenv("GEMINI_API_KEY", "AIza-some-key")
    settings = Settings.from_env(model_name=None, watch_directory=tmp_path, destination_directory=tmp_path / "out")

    assert settings.model_name == DEFAULT_MODEL
    assert settings.watch_directory == tmp_path
    assert settings.destination_directory == tmp_path / "out"


def test_env_tunables(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "AIza-some-key")
    monkeypatch.setenv("MODEL_NAME", "gemini-2.5-flash")
    monkeypatch.setenv("CURRENCY_MARKER", "JPY")
    monkeypatch.setenv("DEBUG_RESPONSES", "1")

    settings = Settings.from_env()

    assert settings.model_name == "gemini-2.5-flash"
    assert settings.currency_marker == "JPY"
    assert settings.debug_responses is True


def test_vertex_environment_switch_is_ignored(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "AIza-some-key")
    monkeypatch.setenv("GOOGLE_GENAI_USE_VERTEXAI", "True")
    monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "my-project")

    settings = Settings.from_env()

    assert not hasattr(settings, "use_vertex_ai")
    assert settings.api_client_kwargs == {"vertexai": False, "api_key": "AIza-some-key"}


def test_extension_list_is_normalized():
    settings = Settings(gemini_api_key="AIza-some-key", accepted_extensions="JPG, .Png,pdf")
    assert settings.accepted_extensions == (".jpg", ".png", ".pdf")
    assert settings.is_accepted(Path("x.PNG"))
    assert not settings.is_accepted(Path("x.jpeg"))


def test_dotenv_file_is_read(tmp_path):
    (tmp_path / ".env").write_text("GEMINI_API_KEY=AIza-from-dotenv\n", encoding="utf-8")
    settings = Settings()
    assert settings.gemini_api_key == "AIza-from-dotenv"
