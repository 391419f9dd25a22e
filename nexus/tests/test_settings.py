"""Tests for settings."""

import json

import pytest

from nexus.config.settings import Settings


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "NEXUS_GATEWAY", "NEXUS_REMOTE_ENDPOINT", "NEXUS_VOICE_LOCALE",
        "NEXUS_DATA_DIR", "LOG_LEVEL", "LOG_FILE_ENABLED", "GEMINI_TEMPERATURE",
        "NEXUS_PREFERRED_VOICE", "NEXUS_SYSTEM_INSTRUCTION", "LOG_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    settings = Settings(load_env_file=False)
    assert settings.gateway.provider == "gemini"
    assert settings.gateway.system_instruction == "Nexus Core V6.0 initialized."
    assert settings.voice.locale == "en-US"
    assert settings.voice.preferred_voice == ""
    assert settings.validate() == []


def test_env_overrides(clean_env):
    clean_env.setenv("NEXUS_GATEWAY", "remote")
    clean_env.setenv("NEXUS_REMOTE_ENDPOINT", "https://nexus.example.com/ask")
    clean_env.setenv("NEXUS_VOICE_LOCALE", "en-GB")
    clean_env.setenv("LOG_LEVEL", "debug")
    clean_env.setenv("LOG_FILE_ENABLED", "true")
    clean_env.setenv("GEMINI_TEMPERATURE", "0.2")

    settings = Settings(load_env_file=False)
    assert settings.gateway.provider == "remote"
    assert settings.gateway.remote_endpoint == "https://nexus.example.com/ask"
    assert settings.voice.locale == "en-GB"
    assert settings.logging.level == "DEBUG"
    assert settings.logging.file_enabled is True
    assert settings.gateway.gemini_temperature == 0.2


def test_file_then_env(clean_env, tmp_path):
    config_file = tmp_path / "nexus.json"
    config_file.write_text(json.dumps({
        "gateway": {"provider": "remote", "remote_endpoint": "https://file.example.com"},
        "voice": {"locale": "de-DE", "unknown_key": 1},
    }))
    clean_env.setenv("NEXUS_VOICE_LOCALE", "fr-FR")

    settings = Settings(config_file=config_file, load_env_file=False)
    assert settings.gateway.remote_endpoint == "https://file.example.com"
    assert settings.voice.locale == "fr-FR"
    assert not hasattr(settings.voice, "unknown_key")


def test_save_and_reload(clean_env, tmp_path):
    settings = Settings(load_env_file=False)
    settings.voice.locale = "es-ES"
    path = tmp_path / "out" / "nexus.json"
    settings.save_to_file(path)

    loaded = Settings(config_file=path, load_env_file=False)
    assert loaded.voice.locale == "es-ES"
    assert loaded.to_dict() == settings.to_dict()


def test_validate_reports_issues(clean_env):
    settings = Settings(load_env_file=False)
    settings.gateway.provider = "remote"
    settings.voice.vad_aggressiveness = 7
    issues = settings.validate()
    assert any("remote endpoint" in issue for issue in issues)
    assert any("VAD" in issue for issue in issues)


def test_provider_config(clean_env):
    settings = Settings(load_env_file=False)
    assert settings.get_provider_config("gemini")["system_instruction"] == "Nexus Core V6.0 initialized."
    assert "endpoint" in settings.get_provider_config("remote")
    assert settings.get_provider_config("whisperkit")["sample_rate"] == 16000
    assert "voice_id" in settings.get_provider_config("elevenlabs")
    with pytest.raises(ValueError):
        settings.get_provider_config("unknown")


def test_key_path(clean_env, tmp_path):
    settings = Settings(load_env_file=False)
    settings.storage.data_dir = str(tmp_path)
    assert settings.storage.key_path == tmp_path / "storage.json"
