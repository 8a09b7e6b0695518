import os

from config import Settings, DEFAULT_GEMINI_MODEL

ENV_KEYS = [
    "GEMINI_API_KEY", "GEMINI_MODEL", "GEMINI_BASE_URL", "GEMINI_SEARCH_GROUNDING",
    "GEMINI_RETRY_MODEL_CASING", "LOCATIONIQ_KEY", "LOCATIONIQ_URL", "GOOGLE_MAPS_API_KEY",
    "MONGO_URI", "MONGO_DB", "HTTP_TIMEOUT", "PORT",
]


def clear_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults_when_environment_empty(monkeypatch, tmp_path):
    clear_env(monkeypatch)
    settings = Settings.from_env(dotenv_path=tmp_path / ".env")

    assert settings.gemini_api_key is None
    assert settings.gemini_model == DEFAULT_GEMINI_MODEL
    assert settings.gemini_search_grounding is True
    assert settings.locationiq_key is None
    assert settings.http_timeout is None
    assert settings.port == 5050


def test_reads_environment(monkeypatch, tmp_path):
    clear_env(monkeypatch)
    monkeypatch.setenv("GEMINI_API_KEY", "k")
    monkeypatch.setenv("GEMINI_MODEL", "gemini-2.0-flash")
    monkeypatch.setenv("GEMINI_SEARCH_GROUNDING", "false")
    monkeypatch.setenv("LOCATIONIQ_KEY", "liq")
    monkeypatch.setenv("HTTP_TIMEOUT", "7.5")
    monkeypatch.setenv("PORT", "8080")

    settings = Settings.from_env(dotenv_path=tmp_path / ".env")

    assert settings.gemini_api_key == "k"
    assert settings.gemini_model == "gemini-2.0-flash"
    assert settings.gemini_search_grounding is False
    assert settings.locationiq_key == "liq"
    assert settings.http_timeout == 7.5
    assert settings.port == 8080


def test_dotenv_file_loaded(monkeypatch, tmp_path):
    clear_env(monkeypatch)
    env_file = tmp_path / ".env"
    env_file.write_text("GOOGLE_MAPS_API_KEY=maps-key\n")

    try:
        settings = Settings.from_env(dotenv_path=env_file)
    finally:
        os.environ.pop("GOOGLE_MAPS_API_KEY", None)
    assert settings.google_maps_api_key == "maps-key"
